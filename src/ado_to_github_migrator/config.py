"""Process configuration, read once at startup.

Values come from environment variables, optionally seeded from a ``.env``
file. The resulting MigrationConfig is passed explicitly to the clients and
the Migrator; nothing reads the environment after startup.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger: logging.Logger = logging.getLogger(__name__)

ADO_ORGANIZATION_VAR: Final[str] = "ADO_ORGANIZATION"
ADO_PROJECT_VAR: Final[str] = "ADO_PROJECT"
ADO_AREA_PATH_VAR: Final[str] = "ADO_AREA_PATH"
ADO_TOKEN_VAR: Final[str] = "ADO_TOKEN"  # noqa: S105
GITHUB_OWNER_VAR: Final[str] = "GH_ORGANIZATION"
GITHUB_REPOSITORY_VAR: Final[str] = "GH_REPOSITORY"
GITHUB_TOKEN_VAR: Final[str] = "GH_TOKEN"  # noqa: S105
MIGRATE_CLOSED_VAR: Final[str] = "OPT_MIGRATE_CLOSED_WORKITEMS"
TAG_MIGRATED_VAR: Final[str] = "OPT_ADD_TAG_MIGRATED_TO_GITHUB"

DEFAULT_RELATION_WORKERS: Final[int] = 4


def load_env_file(env_file: str | Path = ".env") -> None:
    """Load variables from an env file without overriding the real environment."""
    path = Path(env_file)
    if path.exists():
        load_dotenv(path, override=False)
        logger.debug(f"Loaded environment from {path}")
    else:
        logger.debug(f"No env file at {path}")


def _parse_flag(value: str | None) -> bool:
    return str(value).strip().lower() == "true"


@dataclass(frozen=True)
class MigrationConfig:
    """Settings for one migration run."""

    ado_organization: str
    ado_project: str
    ado_area_path: str
    ado_token: str
    github_owner: str
    github_repository: str
    github_token: str
    migrate_closed_work_items: bool = False
    tag_migrated_work_items: bool = False
    relation_workers: int = DEFAULT_RELATION_WORKERS

    @property
    def github_repo_path(self) -> str:
        return f"{self.github_owner}/{self.github_repository}"

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        ado_token: str | None = None,
        github_token: str | None = None,
        relation_workers: int = DEFAULT_RELATION_WORKERS,
    ) -> MigrationConfig:
        """Build the configuration from environment variables.

        Tokens passed explicitly (e.g. looked up with ``pass``) take precedence
        over the environment.

        Raises:
            ConfigurationError: If any required value is missing, listing all of them
        """
        env = os.environ if environ is None else environ

        values = {
            ADO_ORGANIZATION_VAR: env.get(ADO_ORGANIZATION_VAR, "").strip(),
            ADO_PROJECT_VAR: env.get(ADO_PROJECT_VAR, "").strip(),
            ADO_AREA_PATH_VAR: env.get(ADO_AREA_PATH_VAR, "").strip(),
            ADO_TOKEN_VAR: ado_token or env.get(ADO_TOKEN_VAR, "").strip(),
            GITHUB_OWNER_VAR: env.get(GITHUB_OWNER_VAR, "").strip(),
            GITHUB_REPOSITORY_VAR: env.get(GITHUB_REPOSITORY_VAR, "").strip(),
            GITHUB_TOKEN_VAR: github_token or env.get(GITHUB_TOKEN_VAR, "").strip(),
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            msg = f"Missing required configuration: {', '.join(missing)}"
            raise ConfigurationError(msg)

        if relation_workers < 1:
            msg = f"relation_workers must be at least 1, got {relation_workers}"
            raise ConfigurationError(msg)

        return cls(
            ado_organization=values[ADO_ORGANIZATION_VAR],
            ado_project=values[ADO_PROJECT_VAR],
            ado_area_path=values[ADO_AREA_PATH_VAR],
            ado_token=values[ADO_TOKEN_VAR],
            github_owner=values[GITHUB_OWNER_VAR],
            github_repository=values[GITHUB_REPOSITORY_VAR],
            github_token=values[GITHUB_TOKEN_VAR],
            migrate_closed_work_items=_parse_flag(env.get(MIGRATE_CLOSED_VAR)),
            tag_migrated_work_items=_parse_flag(env.get(TAG_MIGRATED_VAR)),
            relation_workers=relation_workers,
        )

    def log_summary(self) -> None:
        """Log the run banner. Tokens are never logged."""
        logger.info("Starting migration for...")
        logger.info("  FROM Azure DevOps")
        logger.info(f"      -> Organization={self.ado_organization}")
        logger.info(f"      -> Project={self.ado_project}")
        logger.info(f"      -> AreaPath={self.ado_area_path}")
        logger.info("  TO GitHub")
        logger.info(f"      -> Organization={self.github_owner}")
        logger.info(f"      -> Repository={self.github_repository}")
        logger.info("  Options")
        logger.info(f"      -> {MIGRATE_CLOSED_VAR}={self.migrate_closed_work_items}")
        logger.info(f"      -> {TAG_MIGRATED_VAR}={self.tag_migrated_work_items}")
