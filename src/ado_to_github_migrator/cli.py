"""
Command-line interface for the Azure DevOps to GitHub migration tool.
"""

from __future__ import annotations

import argparse
import logging
import sys

from . import ado_utils as adu
from . import github_utils as ghu
from .config import DEFAULT_RELATION_WORKERS, MigrationConfig, load_env_file
from .migrator import MigrationResult, Migrator
from .utils import setup_logging

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description=(
            "Migrate Azure DevOps work items to GitHub issues. "
            "Source and target are configured through environment variables (or a .env file)."
        )
    )

    _ = parser.add_argument("--env-file", default=".env", help="Env file to load before reading settings (default: .env)")

    _ = parser.add_argument("--ado-pass-token", help="Path for the Azure DevOps token in pass utility (default: ADO_TOKEN)")

    _ = parser.add_argument("--github-pass-token", help="Path for the GitHub token in pass utility (default: GH_TOKEN)")

    _ = parser.add_argument(
        "--relation-workers",
        type=int,
        default=DEFAULT_RELATION_WORKERS,
        help=f"Parallel issue updates while linking relations (default: {DEFAULT_RELATION_WORKERS})",
    )

    _ = parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Increase console verbosity (-v for INFO, -vv for DEBUG)",
    )

    return parser.parse_args(argv)


def _print_report(result: MigrationResult, config: MigrationConfig) -> None:
    """Print a summary of the migration run."""
    stats = result.stats
    print("=" * 60)
    print("MIGRATION REPORT")
    print("=" * 60)
    print(f"Azure DevOps: {config.ado_organization}/{config.ado_project} ({config.ado_area_path})")
    print(f"GitHub:       {config.github_repo_path}")
    print(f"Status:       {'SUCCESS' if result.success else 'FAILED'}")
    print("-" * 60)
    print(f"Work items found:  {stats.work_items_found}")
    print(f"Issues created:    {stats.issues_created}")
    print(f"Comments created:  {stats.comments_created}")
    print(f"Work items tagged: {stats.work_items_tagged}")
    print(f"Issues closed:     {stats.issues_closed}")
    print(f"Issues linked:     {stats.issues_linked}")
    print("=" * 60)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    verbosity: int = args.verbose
    setup_logging(verbosity=verbosity)

    try:
        load_env_file(args.env_file)
        config = MigrationConfig.from_env(
            ado_token=adu.get_token(args.ado_pass_token),
            github_token=ghu.get_token(args.github_pass_token),
            relation_workers=args.relation_workers,
        )

        source = adu.AzureDevOpsSource(config.ado_organization, config.ado_project, config.ado_token)
        github_client = ghu.get_client(config.github_token)
        target = ghu.GitHubIssueTarget(github_client, ghu.get_repo(github_client, config.github_repo_path))

        result = Migrator(config, source, target).migrate()
        _print_report(result, config)

    except Exception as e:
        logger.exception("Migration failed")
        print(f"Migration failed: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0 if result.success else 1)
