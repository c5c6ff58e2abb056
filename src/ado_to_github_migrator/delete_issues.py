"""
Administrative command deleting every issue of a GitHub repository.

Used to reset a target repository between trial migrations. It is a
separate entry point and is never called by the migration itself.

Usage:
    delete-github-issues <owner/repo> --yes [--github-pass-token PATH]

Requires a token with admin rights on the repository, read from the pass
entry when given, otherwise from GH_TOKEN.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import textwrap
from typing import TYPE_CHECKING

from . import github_utils as ghu
from .config import GITHUB_TOKEN_VAR, load_env_file
from .exceptions import ConfigurationError
from .utils import setup_logging

if TYPE_CHECKING:
    from .protocols import IssueTarget

logger: logging.Logger = logging.getLogger(__name__)


def delete_all_issues(target: IssueTarget) -> int:
    """Delete all issues of the target repository.

    Stops at the first failure.

    Returns:
        Number of deleted issues
    """
    issues = target.list_all_issues()
    if not issues:
        logger.info("No issues found to delete")
        return 0

    logger.info(f"Found {len(issues)} issues, deleting...")
    for issue in issues:
        target.delete_issue(issue.number)
    logger.info(f"Deleted {len(issues)} issues")
    return len(issues)


def _get_github_token(pass_path: str | None) -> str:
    token = ghu.get_token(pass_path) or os.environ.get(GITHUB_TOKEN_VAR, "").strip()
    if not token:
        msg = f"GitHub token required: pass --github-pass-token or set {GITHUB_TOKEN_VAR}"
        raise ConfigurationError(msg)
    return token


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the delete command."""
    parser = argparse.ArgumentParser(
        description="Delete ALL issues of a GitHub repository (irreversible)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""
            Examples:
              delete-github-issues myorg/myrepo --yes
              delete-github-issues myorg/myrepo --yes --github-pass-token github/admin/token
        """),
    )
    _ = parser.add_argument("github_repo", help="GitHub repository path (owner/repo)")
    _ = parser.add_argument("--yes", action="store_true", help="Confirm that all issues should be deleted")
    _ = parser.add_argument("--github-pass-token", help="Path for the GitHub token in pass utility (default: GH_TOKEN)")
    _ = parser.add_argument("--env-file", default=".env", help="Env file to load before reading GH_TOKEN")
    _ = parser.add_argument("--verbose", "-v", action="count", default=0, help="Increase console verbosity")
    args = parser.parse_args(argv)

    setup_logging(verbosity=max(args.verbose, 1))

    if not args.yes:
        logger.error(f"Refusing to delete all issues of {args.github_repo} without --yes")
        sys.exit(2)

    try:
        load_env_file(args.env_file)
        client = ghu.get_client(_get_github_token(args.github_pass_token))
        target = ghu.GitHubIssueTarget(client, ghu.get_repo(client, args.github_repo))
        delete_all_issues(target)
    except Exception:
        logger.exception(f"Deleting issues of {args.github_repo} failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
