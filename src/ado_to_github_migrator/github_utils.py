from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from github import Auth, Github, GithubException, UnknownObjectException

from . import utils
from .exceptions import MigrationError
from .models import DestinationIssue

if TYPE_CHECKING:
    from github.Issue import Issue
    from github.Repository import Repository

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_DELETE_ISSUE_MUTATION = """
mutation DeleteIssue($issueId: ID!, $clientMutationId: String) {
    deleteIssue(input: {issueId: $issueId, clientMutationId: $clientMutationId}) {
        clientMutationId
    }
}
"""


def get_token(pass_path: str | None = None) -> str | None:
    """Get the GitHub token from a pass path if given.

    Returns None otherwise; the configuration then falls back to GH_TOKEN.
    """
    if pass_path:
        return utils.get_pass_value(pass_path)
    return None


def get_client(token: str) -> Github:
    """Get a GitHub client using the token."""
    return Github(auth=Auth.Token(token), user_agent="ado-github-migrator")


def get_repo(client: Github, repo_path: str) -> Repository:
    """Get an existing repository; migrated issues are never created in a new repository."""
    try:
        return client.get_repo(repo_path)
    except UnknownObjectException as e:
        msg = f"GitHub repository {repo_path} not found or not accessible"
        raise MigrationError(msg) from e
    except GithubException as e:
        msg = f"Error accessing GitHub repository {repo_path}: {e}"
        raise MigrationError(msg) from e


def _to_destination_issue(issue: Issue) -> DestinationIssue:
    return DestinationIssue(number=issue.number, html_url=issue.html_url, body=issue.body or "")


class GitHubIssueTarget:
    """Issue target backed by a GitHub repository."""

    def __init__(self, client: Github, repo: Repository) -> None:
        self.client: Github = client
        self.repo: Repository = repo
        # Issues created or fetched in this run, so edits and comments need no extra GET
        self._issues: dict[int, Issue] = {}

    @property
    def repo_path(self) -> str:
        return self.repo.full_name

    def _get_issue(self, number: int) -> Issue:
        issue = self._issues.get(number)
        if issue is None:
            issue = self.repo.get_issue(number)
            self._issues[number] = issue
        return issue

    def create_issue(self, title: str, body: str, labels: list[str]) -> DestinationIssue:
        try:
            issue = self.repo.create_issue(title=title, body=body, labels=labels)
        except GithubException as e:
            msg = f"Failed to create GitHub issue '{title}': {e}"
            raise MigrationError(msg) from e
        self._issues[issue.number] = issue
        logger.debug(f"Created issue #{issue.number}: {title}")
        return _to_destination_issue(issue)

    def update_issue(self, number: int, body: str) -> None:
        try:
            self._get_issue(number).edit(body=body)
        except GithubException as e:
            msg = f"Failed to update GitHub issue #{number}: {e}"
            raise MigrationError(msg) from e
        logger.debug(f"Updated body of issue #{number}")

    def create_comment(self, number: int, text: str) -> None:
        try:
            _ = self._get_issue(number).create_comment(text)
        except GithubException as e:
            msg = f"Failed to comment on GitHub issue #{number}: {e}"
            raise MigrationError(msg) from e

    def close_issue(self, number: int) -> None:
        try:
            self._get_issue(number).edit(state="closed")
        except GithubException as e:
            msg = f"Failed to close GitHub issue #{number}: {e}"
            raise MigrationError(msg) from e
        logger.debug(f"Closed issue #{number}")

    def list_all_issues(self) -> list[DestinationIssue]:
        """List issues of every state, leaving out pull requests."""
        try:
            issues = [issue for issue in self.repo.get_issues(state="all") if issue.pull_request is None]
        except GithubException as e:
            msg = f"Failed to list issues of {self.repo_path}: {e}"
            raise MigrationError(msg) from e
        for issue in issues:
            self._issues[issue.number] = issue
        return [_to_destination_issue(issue) for issue in issues]

    def delete_issue(self, number: int) -> None:
        """Delete an issue permanently.

        The REST API cannot delete issues, so this goes through the GraphQL
        ``deleteIssue`` mutation using PyGithub's requester for authentication.
        Requires admin rights on the repository.
        """
        issue = self._get_issue(number)
        variables: dict[str, Any] = {"issueId": issue.node_id, "clientMutationId": f"issue {number} delete"}
        try:
            _, data = self.client.requester.graphql_query(_DELETE_ISSUE_MUTATION, variables)
        except GithubException as e:
            msg = f"Failed to delete GitHub issue #{number}: {e}"
            raise MigrationError(msg) from e
        if data.get("errors"):
            msg = f"Failed to delete GitHub issue #{number}: {data['errors']}"
            raise MigrationError(msg)
        self._issues.pop(number, None)
        logger.info(f"Deleted issue #{number}")
