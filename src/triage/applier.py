"""Idempotent application of triage intents.

The TransitionApplier executes intents against the GitHub API in the fixed
apply order. An intent whose target state already holds on the local issue
snapshot is skipped without a network call, and the snapshot is updated
after every applied intent so later intents see the new state.

Source:
- src/triage/github/client.py (GitHubClient)
- src/triage/rules/models.py (Intent variants)
- src/triage/project/board.py (ProjectBoard)
"""

from typing import List, Optional

import structlog

from src.triage.github.client import GitHubClient
from src.triage.models import IssueSnapshot
from src.triage.project.board import ProjectBoard
from src.triage.project.status import ProjectStatus
from src.triage.rules.models import (
    AddAssignees,
    AddLabel,
    CreateComment,
    Intent,
    RemoveAssignees,
    RemoveLabel,
    SetIssueState,
    SetProjectStatus,
    UpdateComment,
    in_apply_order,
)


logger = structlog.get_logger()


class TransitionApplier:
    """Applies intents to one repository's issues.

    Attributes:
        github_client: The GitHub API client for mutations.
        owner: Repository owner.
        repo: Repository name.
        board: Project board to sync, or None when no board is configured.
        dry_run: Log intents without calling the API.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        owner: str,
        repo: str,
        board: Optional[ProjectBoard] = None,
        dry_run: bool = False,
    ):
        self.github_client = github_client
        self.owner = owner
        self.repo = repo
        self.board = board
        self.dry_run = dry_run

    async def apply(self, issue: IssueSnapshot, intents: List[Intent]) -> IssueSnapshot:
        """Apply intents to an issue.

        Args:
            issue: The issue snapshot the intents were computed against.
            intents: The intents to apply; sorted into apply order here.

        Returns:
            The issue snapshot with every applied intent reflected.

        Raises:
            GitHubAPIError: If a mutation fails. Intents applied before the
                            failure stay applied.
        """
        for intent in in_apply_order(intents):
            if intent.is_noop(issue):
                logger.debug(
                    "Skipping intent, target state already holds",
                    issue_number=issue.number,
                    intent=repr(intent),
                )
                continue

            if self.dry_run:
                logger.info("Dry run, not applying intent", issue_number=issue.number, intent=repr(intent))
            else:
                await self._apply_one(issue, intent)
            issue = intent.apply_to(issue)

        return issue

    async def _apply_one(self, issue: IssueSnapshot, intent: Intent) -> None:
        number = issue.number
        client = self.github_client

        if isinstance(intent, SetIssueState):
            await client.update_issue_state(self.owner, self.repo, number, intent.state.value)
        elif isinstance(intent, AddAssignees):
            missing = [login for login in intent.logins if login not in issue.assignees]
            await client.add_assignees(self.owner, self.repo, number, missing)
        elif isinstance(intent, RemoveAssignees):
            present = [login for login in intent.logins if login in issue.assignees]
            await client.remove_assignees(self.owner, self.repo, number, present)
        elif isinstance(intent, AddLabel):
            await client.add_labels(self.owner, self.repo, number, [intent.name])
        elif isinstance(intent, RemoveLabel):
            await client.remove_label(self.owner, self.repo, number, intent.name)
        elif isinstance(intent, CreateComment):
            await client.create_comment(self.owner, self.repo, number, intent.body)
        elif isinstance(intent, UpdateComment):
            await client.update_comment(self.owner, self.repo, intent.comment_id, intent.body)
        elif isinstance(intent, SetProjectStatus):
            if self.board is None:
                logger.warning("No project board configured, dropping status", issue_number=number)
                return
            await self.board.sync(
                issue,
                ProjectStatus(intent.status),
                start_date=intent.start_date,
                end_date=intent.end_date,
            )
        else:
            raise TypeError(f"Unknown intent: {intent!r}")
