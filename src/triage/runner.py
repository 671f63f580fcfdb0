"""Triage run orchestration.

Drives one invocation of the action: a single issue for `issues` and
`issue_comment` events, or every matching issue of the repository for
`workflow_dispatch` and `schedule` sweeps. For each issue the runner
fetches the comment history, gathers facts, evaluates the rule table and
applies the resulting intents.

The runner delegates all work to injected dependencies. Issues are
processed one after another; the permission cache and the loaded project
board are shared across the whole run.

Source:
- src/triage/webhook/models.py (TriggerEvent)
- src/triage/actors/classifier.py (ActorClassifier, PermissionCache)
- src/triage/rules/facts.py (gather_facts)
- src/triage/rules/engine.py (evaluate)
- src/triage/applier.py (TransitionApplier)
- src/triage/project/board.py (ProjectBoard)
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import structlog

from src.triage.actors.classifier import ActorClassifier, PermissionCache
from src.triage.applier import TransitionApplier
from src.triage.config import TriageSettings
from src.triage.github.client import GitHubClient
from src.triage.models import CommentSnapshot, IssueSnapshot
from src.triage.project.board import ProjectBoard
from src.triage.project.status import ProjectStatus, derive_status
from src.triage.rules.engine import evaluate
from src.triage.rules.facts import gather_facts
from src.triage.rules.models import Intent
from src.triage.webhook.models import IssueAction, TriggerEvent


logger = structlog.get_logger()


@dataclass
class IssueResult:
    """Outcome of evaluating one issue.

    Attributes:
        number: Issue number.
        intents: Intents the rules produced, in apply order.
        issue: The issue snapshot after the intents were applied.
        status: Derived board status; None for closed, unmerged issues.
        needs_log: The issue carries the log-required label after the run.
    """

    number: int
    intents: List[Intent]
    issue: IssueSnapshot
    status: Optional[ProjectStatus]
    needs_log: bool


@dataclass
class RunResult:
    """Outcome of a triage run, one entry per evaluated issue."""

    issues: List[IssueResult] = field(default_factory=list)

    def outputs(self) -> Dict[str, str]:
        """Step outputs for downstream workflow steps.

        `status` is only reported when exactly one issue was evaluated.
        """
        status = ""
        if len(self.issues) == 1 and self.issues[0].status is not None:
            status = self.issues[0].status.value
        return {
            "status": status,
            "issue": ",".join(str(result.number) for result in self.issues),
            "needs-log": "true" if any(result.needs_log for result in self.issues) else "false",
        }


class TriageRunner:
    """Runs the triage rules for one trigger event.

    Attributes:
        settings: Run configuration.
        owner: Repository owner.
        repo: Repository name.
        github_client: Client for issue reads and mutations.
        classifier: Run-scoped actor classifier.
        board: Project board, or None when no board is configured.
        applier: Applies intents to issues.
        today: Activity date written to the board.
    """

    def __init__(
        self,
        settings: TriageSettings,
        owner: str,
        repo: str,
        github_client: GitHubClient,
        project_client: Optional[GitHubClient] = None,
        today: Optional[date] = None,
    ):
        """Wire up the run's components.

        Args:
            settings: Run configuration.
            owner: Repository owner.
            repo: Repository name.
            github_client: Client authorized with the general token.
            project_client: Client authorized with the project token; the
                            general client is used when omitted.
            today: Override for the activity date (tests).

        Raises:
            ConfigurationError: If the project URL is malformed.
        """
        self.settings = settings
        self.owner = owner
        self.repo = repo
        self.github_client = github_client
        self.today = today
        self.classifier = ActorClassifier(
            github_client,
            owner,
            repo,
            threshold=settings.user.privileged_permission,
            bots=settings.user.bot_logins,
            cache=PermissionCache(),
        )
        self.board: Optional[ProjectBoard] = None
        if settings.project.enabled:
            self.board = ProjectBoard.from_settings(project_client or github_client, settings.project)
        self.applier = TransitionApplier(
            github_client,
            owner,
            repo,
            board=self.board,
            dry_run=settings.dry_run,
        )

    async def prepare(self) -> None:
        """Validate what can only be checked against the API.

        Loads the board layout so an unknown field or status name fails the
        run before any issue is mutated, and warns when the configured
        assignee lacks the permission to be assigned.

        Raises:
            ConfigurationError: If the board or one of its names is unknown.
        """
        if self.board is not None:
            await self.board.load()

        assignee = self.settings.user.assign
        if assignee and not await self.classifier.is_privileged(assignee, allow_bot=True):
            logger.warning(
                "Configured assignee is not a maintainer of the repository",
                assignee=assignee,
                repository=f"{self.owner}/{self.repo}",
            )

    async def run(self, event: TriggerEvent) -> RunResult:
        """Evaluate the issue(s) the event refers to.

        Raises:
            ConfigurationError: If the board configuration is invalid.
            GitHubAPIError: If a read or mutation fails.
        """
        await self.prepare()

        result = RunResult()
        if event.is_sweep:
            await self.sweep(event, result)
        elif event.issue is not None:
            issue_result = await self.process(event, event.issue)
            if issue_result is not None:
                result.issues.append(issue_result)

        logger.info(
            "Triage run complete",
            event_name=event.event_name.value,
            issues=len(result.issues),
            intents=sum(len(r.intents) for r in result.issues),
            permission_lookups=len(self.classifier.cache),
        )
        return result

    async def sweep(self, event: TriggerEvent, result: RunResult) -> None:
        """Evaluate every issue matching the configured state filter."""
        state = self.settings.issue.state.value
        logger.info("Sweeping repository", repository=event.full_repository, state=state)

        async for data in self.github_client.list_issues(self.owner, self.repo, state=state):
            issue = IssueSnapshot.from_github(data)
            issue_event = event.model_copy(
                update={"issue": issue, "action": IssueAction.SWEEP.value}
            )
            issue_result = await self.process(issue_event, issue)
            if issue_result is not None:
                result.issues.append(issue_result)

    async def process(self, event: TriggerEvent, issue: IssueSnapshot) -> Optional[IssueResult]:
        """Evaluate and apply the rules for one issue.

        Returns:
            The outcome, or None when the issue is a pull request.
        """
        log = logger.bind(issue_number=issue.number, action=event.action)

        if issue.is_pull_request:
            log.info("Skipping pull request")
            return None

        raw_comments = await self.github_client.list_comments(self.owner, self.repo, issue.number)
        comments = [CommentSnapshot.from_github(data) for data in raw_comments]

        facts = await gather_facts(
            event, issue, comments, self.classifier, self.settings, today=self.today
        )
        intents = evaluate(facts)
        log.info("Evaluated issue", intents=[repr(intent) for intent in intents])

        final = await self.applier.apply(issue, intents)

        labels = self.settings.label
        return IssueResult(
            number=issue.number,
            intents=intents,
            issue=final,
            status=derive_status(final, labels, facts.has_privileged_participant),
            needs_log=final.has_label(labels.log_required),
        )
