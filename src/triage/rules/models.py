"""Intents and facts for the triage rule engine.

This module defines:
- Intent variants: single proposed mutations of an issue
- in_apply_order(): the fixed order intents are applied in
- Facts: the immutable snapshot every rule is evaluated against

Intents know how to project themselves onto an IssueSnapshot so that the
engine can derive the post-run board status and the applier can keep its
local copy of the issue current without re-fetching it.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

from src.triage.actors.classifier import Actor
from src.triage.config import USERNAME_PLACEHOLDER, TriageSettings
from src.triage.models import CommentSnapshot, IssueSnapshot, IssueState
from src.triage.webhook.models import TriggerEvent


# Hidden markers the action embeds in its own comments so later runs can
# update them instead of posting duplicates
LOG_MARKER = "<!-- issue-triage:log -->"
CLOSE_MARKER = "<!-- issue-triage:close -->"


class Intent:
    """Base class for a single proposed issue mutation.

    Subclasses are frozen dataclasses. `rank` places an intent in the apply
    order: issue state, then assignees, then labels, then comments, then the
    project board.
    """

    rank: int = 0

    def is_noop(self, issue: IssueSnapshot) -> bool:
        """True when the issue already is in the state this intent targets."""
        return False

    def apply_to(self, issue: IssueSnapshot) -> IssueSnapshot:
        """Return the issue as it looks after this intent is applied."""
        return issue


@dataclass(frozen=True)
class SetIssueState(Intent):
    state: IssueState
    rank = 0

    def is_noop(self, issue: IssueSnapshot) -> bool:
        return issue.state == self.state

    def apply_to(self, issue: IssueSnapshot) -> IssueSnapshot:
        return issue.model_copy(update={"state": self.state})


@dataclass(frozen=True)
class RemoveAssignees(Intent):
    logins: Tuple[str, ...]
    rank = 1

    def is_noop(self, issue: IssueSnapshot) -> bool:
        return not any(login in issue.assignees for login in self.logins)

    def apply_to(self, issue: IssueSnapshot) -> IssueSnapshot:
        remaining = [a for a in issue.assignees if a not in self.logins]
        return issue.model_copy(update={"assignees": remaining})


@dataclass(frozen=True)
class AddAssignees(Intent):
    logins: Tuple[str, ...]
    rank = 1

    def is_noop(self, issue: IssueSnapshot) -> bool:
        return all(login in issue.assignees for login in self.logins)

    def apply_to(self, issue: IssueSnapshot) -> IssueSnapshot:
        added = [login for login in self.logins if login not in issue.assignees]
        return issue.model_copy(update={"assignees": issue.assignees + added})


@dataclass(frozen=True)
class RemoveLabel(Intent):
    name: str
    rank = 2

    def is_noop(self, issue: IssueSnapshot) -> bool:
        return not issue.has_label(self.name)

    def apply_to(self, issue: IssueSnapshot) -> IssueSnapshot:
        labels = [label for label in issue.labels if label != self.name]
        return issue.model_copy(update={"labels": labels})


@dataclass(frozen=True)
class AddLabel(Intent):
    name: str
    rank = 2

    def is_noop(self, issue: IssueSnapshot) -> bool:
        return not self.name or issue.has_label(self.name)

    def apply_to(self, issue: IssueSnapshot) -> IssueSnapshot:
        if self.is_noop(issue):
            return issue
        return issue.model_copy(update={"labels": issue.labels + [self.name]})


@dataclass(frozen=True)
class CreateComment(Intent):
    body: str
    rank = 3


@dataclass(frozen=True)
class UpdateComment(Intent):
    comment_id: int
    body: str
    rank = 3


@dataclass(frozen=True)
class SetProjectStatus(Intent):
    """Board card update.

    Attributes:
        status: Canonical status key (see src/triage/project/status.py).
        start_date: Written only when the card is created.
        end_date: Last activity date.
    """

    status: str
    start_date: date
    end_date: date
    rank = 4


def in_apply_order(intents: List[Intent]) -> List[Intent]:
    """Sort intents into the fixed apply order, stable within a rank."""
    return sorted(intents, key=lambda intent: intent.rank)


def project_issue(issue: IssueSnapshot, intents: List[Intent]) -> IssueSnapshot:
    """Project a list of intents onto an issue, in apply order."""
    for intent in in_apply_order(intents):
        issue = intent.apply_to(issue)
    return issue


def render_template(template: str, username: str) -> str:
    """Substitute the {{username}} placeholder of a message template."""
    return template.replace(USERNAME_PLACEHOLDER, username)


@dataclass(frozen=True)
class Facts:
    """Immutable snapshot the rules are evaluated against.

    Attributes:
        event: The trigger of this evaluation.
        issue: The issue being evaluated.
        comments: The issue's comment history, oldest first.
        settings: Run configuration.
        sender: The classified actor whose activity is evaluated.
        has_privileged_participant: A maintainer has touched the issue.
        has_non_privileged_participant: A non-maintainer has touched the issue.
        managed: The issue is eligible for automated triage.
        log_found: Whether the support log regex matched; None when no
                   regex is configured.
        today: Date used for board activity fields.
    """

    event: TriggerEvent
    issue: IssueSnapshot
    comments: Tuple[CommentSnapshot, ...]
    settings: TriageSettings
    sender: Actor
    has_privileged_participant: bool
    has_non_privileged_participant: bool
    managed: bool
    log_found: Optional[bool]
    today: date = field(default_factory=date.today)

    @property
    def labels(self):
        return self.settings.label

    def marked_comment(self, marker: str) -> Optional[CommentSnapshot]:
        """The most recent comment carrying one of the action's markers."""
        for comment in reversed(self.comments):
            if marker in comment.body:
                return comment
        return None
