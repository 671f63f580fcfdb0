"""Trigger event models for the triage action.

This module defines the data models for the GitHub events that start a
triage run: issue and issue comment webhooks, and the manual or scheduled
repository sweep.

The models use Pydantic for validation, consistent with the action's
configuration approach in config.py.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.triage.models import CommentSnapshot, IssueSnapshot


class EventName(str, Enum):
    """GitHub event names the action can be triggered by.

    Attributes:
        ISSUES: Issue opened, edited, closed, labeled and so on.
        ISSUE_COMMENT: Comment created, edited or deleted on an issue.
        WORKFLOW_DISPATCH: Manual run; sweeps every matching issue.
        SCHEDULE: Cron run; sweeps every matching issue.
    """

    ISSUES = "issues"
    ISSUE_COMMENT = "issue_comment"
    WORKFLOW_DISPATCH = "workflow_dispatch"
    SCHEDULE = "schedule"

    @property
    def is_sweep(self) -> bool:
        return self in (EventName.WORKFLOW_DISPATCH, EventName.SCHEDULE)


class IssueAction(str, Enum):
    """Event actions the triage rules distinguish.

    Webhooks carry many more actions (labeled, assigned, ...); those are
    kept as plain strings on TriggerEvent and only matter to rules that
    apply to "any action".
    """

    OPENED = "opened"
    EDITED = "edited"
    CLOSED = "closed"
    REOPENED = "reopened"
    CREATED = "created"
    SWEEP = "sweep"


class TriggerEvent(BaseModel):
    """Parsed trigger of a triage run.

    Attributes:
        event_name: The GitHub event name.
        action: The webhook action, or "sweep" for repository sweeps.
        owner: Repository owner (user or organization).
        repository: Repository name without owner prefix.
        sender: Login of the user whose activity triggered the event.
        issue: The issue the event is about; None for sweeps.
        comment: The comment for issue_comment events.
    """

    model_config = ConfigDict(frozen=True)

    event_name: EventName
    action: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    repository: str = Field(..., min_length=1)
    sender: str = ""
    issue: Optional[IssueSnapshot] = None
    comment: Optional[CommentSnapshot] = None

    @property
    def full_repository(self) -> str:
        return f"{self.owner}/{self.repository}"

    @property
    def is_sweep(self) -> bool:
        return self.event_name.is_sweep

    @property
    def body(self) -> str:
        """Text the event contributed: the comment body, else the issue body."""
        if self.comment is not None:
            return self.comment.body
        if self.issue is not None:
            return self.issue.body
        return ""

    def is_action(self, action: IssueAction) -> bool:
        return self.action == action.value
