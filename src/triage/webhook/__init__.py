"""Trigger event handling for the triage action.

This module parses the GitHub event that started the run, specifically:
- issues.* - Issue opened, edited, closed, reopened, labeled, ...
- issue_comment.* - Comment created or edited on an issue
- workflow_dispatch / schedule - Sweep every issue of the repository
"""

from .handler import WebhookHandler
from .models import EventName, IssueAction, TriggerEvent

__all__ = [
    "EventName",
    "IssueAction",
    "TriggerEvent",
    "WebhookHandler",
]
