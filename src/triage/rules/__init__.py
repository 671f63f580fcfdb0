"""Issue state evaluation.

Facts about an issue and its participants are gathered once per issue;
a static rule table turns them into intents, single mutations that the
applier executes idempotently.
"""

from src.triage.rules.engine import RULES, Rule, evaluate
from src.triage.rules.facts import gather_facts, is_managed, scan_participants
from src.triage.rules.models import (
    AddAssignees,
    AddLabel,
    CreateComment,
    Facts,
    Intent,
    RemoveAssignees,
    RemoveLabel,
    SetIssueState,
    SetProjectStatus,
    UpdateComment,
    in_apply_order,
    project_issue,
)

__all__ = [
    "AddAssignees",
    "AddLabel",
    "CreateComment",
    "Facts",
    "Intent",
    "RULES",
    "RemoveAssignees",
    "RemoveLabel",
    "Rule",
    "SetIssueState",
    "SetProjectStatus",
    "UpdateComment",
    "evaluate",
    "gather_facts",
    "in_apply_order",
    "is_managed",
    "project_issue",
    "scan_participants",
]
