"""Triage rule engine.

The rules form a static, ordered table. Each rule is a pair of pure
functions, a condition and an action, both called with the immutable Facts
of the run and the issue as projected through the intents emitted by the
rules before it. The engine concatenates the actions' intents and returns
them in the fixed apply order.

Rules, in evaluation order:

    privileged-awaiting      maintainer activity on an open issue awaits the reporter
    privileged-closed        closing clears the awaiting and log labels
    reporter-close           a reporter closing a managed issue re-opens it
    reporter-comment-reopen  a reporter comment re-opens a closed issue
    log-found                a posted support log clears the log label
    log-missing              a new issue without a support log is flagged
    reporter-activity        reporter activity clears the awaiting label
    assign                   maintainer activity assigns open issues
    unassign-closed          closed issues drop their assignees
    project-status           derive the board status

Source:
- src/triage/rules/models.py (Facts, Intent variants)
- src/triage/project/status.py (derive_status)
"""

from dataclasses import dataclass
from typing import Callable, List

import structlog

from src.triage.models import IssueSnapshot, IssueState
from src.triage.project.status import derive_status, option_name
from src.triage.rules.models import (
    CLOSE_MARKER,
    LOG_MARKER,
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
    render_template,
)
from src.triage.webhook.models import EventName, IssueAction


logger = structlog.get_logger()


Condition = Callable[[Facts, IssueSnapshot], bool]
Action = Callable[[Facts, IssueSnapshot], List[Intent]]


@dataclass(frozen=True)
class Rule:
    """A named condition/action pair."""

    name: str
    condition: Condition
    action: Action


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _privileged(facts: Facts) -> bool:
    return facts.sender.is_privileged


def _reporter(facts: Facts) -> bool:
    return not facts.sender.is_bot and not facts.sender.is_privileged


def _comment(facts: Facts, marker: str, text: str) -> List[Intent]:
    """Post a marked comment, or update the previous one carrying the marker."""
    body = f"{marker}\n{text}"
    previous = facts.marked_comment(marker)
    if previous is None:
        return [CreateComment(body=body)]
    if previous.body == body:
        return []
    return [UpdateComment(comment_id=previous.id, body=body)]


# -----------------------------------------------------------------------------
# Maintainer activity
# -----------------------------------------------------------------------------


def _privileged_awaiting_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return (
        _privileged(facts)
        and not facts.event.is_action(IssueAction.EDITED)
        and facts.managed
        and issue.is_open
        and bool(facts.labels.awaiting)
    )


def _privileged_awaiting(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    return [AddLabel(facts.labels.awaiting)]


def _privileged_closed_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return (
        _privileged(facts)
        and facts.managed
        and issue.is_closed
        and bool(facts.labels.awaiting or facts.labels.log_required)
    )


def _privileged_closed(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    return [
        RemoveLabel(name)
        for name in (facts.labels.awaiting, facts.labels.log_required)
        if name
    ]


def _clear_awaiting(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    return [RemoveLabel(facts.labels.awaiting)]


# -----------------------------------------------------------------------------
# Reporter activity
# -----------------------------------------------------------------------------


def _reporter_close_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return (
        _reporter(facts)
        and facts.event.event_name == EventName.ISSUES
        and facts.event.is_action(IssueAction.CLOSED)
        and facts.managed
        and issue.is_closed
        and not issue.has_label(facts.labels.reopened)
        and bool(facts.settings.close.message.strip())
    )


def _reporter_close(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    message = render_template(facts.settings.close.message, facts.sender.login)
    return [SetIssueState(IssueState.OPEN)] + _comment(facts, CLOSE_MARKER, message)


def _reporter_comment_reopen_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return (
        _reporter(facts)
        and facts.event.event_name == EventName.ISSUE_COMMENT
        and facts.event.is_action(IssueAction.CREATED)
        and facts.managed
        and issue.is_closed
        and bool(facts.labels.reopened)
        and not issue.has_label(facts.labels.reopened)
    )


def _reporter_comment_reopen(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    return [SetIssueState(IssueState.OPEN), AddLabel(facts.labels.reopened)]


def _reporter_activity_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return (
        _reporter(facts)
        and facts.managed
        and not facts.event.is_action(IssueAction.OPENED)
        and bool(facts.labels.awaiting)
    )


# -----------------------------------------------------------------------------
# Support log
# -----------------------------------------------------------------------------


def _log_found_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return (
        _reporter(facts)
        and facts.managed
        and facts.log_found is True
        and bool(facts.labels.log_required)
    )


def _log_found(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    return [RemoveLabel(facts.labels.log_required)]


def _log_missing_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return (
        _reporter(facts)
        and facts.managed
        and facts.log_found is False
        and facts.event.is_action(IssueAction.OPENED)
        and not issue.has_label(facts.labels.log_required)
    )


def _log_missing(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    intents: List[Intent] = []
    if facts.labels.log_required:
        intents.append(AddLabel(facts.labels.log_required))
    message = facts.settings.log.message.strip()
    if message:
        intents.extend(
            _comment(facts, LOG_MARKER, render_template(message, facts.sender.login))
        )
    return intents


# -----------------------------------------------------------------------------
# Assignment
# -----------------------------------------------------------------------------


def _assign_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return (
        bool(facts.settings.user.assign)
        and issue.is_open
        and not issue.assignees
        and facts.has_privileged_participant
    )


def _assign(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    if facts.sender.is_privileged:
        assignee = facts.sender.login
    else:
        assignee = facts.settings.user.assign
    return [AddAssignees((assignee,))]


def _unassign_closed_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return bool(facts.settings.user.assign) and issue.is_closed and bool(issue.assignees)


def _unassign_closed(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    return [RemoveAssignees(tuple(issue.assignees))]


# -----------------------------------------------------------------------------
# Project board
# -----------------------------------------------------------------------------


def _project_status_when(facts: Facts, issue: IssueSnapshot) -> bool:
    return facts.settings.project.enabled


def _project_status(facts: Facts, issue: IssueSnapshot) -> List[Intent]:
    status = derive_status(issue, facts.labels, facts.has_privileged_participant)
    if status is None or not option_name(status, facts.settings.project.status):
        return []
    start = issue.created_at.date() if issue.created_at else facts.today
    return [SetProjectStatus(status=status.value, start_date=start, end_date=facts.today)]


RULES: List[Rule] = [
    Rule("privileged-awaiting", _privileged_awaiting_when, _privileged_awaiting),
    Rule("privileged-closed", _privileged_closed_when, _privileged_closed),
    Rule("reporter-close", _reporter_close_when, _reporter_close),
    Rule("reporter-comment-reopen", _reporter_comment_reopen_when, _reporter_comment_reopen),
    Rule("log-found", _log_found_when, _log_found),
    Rule("log-missing", _log_missing_when, _log_missing),
    Rule("reporter-activity", _reporter_activity_when, _clear_awaiting),
    Rule("assign", _assign_when, _assign),
    Rule("unassign-closed", _unassign_closed_when, _unassign_closed),
    Rule("project-status", _project_status_when, _project_status),
]


def evaluate(facts: Facts, rules: List[Rule] = RULES) -> List[Intent]:
    """Run the rule table against a Facts snapshot.

    Args:
        facts: The snapshot to evaluate.
        rules: The rule table; defaults to RULES.

    Returns:
        The intents of every matching rule, in apply order.
    """
    if facts.sender.is_bot:
        logger.info(
            "Ignoring bot activity",
            issue_number=facts.issue.number,
            sender=facts.sender.login,
        )
        return []

    intents: List[Intent] = []
    issue = facts.issue
    for rule in rules:
        if not rule.condition(facts, issue):
            continue
        produced = rule.action(facts, issue)
        logger.debug(
            "Rule matched",
            rule=rule.name,
            issue_number=facts.issue.number,
            intents=[repr(intent) for intent in produced],
        )
        intents.extend(produced)
        for intent in produced:
            issue = intent.apply_to(issue)

    return in_apply_order(intents)
