"""Fact gathering for the triage rule engine.

Everything that needs the network (permission lookups) happens here, once,
before the rules run. The resulting Facts object is immutable, so the rule
table itself stays pure.

Source:
- src/triage/actors/classifier.py (ActorClassifier)
- src/triage/rules/models.py (Facts)
"""

from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from src.triage.actors.classifier import ActorClassifier
from src.triage.config import LabelSettings, TriageSettings
from src.triage.models import CommentSnapshot, IssueSnapshot
from src.triage.rules.models import Facts
from src.triage.webhook.models import TriggerEvent


logger = structlog.get_logger()


def is_managed(
    issue: IssueSnapshot,
    labels: LabelSettings,
    has_non_privileged_participant: bool,
) -> bool:
    """Decide whether the triage rules apply to an issue.

    An issue is managed when a non-maintainer has touched it, it does not
    carry the exempt label, and, when an active label is configured, it
    carries that label.
    """
    if not has_non_privileged_participant:
        return False
    if issue.has_label(labels.exempt):
        return False
    if labels.active and not issue.has_label(labels.active):
        return False
    return True


def sweep_sender(
    issue: IssueSnapshot,
    comments: Sequence[CommentSnapshot],
    classifier: ActorClassifier,
) -> str:
    """Who spoke last on an issue, ignoring bots.

    A sweep has no triggering user, so the most recent human comment author
    (else the issue author) stands in for the sender.
    """
    for comment in reversed(comments):
        if comment.author and not classifier.is_bot(comment.author):
            return comment.author
    return issue.author


def _participants(sender: str, issue: IssueSnapshot, comments: Iterable[CommentSnapshot]) -> List[str]:
    seen = {}
    for login in [sender, issue.author] + [c.author for c in comments]:
        if login and login.lower() not in seen:
            seen[login.lower()] = login
    return list(seen.values())


async def scan_participants(
    participants: Sequence[str],
    classifier: ActorClassifier,
) -> Tuple[bool, bool]:
    """Find whether maintainers and non-maintainers took part.

    Stops at the shortest prefix of the participant list that establishes
    both facts, which bounds the number of permission lookups. Bots are
    skipped.

    Returns:
        (has_privileged_participant, has_non_privileged_participant)
    """
    privileged = False
    non_privileged = False
    for login in participants:
        if classifier.is_bot(login):
            continue
        if await classifier.is_privileged(login):
            privileged = True
        else:
            non_privileged = True
        if privileged and non_privileged:
            break
    return privileged, non_privileged


def find_log(
    event: TriggerEvent,
    issue: IssueSnapshot,
    comments: Sequence[CommentSnapshot],
    settings: TriageSettings,
) -> Optional[bool]:
    """Search for the support log pattern.

    Webhook events search the text the event contributed; sweeps search the
    issue body and the whole comment thread.

    Returns:
        None when no log regex is configured, else whether it matched.
    """
    pattern = settings.log.pattern
    if pattern is None:
        return None

    if event.is_sweep:
        texts = [issue.body] + [c.body for c in comments]
    else:
        texts = [event.body]
    return any(pattern.search(text) for text in texts if text)


async def gather_facts(
    event: TriggerEvent,
    issue: IssueSnapshot,
    comments: Sequence[CommentSnapshot],
    classifier: ActorClassifier,
    settings: TriageSettings,
    today: Optional[date] = None,
) -> Facts:
    """Build the Facts snapshot for one issue.

    Args:
        event: The trigger of the run.
        issue: The issue to evaluate.
        comments: The issue's comments, oldest first.
        classifier: Run-scoped actor classifier.
        settings: Run configuration.
        today: Override for the activity date (tests).

    Returns:
        Facts ready for evaluate().
    """
    sender_login = event.sender
    if event.is_sweep:
        sender_login = sweep_sender(issue, comments, classifier)

    sender = await classifier.classify(sender_login)

    participants = [
        login
        for login in _participants(sender_login, issue, comments)
        if not classifier.is_bot(login)
    ]
    privileged, non_privileged = await scan_participants(participants, classifier)
    managed = is_managed(issue, settings.label, non_privileged)
    log_found = find_log(event, issue, comments, settings)

    logger.debug(
        "Gathered facts",
        issue_number=issue.number,
        sender=sender.login,
        sender_is_bot=sender.is_bot,
        sender_privileged=sender.is_privileged,
        has_privileged_participant=privileged,
        has_non_privileged_participant=non_privileged,
        managed=managed,
        log_found=log_found,
        permission_lookups=len(classifier.cache),
    )

    return Facts(
        event=event,
        issue=issue,
        comments=tuple(comments),
        settings=settings,
        sender=sender,
        has_privileged_participant=privileged,
        has_non_privileged_participant=non_privileged,
        managed=managed,
        log_found=log_found,
        today=today or date.today(),
    )
