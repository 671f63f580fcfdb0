"""Board status derivation.

Maps the state of an issue, after the triage intents have been projected
onto it, to one of the canonical board statuses:

    closed + merge label              -> merged
    closed otherwise                  -> (no update)
    open + log-required label         -> blocked
    open + assigned + awaiting label  -> awaiting
    open + assigned                   -> in-progress
    open + unassigned + maintainer    -> backlog
    open + unassigned                 -> new

The option each status is written as on the board comes from the
project.status settings.
"""

from enum import Enum
from typing import Optional

from src.triage.config import LabelSettings, ProjectStatusSettings
from src.triage.models import IssueSnapshot


class ProjectStatus(str, Enum):
    """Canonical board statuses."""

    NEW = "new"
    BACKLOG = "backlog"
    IN_PROGRESS = "in-progress"
    AWAITING = "awaiting"
    BLOCKED = "blocked"
    MERGED = "merged"


def derive_status(
    issue: IssueSnapshot,
    labels: LabelSettings,
    has_privileged_participant: bool,
) -> Optional[ProjectStatus]:
    """Derive the board status of an issue.

    Args:
        issue: The issue with this run's intents already projected.
        labels: Configured label names.
        has_privileged_participant: Whether a maintainer touched the issue.

    Returns:
        The status to write, or None when the card should be left alone.
    """
    if issue.is_closed:
        if issue.has_label(labels.merge):
            return ProjectStatus.MERGED
        return None

    if issue.has_label(labels.log_required):
        return ProjectStatus.BLOCKED

    if issue.assignees:
        if issue.has_label(labels.awaiting):
            return ProjectStatus.AWAITING
        return ProjectStatus.IN_PROGRESS

    if has_privileged_participant:
        return ProjectStatus.BACKLOG
    return ProjectStatus.NEW


def option_name(status: ProjectStatus, names: ProjectStatusSettings) -> str:
    """Board option configured for a status; empty when the status is disabled."""
    return getattr(names, status.name.lower()).strip()
