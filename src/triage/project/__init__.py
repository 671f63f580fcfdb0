"""GitHub Projects (v2) board synchronization.

Derives a canonical board status from an issue and mirrors it, with the
issue's activity dates, to the issue's card on a project board.
"""

from src.triage.project.board import BoardLayout, ProjectBoard, parse_project_url
from src.triage.project.status import ProjectStatus, derive_status, option_name

__all__ = [
    "BoardLayout",
    "ProjectBoard",
    "ProjectStatus",
    "derive_status",
    "option_name",
    "parse_project_url",
]
