"""Issue and comment snapshots.

Read-only views of the GitHub objects a single evaluation works on. The
triage run holds one IssueSnapshot per issue and replaces it with an
updated copy after every applied intent instead of re-fetching it.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IssueState(str, Enum):
    """Open/closed state of a GitHub issue."""

    OPEN = "open"
    CLOSED = "closed"


def _login(user: Any) -> str:
    if isinstance(user, dict):
        login = user.get("login")
        if isinstance(login, str):
            return login.strip()
    return ""


class CommentSnapshot(BaseModel):
    """A comment on an issue.

    Attributes:
        id: GitHub comment ID.
        author: Login of the comment author.
        body: Comment body text (may be empty).
        created_at: When the comment was posted.
        updated_at: When the comment was last edited.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    author: str = ""
    body: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_github(cls, data: Dict[str, Any]) -> "CommentSnapshot":
        """Build a snapshot from a REST comment object."""
        return cls(
            id=data["id"],
            author=_login(data.get("user")),
            body=data.get("body") or "",
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


class IssueSnapshot(BaseModel):
    """A tracked issue as seen at the start of an evaluation.

    Attributes:
        number: Issue number within the repository.
        state: Open or closed.
        title: Issue title.
        body: Issue body text (may be empty).
        labels: Label names, in GitHub's order, without duplicates.
        assignees: Logins of the assigned users.
        author: Login of the user who opened the issue.
        created_at: When the issue was opened.
        updated_at: When the issue was last updated.
        node_id: GraphQL node ID, needed to place the issue on a board.
        is_pull_request: True when the "issue" is a pull request.
    """

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., gt=0)
    state: IssueState = IssueState.OPEN
    title: str = ""
    body: str = ""
    labels: List[str] = Field(default_factory=list)
    assignees: List[str] = Field(default_factory=list)
    author: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    node_id: Optional[str] = None
    is_pull_request: bool = False

    @field_validator("labels", "assignees")
    @classmethod
    def dedupe(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(name for name in v if name))

    @classmethod
    def from_github(cls, data: Dict[str, Any]) -> "IssueSnapshot":
        """Build a snapshot from a REST or webhook issue object.

        Labels arrive as objects with a `name` member (or, in some
        payloads, as plain strings); assignees as user objects.
        """
        labels = []
        for label in data.get("labels") or []:
            if isinstance(label, dict):
                name = label.get("name")
            else:
                name = label
            if isinstance(name, str) and name.strip():
                labels.append(name.strip())

        return cls(
            number=data["number"],
            state=data.get("state") or IssueState.OPEN,
            title=data.get("title") or "",
            body=data.get("body") or "",
            labels=labels,
            assignees=[_login(user) for user in data.get("assignees") or []],
            author=_login(data.get("user")),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            node_id=data.get("node_id"),
            is_pull_request="pull_request" in data,
        )

    @property
    def is_open(self) -> bool:
        return self.state == IssueState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state == IssueState.CLOSED

    def has_label(self, name: str) -> bool:
        """Check if the issue has a label; an empty name is never present."""
        return bool(name) and name in self.labels
