"""GitHub event payload parsing for the triage action.

This module provides the WebhookHandler class that turns the event payload
GitHub Actions writes to GITHUB_EVENT_PATH into a TriggerEvent.

GitHub Webhook Payload Structure (issue_comment event):
{
  "action": "created",
  "issue": {
    "number": 123,
    "state": "open",
    "body": "Issue body",
    "labels": [{"name": "bug"}],
    "assignees": [{"login": "maintainer"}],
    "user": {"login": "reporter"}
  },
  "comment": {"id": 456, "body": "Comment body", "user": {"login": "reporter"}},
  "repository": {"name": "repo-name", "owner": {"login": "owner-name"}},
  "sender": {"login": "reporter"}
}

Unlike a long-running receiver, the action has exactly one event to handle,
so a payload that cannot be parsed is a fatal error rather than an
ignored delivery.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import structlog
from pydantic import ValidationError

from src.triage.errors import MalformedPayloadError, UnsupportedEventError
from src.triage.models import CommentSnapshot, IssueSnapshot
from src.triage.webhook.models import EventName, IssueAction, TriggerEvent

logger = structlog.get_logger()


class WebhookHandler:
    """Parser for the event payload of a triage run.

    Attributes:
        default_repository: "owner/repo" used when the payload does not
                            carry a repository object.
    """

    def __init__(self, default_repository: Optional[str] = None) -> None:
        self.default_repository = default_repository

    def load(self, event_name: str, event_path: Path) -> TriggerEvent:
        """Read and parse the payload file GitHub Actions provides.

        Raises:
            MalformedPayloadError: If the file is not a JSON object.
            UnsupportedEventError: If the event name is not supported.
        """
        try:
            payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise MalformedPayloadError(f"Cannot read event payload {event_path}: {e}") from e
        return self.parse(event_name, payload)

    def parse(self, event_name: str, payload: Any) -> TriggerEvent:
        """Parse a GitHub event payload.

        Args:
            event_name: The GitHub event name (GITHUB_EVENT_NAME).
            payload: The decoded event payload.

        Returns:
            The parsed TriggerEvent.

        Raises:
            UnsupportedEventError: If the event name is not supported.
            MalformedPayloadError: If an issue event has no resolvable issue
                                   or required fields are missing.
        """
        try:
            name = EventName(event_name)
        except ValueError:
            raise UnsupportedEventError(event_name) from None

        if not isinstance(payload, dict):
            raise MalformedPayloadError(
                f"Invalid payload: expected object, got {type(payload).__name__}"
            )

        owner, repository = self._extract_repository(payload)
        sender = self._extract_user_login(payload.get("sender"))

        if name.is_sweep:
            event = TriggerEvent(
                event_name=name,
                action=IssueAction.SWEEP.value,
                owner=owner,
                repository=repository,
                sender=sender,
            )
            logger.info("Parsed sweep event", event_name=name.value, repository=event.full_repository)
            return event

        action = payload.get("action")
        if not isinstance(action, str) or not action.strip():
            raise MalformedPayloadError("Missing 'action' field in payload")

        issue_data = payload.get("issue")
        if not isinstance(issue_data, dict):
            raise MalformedPayloadError("Missing or invalid 'issue' field in payload")

        try:
            issue = IssueSnapshot.from_github(issue_data)
            comment = None
            if name == EventName.ISSUE_COMMENT:
                comment_data = payload.get("comment")
                if not isinstance(comment_data, dict):
                    raise MalformedPayloadError("Missing or invalid 'comment' field in payload")
                comment = CommentSnapshot.from_github(comment_data)
        except (KeyError, TypeError, ValidationError) as e:
            raise MalformedPayloadError(f"Invalid issue data in payload: {e}") from e

        if not sender:
            raise MalformedPayloadError("Missing 'sender' field in payload")

        event = TriggerEvent(
            event_name=name,
            action=action.strip(),
            owner=owner,
            repository=repository,
            sender=sender,
            issue=issue,
            comment=comment,
        )

        logger.info(
            "Parsed issue event",
            event_name=name.value,
            action=event.action,
            issue_number=issue.number,
            sender=sender,
        )
        return event

    def _extract_repository(self, payload: Dict[str, Any]) -> Tuple[str, str]:
        repo_data = payload.get("repository")
        if isinstance(repo_data, dict):
            repo_name = repo_data.get("name")
            owner = self._extract_user_login(repo_data.get("owner"))
            if isinstance(repo_name, str) and repo_name.strip() and owner:
                return owner, repo_name.strip()

        if self.default_repository and "/" in self.default_repository:
            owner, _, repo_name = self.default_repository.partition("/")
            return owner, repo_name

        raise MalformedPayloadError("Missing or invalid 'repository' field in payload")

    def _extract_user_login(self, user_data: Any) -> str:
        if isinstance(user_data, dict):
            login = user_data.get("login")
            if isinstance(login, str):
                return login.strip()
        return ""
