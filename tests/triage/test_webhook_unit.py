"""Unit and property tests for event payload parsing."""

import json

import pytest
from hypothesis import given, settings, strategies as st

from src.triage.errors import MalformedPayloadError, UnsupportedEventError
from src.triage.models import IssueState
from src.triage.webhook import EventName, IssueAction, WebhookHandler


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def _make_issue(number: int = 42, state: str = "open", **overrides) -> dict:
    issue = {
        "number": number,
        "node_id": f"I_kw{number}",
        "state": state,
        "title": "Crash on start",
        "body": "no log here",
        "labels": [{"name": "bug"}],
        "assignees": [{"login": "maintainer"}],
        "user": {"login": "alice"},
        "created_at": "2024-05-01T10:00:00Z",
        "updated_at": "2024-05-02T10:00:00Z",
    }
    issue.update(overrides)
    return issue


def _make_payload(action: str = "opened", sender: str = "alice", **overrides) -> dict:
    payload = {
        "action": action,
        "issue": _make_issue(),
        "repository": {"name": "widgets", "owner": {"login": "acme"}},
        "sender": {"login": sender},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def handler():
    return WebhookHandler(default_repository="acme/widgets")


# ---------------------------------------------------------------------------
# Issue events
# ---------------------------------------------------------------------------


class TestIssueEvents:
    def test_parses_opened_issue(self, handler):
        event = handler.parse("issues", _make_payload())

        assert event.event_name == EventName.ISSUES
        assert event.is_action(IssueAction.OPENED)
        assert event.full_repository == "acme/widgets"
        assert event.sender == "alice"
        assert event.issue.number == 42
        assert event.issue.state == IssueState.OPEN
        assert event.issue.labels == ["bug"]
        assert event.issue.assignees == ["maintainer"]
        assert event.issue.author == "alice"
        assert event.issue.node_id == "I_kw42"
        assert event.body == "no log here"
        assert not event.is_sweep

    def test_unknown_actions_are_kept(self, handler):
        event = handler.parse("issues", _make_payload(action="labeled"))

        assert event.action == "labeled"
        assert not event.is_action(IssueAction.OPENED)

    def test_null_body_becomes_empty(self, handler):
        payload = _make_payload(issue=_make_issue(body=None))

        assert handler.parse("issues", payload).issue.body == ""

    def test_pull_request_is_flagged(self, handler):
        payload = _make_payload(issue=_make_issue(pull_request={"url": "..."}))

        assert handler.parse("issues", payload).issue.is_pull_request


class TestCommentEvents:
    def test_body_comes_from_comment(self, handler):
        payload = _make_payload(
            action="created",
            comment={"id": 9, "body": "LOGID-123", "user": {"login": "alice"}},
        )

        event = handler.parse("issue_comment", payload)

        assert event.event_name == EventName.ISSUE_COMMENT
        assert event.is_action(IssueAction.CREATED)
        assert event.comment.id == 9
        assert event.comment.author == "alice"
        assert event.body == "LOGID-123"

    def test_missing_comment(self, handler):
        with pytest.raises(MalformedPayloadError):
            handler.parse("issue_comment", _make_payload(action="created"))


class TestSweepEvents:
    @pytest.mark.parametrize("name", ["workflow_dispatch", "schedule"])
    def test_sweeps_need_no_issue(self, name):
        handler = WebhookHandler(default_repository="acme/widgets")

        event = handler.parse(name, {})

        assert event.is_sweep
        assert event.is_action(IssueAction.SWEEP)
        assert event.issue is None
        assert event.full_repository == "acme/widgets"


class TestMalformedPayloads:
    def test_unsupported_event(self, handler):
        with pytest.raises(UnsupportedEventError) as excinfo:
            handler.parse("pull_request", _make_payload())

        assert excinfo.value.event_name == "pull_request"

    @pytest.mark.parametrize("payload", [None, [], "issue"])
    def test_payload_must_be_an_object(self, handler, payload):
        with pytest.raises(MalformedPayloadError):
            handler.parse("issues", payload)

    def test_missing_issue(self, handler):
        payload = _make_payload()
        del payload["issue"]

        with pytest.raises(MalformedPayloadError):
            handler.parse("issues", payload)

    def test_missing_issue_number(self, handler):
        issue = _make_issue()
        del issue["number"]

        with pytest.raises(MalformedPayloadError):
            handler.parse("issues", _make_payload(issue=issue))

    def test_missing_action(self, handler):
        payload = _make_payload()
        del payload["action"]

        with pytest.raises(MalformedPayloadError):
            handler.parse("issues", payload)

    def test_missing_sender(self, handler):
        payload = _make_payload()
        del payload["sender"]

        with pytest.raises(MalformedPayloadError):
            handler.parse("issues", payload)

    def test_missing_repository_without_default(self):
        payload = _make_payload()
        del payload["repository"]

        with pytest.raises(MalformedPayloadError):
            WebhookHandler().parse("issues", payload)


class TestLoad:
    def test_reads_payload_file(self, handler, tmp_path):
        path = tmp_path / "event.json"
        path.write_text(json.dumps(_make_payload()), encoding="utf-8")

        event = handler.load("issues", path)

        assert event.issue.number == 42

    def test_invalid_json(self, handler, tmp_path):
        path = tmp_path / "event.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(MalformedPayloadError):
            handler.load("issues", path)

    def test_missing_file(self, handler, tmp_path):
        with pytest.raises(MalformedPayloadError):
            handler.load("issues", tmp_path / "missing.json")


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


logins = st.text(
    alphabet="abcdefghijklmnopqrstuvwxyz0123456789-",
    min_size=1,
    max_size=39,
).filter(lambda x: not x.startswith("-") and not x.endswith("-"))

label_names = st.text(
    alphabet="abcdefghijklmnopqrstuvwxyz-: ",
    min_size=0,
    max_size=20,
)


@settings(max_examples=100)
@given(
    number=st.integers(min_value=1, max_value=10**6),
    labels=st.lists(label_names, max_size=8),
    sender=logins,
    state=st.sampled_from(["open", "closed"]),
)
def test_parsed_issue_mirrors_payload(number, labels, sender, state):
    """Labels come out stripped, non-empty and de-duplicated, in payload order."""
    payload = _make_payload(
        sender=sender,
        issue=_make_issue(number=number, state=state, labels=[{"name": n} for n in labels]),
    )

    event = WebhookHandler().parse("issues", payload)

    expected = list(dict.fromkeys(n.strip() for n in labels if n.strip()))
    assert event.issue.number == number
    assert event.issue.state.value == state
    assert event.issue.labels == expected
    assert event.sender == sender
