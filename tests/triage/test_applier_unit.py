"""Unit tests for the TransitionApplier."""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, call

import pytest

from src.triage.applier import TransitionApplier
from src.triage.github.client import GitHubAPIError
from src.triage.models import IssueSnapshot, IssueState
from src.triage.project.status import ProjectStatus
from src.triage.rules import (
    AddAssignees,
    AddLabel,
    CreateComment,
    RemoveAssignees,
    RemoveLabel,
    SetIssueState,
    SetProjectStatus,
    UpdateComment,
)


def run_async(coro):
    return asyncio.run(coro)


def _make_issue(**overrides) -> IssueSnapshot:
    values = {"number": 42, "labels": ["bug"], "assignees": [], "author": "alice"}
    values.update(overrides)
    return IssueSnapshot(**values)


@pytest.fixture
def github_client():
    return AsyncMock()


@pytest.fixture
def applier(github_client):
    return TransitionApplier(github_client, "acme", "widgets")


class TestApply:
    def test_applies_each_intent_once(self, applier, github_client):
        issue = _make_issue(state=IssueState.CLOSED)
        intents = [
            CreateComment("hello"),
            AddLabel("needs-log"),
            SetIssueState(IssueState.OPEN),
            AddAssignees(("dev",)),
        ]

        final = run_async(applier.apply(issue, intents))

        github_client.update_issue_state.assert_awaited_once_with("acme", "widgets", 42, "open")
        github_client.add_assignees.assert_awaited_once_with("acme", "widgets", 42, ["dev"])
        github_client.add_labels.assert_awaited_once_with("acme", "widgets", 42, ["needs-log"])
        github_client.create_comment.assert_awaited_once_with("acme", "widgets", 42, "hello")
        assert final.state == IssueState.OPEN
        assert final.labels == ["bug", "needs-log"]
        assert final.assignees == ["dev"]

    def test_applies_in_fixed_order(self, applier, github_client):
        issue = _make_issue(state=IssueState.CLOSED, labels=["awaiting"], assignees=["dev"])
        intents = [
            CreateComment("bye"),
            RemoveLabel("awaiting"),
            RemoveAssignees(("dev",)),
            SetIssueState(IssueState.OPEN),
        ]

        run_async(applier.apply(issue, intents))

        names = [c[0] for c in github_client.method_calls]
        assert names == ["update_issue_state", "remove_assignees", "remove_label", "create_comment"]

    def test_noops_make_no_calls(self, applier, github_client):
        issue = _make_issue(labels=["bug"], assignees=["dev"])
        intents = [
            SetIssueState(IssueState.OPEN),
            AddLabel("bug"),
            AddLabel(""),
            RemoveLabel("awaiting"),
            AddAssignees(("dev",)),
            RemoveAssignees(("lead",)),
        ]

        final = run_async(applier.apply(issue, intents))

        assert github_client.method_calls == []
        assert final == issue

    def test_second_application_is_a_noop(self, applier, github_client):
        issue = _make_issue()
        intents = [AddLabel("awaiting"), AddAssignees(("dev",))]

        once = run_async(applier.apply(issue, intents))
        github_client.reset_mock()
        twice = run_async(applier.apply(once, intents))

        assert github_client.method_calls == []
        assert twice == once

    def test_only_missing_assignees_are_sent(self, applier, github_client):
        issue = _make_issue(assignees=["dev"])

        run_async(applier.apply(issue, [AddAssignees(("dev", "lead"))]))

        github_client.add_assignees.assert_awaited_once_with("acme", "widgets", 42, ["lead"])

    def test_update_comment(self, applier, github_client):
        run_async(applier.apply(_make_issue(), [UpdateComment(comment_id=7, body="new")]))

        github_client.update_comment.assert_awaited_once_with("acme", "widgets", 7, "new")

    def test_failure_keeps_earlier_mutations(self, applier, github_client):
        github_client.add_labels.side_effect = GitHubAPIError("boom", status_code=500)
        issue = _make_issue(state=IssueState.CLOSED)

        with pytest.raises(GitHubAPIError):
            run_async(applier.apply(issue, [AddLabel("x"), SetIssueState(IssueState.OPEN)]))

        github_client.update_issue_state.assert_awaited_once()


class TestDryRun:
    def test_logs_without_calling_api(self, github_client):
        applier = TransitionApplier(github_client, "acme", "widgets", dry_run=True)

        final = run_async(applier.apply(_make_issue(), [AddLabel("needs-log")]))

        assert github_client.method_calls == []
        assert final.labels == ["bug", "needs-log"]


class TestProjectStatus:
    def test_syncs_board(self, github_client):
        board = AsyncMock()
        applier = TransitionApplier(github_client, "acme", "widgets", board=board)
        issue = _make_issue()
        intent = SetProjectStatus(
            status="in-progress", start_date=date(2024, 5, 1), end_date=date(2024, 6, 1)
        )

        run_async(applier.apply(issue, [intent]))

        assert board.sync.await_args == call(
            issue,
            ProjectStatus.IN_PROGRESS,
            start_date=date(2024, 5, 1),
            end_date=date(2024, 6, 1),
        )

    def test_without_board_status_is_dropped(self, applier, github_client):
        intent = SetProjectStatus(status="new", start_date=date(2024, 5, 1), end_date=date(2024, 6, 1))

        run_async(applier.apply(_make_issue(), [intent]))

        assert github_client.method_calls == []
