"""Unit tests for issue snapshots and intent projection."""

from datetime import date

import pytest
from pydantic import ValidationError

from src.triage.models import CommentSnapshot, IssueSnapshot, IssueState
from src.triage.rules import (
    AddAssignees,
    AddLabel,
    CreateComment,
    RemoveAssignees,
    RemoveLabel,
    SetIssueState,
    SetProjectStatus,
    in_apply_order,
    project_issue,
)
from src.triage.rules.models import render_template


class TestIssueSnapshot:
    def test_from_github_accepts_string_labels(self):
        issue = IssueSnapshot.from_github(
            {"number": 3, "labels": ["bug", {"name": " ui "}, {"name": ""}, "bug"], "user": None}
        )

        assert issue.labels == ["bug", "ui"]
        assert issue.author == ""

    def test_number_must_be_positive(self):
        with pytest.raises(ValidationError):
            IssueSnapshot(number=0)

    def test_empty_label_is_never_present(self):
        assert not IssueSnapshot(number=1, labels=["bug"]).has_label("")

    def test_snapshot_is_frozen(self):
        issue = IssueSnapshot(number=1)

        with pytest.raises(ValidationError):
            issue.state = IssueState.CLOSED

    def test_comment_from_github(self):
        comment = CommentSnapshot.from_github(
            {"id": 5, "body": None, "user": {"login": "bob"}, "created_at": "2024-01-01T00:00:00Z"}
        )

        assert comment.author == "bob"
        assert comment.body == ""
        assert comment.created_at.year == 2024


class TestIntents:
    def test_apply_order_is_stable_within_rank(self):
        intents = [
            CreateComment("c"),
            RemoveLabel("b"),
            AddLabel("a"),
            AddAssignees(("dev",)),
            SetIssueState(IssueState.OPEN),
            SetProjectStatus(status="new", start_date=date(2024, 1, 1), end_date=date(2024, 1, 2)),
        ]

        ordered = in_apply_order(intents)

        assert [type(i).__name__ for i in ordered] == [
            "SetIssueState",
            "AddAssignees",
            "RemoveLabel",
            "AddLabel",
            "CreateComment",
            "SetProjectStatus",
        ]

    def test_projection(self):
        issue = IssueSnapshot(number=1, state=IssueState.CLOSED, labels=["a"], assignees=["dev", "lead"])

        after = project_issue(
            issue,
            [
                SetIssueState(IssueState.OPEN),
                RemoveAssignees(("dev",)),
                AddLabel("b"),
                AddLabel("a"),
                RemoveLabel("a"),
            ],
        )

        assert after.state == IssueState.OPEN
        assert after.assignees == ["lead"]
        assert after.labels == ["b"]
        assert issue.labels == ["a"]

    @pytest.mark.parametrize(
        "intent, noop",
        [
            (AddLabel("bug"), True),
            (AddLabel(""), True),
            (AddLabel("new"), False),
            (RemoveLabel("bug"), False),
            (RemoveLabel("absent"), True),
            (SetIssueState(IssueState.OPEN), True),
            (SetIssueState(IssueState.CLOSED), False),
            (AddAssignees(("dev",)), True),
            (AddAssignees(("dev", "lead")), False),
            (RemoveAssignees(("lead",)), True),
            (CreateComment("hi"), False),
        ],
    )
    def test_noops(self, intent, noop):
        issue = IssueSnapshot(number=1, labels=["bug"], assignees=["dev"])

        assert intent.is_noop(issue) is noop


def test_render_template():
    assert render_template("Hi @{{username}} and {{username}}", "alice") == "Hi @alice and alice"
