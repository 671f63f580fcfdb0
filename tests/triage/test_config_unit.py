"""Unit tests for TriageSettings and the job environment."""

import os
import re

import pytest

from src.triage.config import (
    IssueStateFilter,
    PermissionLevel,
    TriageSettings,
    load_environment,
    load_settings,
)
from src.triage.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test without TRIAGE_ or GITHUB_ variables."""
    for name in list(os.environ):
        if name.startswith(("TRIAGE_", "GITHUB_")):
            monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_token_only(self, monkeypatch):
        monkeypatch.setenv("TRIAGE_TOKEN", "  ghp_abc  ")

        settings = load_settings()

        assert settings.token == "ghp_abc"
        assert settings.github_base_url == "https://api.github.com"
        assert settings.label.awaiting == "awaiting-user-feedback"
        assert settings.label.log_required == "needs-support-log"
        assert settings.label.exempt == ""
        assert settings.log.pattern is None
        assert settings.user.privileged_permission == PermissionLevel.WRITE
        assert settings.issue.state == IssueStateFilter.ALL
        assert not settings.project.enabled
        assert settings.project_token == "ghp_abc"
        assert settings.verbose is False
        assert settings.dry_run is False
        assert settings.deadline_seconds == 600

    def test_settings_are_frozen(self, monkeypatch):
        monkeypatch.setenv("TRIAGE_TOKEN", "ghp_abc")
        settings = load_settings()

        with pytest.raises(Exception):
            settings.token = "other"


class TestNestedVariables:
    def test_sections_read_from_double_underscore_names(self, monkeypatch):
        monkeypatch.setenv("TRIAGE_TOKEN", "ghp_abc")
        monkeypatch.setenv("TRIAGE_LABEL__AWAITING", " waiting ")
        monkeypatch.setenv("TRIAGE_LABEL__EXEMPT", "wontfix")
        monkeypatch.setenv("TRIAGE_LOG__REGEX", r"LOGID-\d+")
        monkeypatch.setenv("TRIAGE_USER__ASSIGN", "maintainer")
        monkeypatch.setenv("TRIAGE_USER__BOTS", "ci-robot, , helper")
        monkeypatch.setenv("TRIAGE_USER__PRIVILEGED_PERMISSION", "Triage")
        monkeypatch.setenv("TRIAGE_ISSUE__STATE", "OPEN")
        monkeypatch.setenv("TRIAGE_PROJECT__URL", "https://github.com/orgs/acme/projects/3")
        monkeypatch.setenv("TRIAGE_PROJECT__TOKEN", "ghp_project")
        monkeypatch.setenv("TRIAGE_PROJECT__STATUS__IN_PROGRESS", "Doing")
        monkeypatch.setenv("TRIAGE_VERBOSE", "true")

        settings = load_settings()

        assert settings.label.awaiting == "waiting"
        assert settings.label.exempt == "wontfix"
        assert settings.log.pattern == re.compile(r"LOGID-\d+")
        assert settings.user.assign == "maintainer"
        assert settings.user.bot_logins == ["ci-robot", "helper"]
        assert settings.user.privileged_permission == PermissionLevel.TRIAGE
        assert settings.issue.state == IssueStateFilter.OPEN
        assert settings.project.enabled
        assert settings.project_token == "ghp_project"
        assert settings.project.status.in_progress == "Doing"
        assert settings.project.status.new == "New"
        assert settings.verbose is True

    def test_empty_regex_disables_log_checks(self, monkeypatch):
        monkeypatch.setenv("TRIAGE_TOKEN", "ghp_abc")
        monkeypatch.setenv("TRIAGE_LOG__REGEX", "   ")

        assert load_settings().log.pattern is None


class TestValidation:
    def test_missing_token(self):
        with pytest.raises(ConfigurationError) as excinfo:
            load_settings()

        assert "token" in excinfo.value.message

    def test_blank_token(self, monkeypatch):
        monkeypatch.setenv("TRIAGE_TOKEN", "   ")

        with pytest.raises(ConfigurationError):
            load_settings()

    def test_invalid_regex(self, monkeypatch):
        monkeypatch.setenv("TRIAGE_TOKEN", "ghp_abc")
        monkeypatch.setenv("TRIAGE_LOG__REGEX", "LOGID-(")

        with pytest.raises(ConfigurationError) as excinfo:
            load_settings()

        assert "regular expression" in excinfo.value.message

    @pytest.mark.parametrize(
        "name, value",
        [
            ("TRIAGE_ISSUE__STATE", "merged"),
            ("TRIAGE_USER__PRIVILEGED_PERMISSION", "owner"),
            ("TRIAGE_VERBOSE", "sometimes"),
            ("TRIAGE_DRY_RUN", "perhaps"),
            ("TRIAGE_DEADLINE_SECONDS", "0"),
            ("TRIAGE_GITHUB_BASE_URL", "api.github.com"),
        ],
    )
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv("TRIAGE_TOKEN", "ghp_abc")
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError):
            load_settings()


class TestPermissionLevel:
    def test_ordering(self):
        assert PermissionLevel.ADMIN.at_least(PermissionLevel.WRITE)
        assert PermissionLevel.MAINTAIN.at_least(PermissionLevel.WRITE)
        assert PermissionLevel.WRITE.at_least(PermissionLevel.WRITE)
        assert not PermissionLevel.TRIAGE.at_least(PermissionLevel.WRITE)
        assert not PermissionLevel.NONE.at_least(PermissionLevel.READ)


class TestActionEnvironment:
    def test_reads_runner_variables(self, monkeypatch, tmp_path):
        event_path = tmp_path / "event.json"
        monkeypatch.setenv("GITHUB_EVENT_NAME", "issues")
        monkeypatch.setenv("GITHUB_EVENT_PATH", str(event_path))
        monkeypatch.setenv("GITHUB_REPOSITORY", "acme/widgets")

        environment = load_environment()

        assert environment.github_event_name == "issues"
        assert environment.github_event_path == event_path
        assert environment.owner == "acme"
        assert environment.repo == "widgets"
        assert environment.github_output is None

    def test_malformed_repository(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GITHUB_EVENT_NAME", "issues")
        monkeypatch.setenv("GITHUB_EVENT_PATH", str(tmp_path / "event.json"))
        monkeypatch.setenv("GITHUB_REPOSITORY", "widgets")

        with pytest.raises(ConfigurationError):
            load_environment()

    def test_missing_variables(self):
        with pytest.raises(ConfigurationError):
            load_environment()


def test_settings_can_be_built_directly():
    settings = TriageSettings(token="ghp_abc", label={"awaiting": "waiting"})

    assert settings.label.awaiting == "waiting"
    assert settings.label.log_required == "needs-support-log"
