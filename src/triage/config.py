"""Triage configuration using pydantic-settings.

This module defines the TriageSettings class that reads the action inputs
from environment variables with the TRIAGE_ prefix. Nested sections use a
double underscore delimiter, e.g. TRIAGE_LABEL__AWAITING or
TRIAGE_PROJECT__STATUS__IN_PROGRESS. The action.yml at the repository root
maps the action inputs onto these variables.

The settings object is constructed once per run and passed explicitly to
every component; nothing below reads the environment directly.
"""

import re
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.triage.errors import ConfigurationError


USERNAME_PLACEHOLDER = "{{username}}"

DEFAULT_LOG_MESSAGE = (
    "Hi @{{username}}, it looks like you did not include a support log. "
    "Please post the support log ID in a comment on this issue so the "
    "maintainers can reproduce the problem."
)

DEFAULT_CLOSE_MESSAGE = (
    "Thanks for the feedback! This issue stays open until the fix has been "
    "released, so it has been re-opened. A maintainer will close it."
)


class IssueStateFilter(str, Enum):
    """Issue states a repository sweep can be restricted to."""

    ALL = "all"
    OPEN = "open"
    CLOSED = "closed"


class PermissionLevel(str, Enum):
    """Repository permission levels, lowest first.

    GitHub reports `permission` as one of none/read/write/admin and
    `role_name` with the finer triage/maintain levels in between.
    """

    NONE = "none"
    READ = "read"
    TRIAGE = "triage"
    WRITE = "write"
    MAINTAIN = "maintain"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return list(PermissionLevel).index(self)

    def at_least(self, other: "PermissionLevel") -> bool:
        return self.rank >= other.rank


def _lowercase_enum(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class LabelSettings(BaseModel):
    """Label names the triage rules manage. An empty name disables the label."""

    model_config = ConfigDict(frozen=True)

    # Issues that require feedback from their reporter to proceed
    awaiting: str = "awaiting-user-feedback"

    # Only act on issues with this label
    active: str = ""

    # Never act on issues with this label
    exempt: str = ""

    # Set when a reporter comment re-opens an issue; such issues may be
    # closed by non-maintainers
    reopened: str = ""

    # Fixed, waiting to be merged into a release
    merge: str = ""

    # Issue is missing the support log the log regex looks for
    log_required: str = "needs-support-log"

    @field_validator("*", mode="before")
    @classmethod
    def strip_names(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class LogSettings(BaseModel):
    """Support-log detection."""

    model_config = ConfigDict(frozen=True)

    # Regular expression that detects a support log ID; absent disables checks
    regex: Optional[str] = None

    # Comment posted when the log is missing; supports {{username}}
    message: str = DEFAULT_LOG_MESSAGE

    @field_validator("regex", mode="before")
    @classmethod
    def validate_regex(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty pattern as absent and reject patterns that do not compile."""
        if v is None or not str(v).strip():
            return None
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"log.regex is not a valid regular expression: {e}")
        return v

    @property
    def pattern(self) -> Optional[re.Pattern]:
        if self.regex is None:
            return None
        return re.compile(self.regex)


class CloseSettings(BaseModel):
    """Handling of issues closed by their reporter."""

    model_config = ConfigDict(frozen=True)

    # Comment posted when a reporter-closed issue is re-opened
    message: str = DEFAULT_CLOSE_MESSAGE


class UserSettings(BaseModel):
    """Actor configuration."""

    model_config = ConfigDict(frozen=True)

    # Assign active issues to this maintainer when no privileged sender is
    # available; empty disables assignment handling altogether
    assign: str = ""

    # Comma-separated logins that are bots even without the [bot] suffix
    bots: str = ""

    # Lowest repository permission that makes a user a maintainer
    privileged_permission: PermissionLevel = PermissionLevel.WRITE

    @field_validator("privileged_permission", mode="before")
    @classmethod
    def normalize_permission(cls, v):
        return _lowercase_enum(v)

    @property
    def bot_logins(self) -> List[str]:
        return [login.strip() for login in self.bots.split(",") if login.strip()]


class IssueSettings(BaseModel):
    """Repository sweep configuration."""

    model_config = ConfigDict(frozen=True)

    state: IssueStateFilter = IssueStateFilter.ALL

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, v):
        return _lowercase_enum(v)


class ProjectFieldSettings(BaseModel):
    """Names of the board fields the synchronizer writes."""

    model_config = ConfigDict(frozen=True)

    status: str = "Status"
    start_date: str = "Start date"
    end_date: str = "End date"


class ProjectStatusSettings(BaseModel):
    """Board status option names per derived status. Empty disables a status."""

    model_config = ConfigDict(frozen=True)

    new: str = "New"
    backlog: str = "Backlog"
    in_progress: str = "In progress"
    awaiting: str = "Awaiting user input"
    blocked: str = "Blocked"
    merged: str = "Merged"


class ProjectSettings(BaseModel):
    """GitHub Projects (v2) board synchronization."""

    model_config = ConfigDict(frozen=True)

    # https://github.com/orgs/<org>/projects/<n> or
    # https://github.com/users/<user>/projects/<n>; empty disables the board
    url: str = ""

    # Token with project scope; the default Actions token cannot write boards
    token: str = ""

    field: ProjectFieldSettings = ProjectFieldSettings()
    status: ProjectStatusSettings = ProjectStatusSettings()

    @property
    def enabled(self) -> bool:
        return bool(self.url.strip())


class TriageSettings(BaseSettings):
    """Triage action configuration from environment variables.

    All environment variables are prefixed with TRIAGE_ (e.g. TRIAGE_TOKEN).

    Required fields (must be set via environment variables):
    - token: GitHub token used for issue mutations
    """

    model_config = SettingsConfigDict(
        env_prefix="TRIAGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        frozen=True,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    token: str

    github_base_url: str = "https://api.github.com"

    # -------------------------------------------------------------------------
    # Triage rules
    # -------------------------------------------------------------------------
    label: LabelSettings = LabelSettings()
    log: LogSettings = LogSettings()
    close: CloseSettings = CloseSettings()
    user: UserSettings = UserSettings()
    issue: IssueSettings = IssueSettings()
    project: ProjectSettings = ProjectSettings()

    # -------------------------------------------------------------------------
    # Run behaviour
    # -------------------------------------------------------------------------
    verbose: bool = False

    # Log intents instead of applying them
    dry_run: bool = False

    # Render logs as JSON lines instead of console output
    log_json: bool = False

    # Wall-clock budget for the whole invocation
    deadline_seconds: int = 600

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Validate that the token is not empty."""
        if not v or not v.strip():
            raise ValueError("token cannot be empty")
        return v.strip()

    @field_validator("github_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("deadline_seconds")
    @classmethod
    def validate_deadline(cls, v: int) -> int:
        if v < 1:
            raise ValueError("deadline_seconds must be at least 1")
        return v

    @property
    def project_token(self) -> str:
        return self.project.token.strip() or self.token


class ActionEnvironment(BaseSettings):
    """Variables GitHub Actions sets for every job step."""

    model_config = SettingsConfigDict(case_sensitive=False, frozen=True)

    github_event_name: str
    github_event_path: Path
    github_repository: str
    github_output: Optional[Path] = None

    @field_validator("github_repository")
    @classmethod
    def validate_repository(cls, v: str) -> str:
        if v.count("/") != 1 or not all(v.split("/")):
            raise ValueError("GITHUB_REPOSITORY must look like owner/repo")
        return v

    @property
    def owner(self) -> str:
        return self.github_repository.split("/")[0]

    @property
    def repo(self) -> str:
        return self.github_repository.split("/")[1]


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "settings"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def load_settings() -> TriageSettings:
    """Create and return a TriageSettings instance.

    Returns:
        TriageSettings: Configured settings instance.

    Raises:
        ConfigurationError: If required fields are missing or invalid.
    """
    try:
        return TriageSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {_describe(e)}") from e


def load_environment() -> ActionEnvironment:
    """Read the GitHub Actions job environment.

    Raises:
        ConfigurationError: If the job environment is incomplete.
    """
    try:
        return ActionEnvironment()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid job environment: {_describe(e)}") from e
