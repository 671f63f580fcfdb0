"""Actor classification for issue participants.

Decides whether a login belongs to a bot or to a maintainer (a repository
collaborator at or above the configured permission level). Permission
lookups are the most expensive call a run makes, so results are kept in a
PermissionCache owned by the run and every login is resolved at most once.

Source:
- src/triage/github/client.py (GitHubClient.get_permission)
- src/triage/config.py (PermissionLevel, UserSettings)
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import structlog

from src.triage.config import PermissionLevel
from src.triage.github.client import GitHubClient, NotFoundError


logger = structlog.get_logger()


BOT_SUFFIX = "[bot]"


@dataclass(frozen=True)
class Actor:
    """A classified participant."""

    login: str
    is_bot: bool
    is_privileged: bool


class PermissionCache:
    """Permission levels resolved during one run, keyed by login.

    Logins are case-insensitive on GitHub, so keys are lowercased.
    """

    def __init__(self) -> None:
        self._levels: Dict[str, PermissionLevel] = {}

    def __contains__(self, login: str) -> bool:
        return login.lower() in self._levels

    def __len__(self) -> int:
        return len(self._levels)

    def get(self, login: str) -> Optional[PermissionLevel]:
        return self._levels.get(login.lower())

    def put(self, login: str, level: PermissionLevel) -> None:
        self._levels[login.lower()] = level


def parse_permission(payload: Dict[str, object]) -> PermissionLevel:
    """Read the effective level from a collaborator permission payload.

    `role_name` distinguishes triage and maintain, which `permission`
    folds into read and write, so it wins when it names a known level.
    Custom repository roles fall back to `permission`.
    """
    for key in ("role_name", "permission"):
        value = payload.get(key)
        if isinstance(value, str):
            try:
                return PermissionLevel(value.lower())
            except ValueError:
                continue
    return PermissionLevel.NONE


class ActorClassifier:
    """Classifies logins as bots and/or maintainers.

    Attributes:
        github_client: Client used for permission lookups.
        owner: Repository owner.
        repo: Repository name.
        threshold: Lowest permission level that counts as privileged.
        bots: Logins that are bots without carrying the [bot] suffix.
        cache: Run-scoped permission cache.

    Example:
        >>> classifier = ActorClassifier(client, "octo", "widgets")
        >>> await classifier.is_privileged("octocat")
        True
    """

    def __init__(
        self,
        github_client: GitHubClient,
        owner: str,
        repo: str,
        threshold: PermissionLevel = PermissionLevel.WRITE,
        bots: Iterable[str] = (),
        cache: Optional[PermissionCache] = None,
    ):
        self.github_client = github_client
        self.owner = owner
        self.repo = repo
        self.threshold = threshold
        self.bots = {login.lower() for login in bots}
        self.cache = cache if cache is not None else PermissionCache()

    def is_bot(self, login: str) -> bool:
        """Check if a login belongs to a bot account."""
        normalized = login.strip().lower()
        return normalized.endswith(BOT_SUFFIX) or normalized in self.bots

    async def permission(self, login: str) -> PermissionLevel:
        """Resolve a login's permission level, at most once per run.

        A 404 means the login is not a collaborator (or does not exist)
        and resolves to PermissionLevel.NONE.

        Raises:
            GitHubAPIError: For any lookup failure other than 404.
        """
        cached = self.cache.get(login)
        if cached is not None:
            return cached

        try:
            payload = await self.github_client.get_permission(self.owner, self.repo, login)
            level = parse_permission(payload)
        except NotFoundError:
            level = PermissionLevel.NONE

        self.cache.put(login, level)
        logger.debug("Resolved permission", login=login, permission=level.value)
        return level

    async def is_privileged(self, login: str, allow_bot: bool = False) -> bool:
        """Check if a login is a maintainer.

        Args:
            login: The GitHub login.
            allow_bot: Let a bot be privileged; used for the action's own
                       identity when it must self-assign.

        Returns:
            True when the login's permission reaches the threshold.
        """
        if not login:
            return False
        if self.is_bot(login) and not allow_bot:
            return False
        level = await self.permission(login)
        return level.at_least(self.threshold)

    async def classify(self, login: str) -> Actor:
        bot = self.is_bot(login)
        privileged = False if bot else await self.is_privileged(login)
        return Actor(login=login, is_bot=bot, is_privileged=privileged)
