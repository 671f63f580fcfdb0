"""GitHub API client for issue triage.

Wraps the REST endpoints for issues, labels, assignees, comments and
collaborator permissions plus the GraphQL endpoint used by project boards.
Includes rate limiting and retry logic for API resilience.
"""

from src.triage.github.client import (
    GitHubAPIError,
    GitHubClient,
    GraphQLError,
    NotFoundError,
    RateLimitError,
)

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "GraphQLError",
    "NotFoundError",
    "RateLimitError",
]
