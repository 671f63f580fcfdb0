"""GitHub API client for issue triage.

This module provides an async wrapper around the GitHub REST and GraphQL
APIs for:
- Reading issues, comments and collaborator permissions
- Managing labels, assignees and issue state
- Creating and updating comments
- Running GraphQL queries for project boards

Includes rate limiting and retry logic for API resilience.
"""

import asyncio
import random
import time
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import quote

import httpx
import structlog


logger = structlog.get_logger()


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class NotFoundError(GitHubAPIError):
    """Raised when GitHub answers 404 for the requested resource."""


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


class GraphQLError(GitHubAPIError):
    """Raised when a GraphQL response carries an `errors` array.

    Attributes:
        errors: The error objects returned by GitHub.
    """

    def __init__(self, message: str, errors: List[Dict[str, Any]], **kwargs: Any):
        super().__init__(message, **kwargs)
        self.errors = errors


class GitHubClient:
    """Async GitHub API client with rate limiting and retry logic.

    This client provides the issue-tracker operations the triage rules
    need. It implements:

    - Automatic retry with exponential backoff for transient failures
    - Waiting out rate limits that reset within the backoff cap
    - Link-header pagination for list endpoints
    - Support for both github.com and GitHub Enterprise Server

    Attributes:
        token: GitHub API token (PAT, GitHub App or Actions token).
        base_url: Base URL for GitHub API (default: https://api.github.com).
        max_retries: Maximum number of retry attempts for transient failures.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay in seconds between retries.
        timeout: Request timeout in seconds.

    Example:
        >>> async with GitHubClient(token="ghp_xxx") as client:
        ...     await client.create_comment("owner", "repo", 123, "Hello!")
    """

    # HTTP status codes that should trigger a retry
    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    PAGE_SIZE = 100

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            max_retries: Maximum number of retry attempts.
            base_delay: Base delay in seconds for exponential backoff.
            max_delay: Maximum delay in seconds between retries.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    @property
    def graphql_url(self) -> str:
        """GraphQL endpoint matching the REST base URL.

        github.com serves GraphQL at /graphql next to the REST root, GitHub
        Enterprise Server at /api/graphql next to /api/v3.
        """
        if self.base_url.endswith("/api/v3"):
            return self.base_url[: -len("/v3")] + "/graphql"
        return f"{self.base_url}/graphql"

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "issue-triage-action/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Calculate backoff delay with full jitter.

        Args:
            attempt: The current retry attempt (0-indexed).

        Returns:
            Delay in seconds before the next retry.
        """
        exponential_delay = self.base_delay * (2 ** attempt)
        capped_delay = min(exponential_delay, self.max_delay)
        return random.uniform(0, capped_delay)

    def _parse_int_header(self, headers: httpx.Headers, name: str) -> Optional[int]:
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return None

    def _rate_limit_error(self, response: httpx.Response) -> RateLimitError:
        """Build a RateLimitError from GitHub's rate limit headers.

        Args:
            response: The rate-limited response from GitHub.

        Returns:
            RateLimitError with information about when to retry.
        """
        reset_at = self._parse_int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        # Retry-After wins when GitHub sends a secondary rate limit
        retry_after_header = self._parse_int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            reset_at=reset_at,
            retry_after=retry_after,
            limit=self._parse_int_header(response.headers, "x-ratelimit-limit"),
            used=self._parse_int_header(response.headers, "x-ratelimit-used"),
        )

        return RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.url),
        )

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        if response.status_code == 403:
            remaining = self._parse_int_header(response.headers, "x-ratelimit-remaining")
            return remaining == 0 or "retry-after" in response.headers
        return False

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH).
            path: API path or absolute URL.
            json_data: Optional JSON body for the request.
            params: Optional query parameters.

        Returns:
            The HTTP response from GitHub.

        Raises:
            NotFoundError: If GitHub answers 404.
            RateLimitError: If the rate limit does not reset within the
                            backoff cap or retries are exhausted.
            GitHubAPIError: If the request fails after all retries.
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(
                    method=method,
                    url=path,
                    json=json_data,
                    params=params,
                )
            except httpx.TimeoutException as e:
                last_exception = e
                reason = "Request timeout, retrying"
            except httpx.RequestError as e:
                last_exception = e
                reason = "Request error, retrying"
            else:
                if self._is_rate_limited(response):
                    error = self._rate_limit_error(response)
                    wait = error.retry_after
                    if (
                        attempt < self.max_retries
                        and wait is not None
                        and wait <= self.max_delay
                    ):
                        await asyncio.sleep(wait)
                        continue
                    raise error

                if (
                    response.status_code in self.RETRYABLE_STATUS_CODES
                    and attempt < self.max_retries
                ):
                    last_exception = GitHubAPIError(
                        message=f"GitHub API error: {response.status_code}",
                        status_code=response.status_code,
                        request_url=str(response.url),
                    )
                    reason = "Retryable error from GitHub API"
                elif response.status_code >= 400:
                    raise self._error_for(method, path, response)
                else:
                    return response

            if attempt < self.max_retries:
                delay = self._calculate_backoff(attempt)
                logger.warning(
                    reason,
                    error=str(last_exception),
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay=delay,
                    path=path,
                )
                await asyncio.sleep(delay)

        logger.error(
            "GitHub API request failed after all retries",
            path=path,
            method=method,
            max_retries=self.max_retries,
            last_error=str(last_exception),
        )
        raise GitHubAPIError(
            message=f"Request failed after {self.max_retries} retries: {last_exception}",
            request_url=f"{self.base_url}{path}",
        )

    def _error_for(
        self, method: str, path: str, response: httpx.Response
    ) -> GitHubAPIError:
        error_body = response.text
        error_class = NotFoundError if response.status_code == 404 else GitHubAPIError
        log = logger.debug if response.status_code == 404 else logger.error
        log(
            "GitHub API error",
            status_code=response.status_code,
            path=path,
            method=method,
            response_body=error_body[:500],
        )
        return error_class(
            message=f"GitHub API error: {response.status_code}",
            status_code=response.status_code,
            response_body=error_body,
            request_url=str(response.url),
        )

    async def _paginate(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield every item of a paginated list endpoint.

        Follows the `next` relation of the Link header until GitHub stops
        returning one.
        """
        query = dict(params or {})
        query.setdefault("per_page", self.PAGE_SIZE)

        url: Optional[str] = path
        while url is not None:
            response = await self._request(method="GET", path=url, params=query)
            for item in response.json():
                yield item
            next_link = response.links.get("next")
            url = next_link["url"] if next_link else None
            # the next URL already carries the query string
            query = None

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    async def list_issues(
        self,
        owner: str,
        repo: str,
        state: str = "all",
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield the repository's issues, skipping pull requests.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            state: One of open, closed or all.
        """
        path = f"/repos/{owner}/{repo}/issues"
        logger.info("Listing issues", owner=owner, repo=repo, state=state)
        async for item in self._paginate(path, {"state": state}):
            if "pull_request" in item:
                continue
            yield item

    async def list_comments(
        self,
        owner: str,
        repo: str,
        issue_number: int,
    ) -> List[Dict[str, Any]]:
        """List every comment on an issue in chronological order."""
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"
        comments = [item async for item in self._paginate(path)]
        logger.debug(
            "Listed issue comments",
            owner=owner,
            repo=repo,
            issue_number=issue_number,
            comment_count=len(comments),
        )
        return comments

    async def update_issue_state(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        state: str,
    ) -> Dict[str, Any]:
        """Open or close an issue.

        Args:
            state: Either "open" or "closed".
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}"
        logger.info(
            "Updating issue state",
            owner=owner,
            repo=repo,
            issue_number=issue_number,
            state=state,
        )
        response = await self._request(method="PATCH", path=path, json_data={"state": state})
        return response.json()

    # -------------------------------------------------------------------------
    # Labels
    # -------------------------------------------------------------------------

    async def add_labels(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        labels: List[str],
    ) -> List[Dict[str, Any]]:
        """Add labels to an issue.

        Returns:
            List of all labels on the issue after adding.
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/labels"

        logger.info(
            "Adding labels to issue",
            owner=owner,
            repo=repo,
            issue_number=issue_number,
            labels=labels,
        )

        response = await self._request(method="POST", path=path, json_data={"labels": labels})
        return response.json()

    async def remove_label(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        label: str,
    ) -> None:
        """Remove a label from an issue.

        Raises:
            GitHubAPIError: If the request fails (except 404 which is ignored).
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/labels/{quote(label, safe='')}"

        logger.info(
            "Removing label from issue",
            owner=owner,
            repo=repo,
            issue_number=issue_number,
            label=label,
        )

        try:
            await self._request(method="DELETE", path=path)
        except NotFoundError:
            # another run removed it first
            logger.debug(
                "Label not found on issue (already removed)",
                owner=owner,
                repo=repo,
                issue_number=issue_number,
                label=label,
            )

    # -------------------------------------------------------------------------
    # Assignees
    # -------------------------------------------------------------------------

    async def add_assignees(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        assignees: List[str],
    ) -> Dict[str, Any]:
        """Add assignees to an issue."""
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/assignees"
        logger.info(
            "Assigning issue",
            owner=owner,
            repo=repo,
            issue_number=issue_number,
            assignees=assignees,
        )
        response = await self._request(
            method="POST", path=path, json_data={"assignees": assignees}
        )
        return response.json()

    async def remove_assignees(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        assignees: List[str],
    ) -> None:
        """Remove assignees from an issue; a 404 counts as already removed."""
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/assignees"
        logger.info(
            "Unassigning issue",
            owner=owner,
            repo=repo,
            issue_number=issue_number,
            assignees=assignees,
        )
        try:
            await self._request(
                method="DELETE", path=path, json_data={"assignees": assignees}
            )
        except NotFoundError:
            logger.debug(
                "Assignees not found on issue (already removed)",
                issue_number=issue_number,
                assignees=assignees,
            )

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    async def create_comment(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        body: str,
    ) -> Dict[str, Any]:
        """Create a comment on an issue.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue number to comment on.
            body: Comment body in markdown format.

        Returns:
            The created comment data from GitHub API.
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"

        logger.info(
            "Creating comment on issue",
            owner=owner,
            repo=repo,
            issue_number=issue_number,
            body_length=len(body),
        )

        response = await self._request(method="POST", path=path, json_data={"body": body})
        result = response.json()
        logger.info(
            "Comment created successfully",
            issue_number=issue_number,
            comment_id=result.get("id"),
        )
        return result

    async def update_comment(
        self,
        owner: str,
        repo: str,
        comment_id: int,
        body: str,
    ) -> Dict[str, Any]:
        """Replace the body of an existing issue comment."""
        path = f"/repos/{owner}/{repo}/issues/comments/{comment_id}"
        logger.info(
            "Updating comment",
            owner=owner,
            repo=repo,
            comment_id=comment_id,
            body_length=len(body),
        )
        response = await self._request(method="PATCH", path=path, json_data={"body": body})
        return response.json()

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    async def get_permission(self, owner: str, repo: str, username: str) -> Dict[str, Any]:
        """Get a user's permission on the repository.

        Returns:
            The permission payload, with `permission` (none/read/write/admin)
            and `role_name` (which also reports triage/maintain).

        Raises:
            NotFoundError: If the user does not exist or cannot be resolved.
        """
        path = f"/repos/{owner}/{repo}/collaborators/{quote(username, safe='')}/permission"
        response = await self._request(method="GET", path=path)
        return response.json()

    # -------------------------------------------------------------------------
    # GraphQL
    # -------------------------------------------------------------------------

    async def graphql(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run a GraphQL query or mutation.

        Returns:
            The `data` member of the response.

        Raises:
            GraphQLError: If GitHub reports errors for the query.
        """
        response = await self._request(
            method="POST",
            path=self.graphql_url,
            json_data={"query": query, "variables": variables or {}},
        )
        payload = response.json()
        errors = payload.get("errors")
        if errors:
            messages = "; ".join(str(e.get("message", e)) for e in errors)
            logger.error("GraphQL query failed", errors=messages)
            raise GraphQLError(
                message=f"GraphQL error: {messages}",
                errors=errors,
                status_code=response.status_code,
                request_url=self.graphql_url,
            )
        return payload.get("data") or {}
