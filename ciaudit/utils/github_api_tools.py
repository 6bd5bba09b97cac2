# Entrius 2025
import asyncio
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple

import aiohttp
import bittensor as bt

from ciaudit.constants import (
    BASE_GITHUB_API_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REPOSITORY,
    GITHUB_API_VERSION,
    GITHUB_PER_PAGE,
    GITHUB_REQUEST_TIMEOUT,
    RATE_LIMIT_BUFFER_SECONDS,
    RATE_LIMIT_MAX_WAIT_SECONDS,
    RATE_LIMIT_MIN_REMAINING,
    SECONDARY_RATE_LIMIT_DEFAULT_WAIT,
    USER_AGENT,
)
from ciaudit.utils.utils import parse_repo_name


@dataclass
class RateLimitInfo:
    """Represents GitHub API rate limit information extracted from response headers."""

    limit: int  # Maximum requests allowed per hour
    remaining: int  # Requests remaining in current window
    reset_timestamp: int  # Unix timestamp when the rate limit resets
    used: int  # Requests used in current window

    @property
    def is_exceeded(self) -> bool:
        """Check if rate limit has been exceeded."""
        return self.remaining == 0

    @property
    def seconds_until_reset(self) -> int:
        """Calculate seconds until rate limit resets."""
        current_time = int(time.time())
        return max(0, self.reset_timestamp - current_time)

    def __str__(self) -> str:
        return f"RateLimit(remaining={self.remaining}/{self.limit}, resets_in={self.seconds_until_reset}s)"


@dataclass
class ApiResponse:
    """The parts of an HTTP response the client needs once the connection is released."""

    status: int
    headers: Mapping[str, str]
    body: Any
    url: str
    next_url: Optional[str] = None

    @property
    def message(self) -> str:
        if isinstance(self.body, dict):
            return str(self.body.get("message", ""))
        if isinstance(self.body, str):
            return self.body
        return ""


class GitHubApiError(RuntimeError):
    def __init__(self, message: str, *, status: int, url: str, rate_limit: Optional[RateLimitInfo] = None):
        super().__init__(message)
        self.status = status
        self.url = url
        self.rate_limit = rate_limit


class GitHubNotFoundError(GitHubApiError):
    """The requested record does not exist (HTTP 404)."""


class GitHubRateLimitError(GitHubApiError):
    """Rate limited on every allowed attempt."""


# =============================================================================
# Rate limit helpers
# =============================================================================


def parse_rate_limit_headers(headers: Mapping[str, str]) -> Optional[RateLimitInfo]:
    """
    Parse GitHub API rate limit information from response headers.

    Args:
        headers: Response headers

    Returns:
        RateLimitInfo object if headers are present, None otherwise
    """
    try:
        limit = int(headers.get('X-RateLimit-Limit', 0))
        remaining = int(headers.get('X-RateLimit-Remaining', 0))
        reset_timestamp = int(headers.get('X-RateLimit-Reset', 0))
        used = int(headers.get('X-RateLimit-Used', 0))

        if limit == 0 and reset_timestamp == 0:
            return None

        return RateLimitInfo(limit=limit, remaining=remaining, reset_timestamp=reset_timestamp, used=used)
    except (ValueError, TypeError) as e:
        bt.logging.debug(f"Could not parse rate limit headers: {e}")
        return None


def _retry_after_seconds(headers: Mapping[str, str]) -> Optional[int]:
    value = headers.get('Retry-After')
    if value is None:
        return None
    try:
        return max(0, int(value))
    except ValueError:
        return None


def is_rate_limited(response: ApiResponse) -> Tuple[bool, Optional[int]]:
    """
    Check if a response indicates primary or secondary (abuse) rate limiting and calculate wait time.

    Args:
        response: The HTTP response from GitHub API

    Returns:
        Tuple of (is_rate_limited, seconds_to_wait)
    """
    if response.status not in (403, 429):
        return (False, None)

    retry_after = _retry_after_seconds(response.headers)
    message = response.message.lower()

    if 'secondary rate limit' in message or 'abuse' in message:
        wait_seconds = retry_after if retry_after is not None else SECONDARY_RATE_LIMIT_DEFAULT_WAIT
        return (True, min(wait_seconds, RATE_LIMIT_MAX_WAIT_SECONDS))

    if retry_after is not None:
        return (True, min(retry_after, RATE_LIMIT_MAX_WAIT_SECONDS))

    rate_limit_info = parse_rate_limit_headers(response.headers)
    if (rate_limit_info and rate_limit_info.is_exceeded) or 'rate limit' in message:
        if rate_limit_info and rate_limit_info.reset_timestamp:
            wait_seconds = min(
                rate_limit_info.seconds_until_reset + RATE_LIMIT_BUFFER_SECONDS,
                RATE_LIMIT_MAX_WAIT_SECONDS,
            )
            return (True, wait_seconds)
        return (True, SECONDARY_RATE_LIMIT_DEFAULT_WAIT)

    if response.status == 429:
        return (True, SECONDARY_RATE_LIMIT_DEFAULT_WAIT)

    return (False, None)


def check_preemptive_rate_limit(response: ApiResponse) -> None:
    """
    Check if we're approaching rate limit and log a warning.

    Args:
        response: The HTTP response from GitHub API
    """
    rate_limit_info = parse_rate_limit_headers(response.headers)

    if rate_limit_info:
        if rate_limit_info.remaining <= RATE_LIMIT_MIN_REMAINING:
            bt.logging.warning(
                f"Approaching GitHub API rate limit: {rate_limit_info.remaining} requests remaining, "
                f"resets in {rate_limit_info.seconds_until_reset}s"
            )
        elif rate_limit_info.remaining <= rate_limit_info.limit * 0.1:
            bt.logging.info(
                f"GitHub API rate limit status: {rate_limit_info.remaining}/{rate_limit_info.limit} remaining"
            )


async def wait_for_rate_limit_reset(wait_seconds: int, context: str = "") -> None:
    """
    Wait for rate limit to reset with progress logging.

    Args:
        wait_seconds: Number of seconds to wait
        context: Optional context string for logging (e.g., "releases page")
    """
    context_str = f" for {context}" if context else ""
    bt.logging.warning(f"GitHub API rate limit exceeded{context_str}. Waiting {wait_seconds}s for reset...")

    if wait_seconds <= 60:
        await asyncio.sleep(wait_seconds)
    else:
        intervals = wait_seconds // 60
        remaining = wait_seconds % 60

        for i in range(intervals):
            await asyncio.sleep(60)
            elapsed = (i + 1) * 60
            bt.logging.info(f"Rate limit wait: {elapsed}s elapsed, {wait_seconds - elapsed}s remaining")

        if remaining > 0:
            await asyncio.sleep(remaining)

    bt.logging.info("Rate limit wait complete, resuming API requests")


def make_headers(token: Optional[str]) -> Dict[str, str]:
    """Build standard GitHub HTTP headers for a PAT.

    Args:
        token (str): Github pat
    Returns:
        Dict[str, str]: Mapping of HTTP header names to values.
    """
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": USER_AGENT,
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
    }
    if token:
        headers["Authorization"] = f"token {token}"
    return headers


# =============================================================================
# Client
# =============================================================================


class GitHubClient:
    """Sequential async client for the GitHub REST API scoped to one repository.

    Requests are awaited one at a time. Only rate-limited requests are retried,
    at most ``max_retries`` times; every other failure raises.

    Usage:
        async with GitHubClient(token, "web-platform-tests/wpt") as client:
            release = await client.get_release_by_tag("merge_pr_123")
    """

    def __init__(
        self,
        token: Optional[str],
        repository: str = DEFAULT_REPOSITORY,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: str = BASE_GITHUB_API_URL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: float = GITHUB_REQUEST_TIMEOUT,
        per_page: int = GITHUB_PER_PAGE,
    ):
        self.owner, self.repo = parse_repo_name(repository)
        self.max_retries = max_retries
        self.per_page = per_page
        self.requests_made = 0
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    async def __aenter__(self) -> 'GitHubClient':
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers=make_headers(self._token),
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _build_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}{path}"

    def repo_path(self, suffix: str) -> str:
        return f"/repos/{self.owner}/{self.repo}{suffix}"

    async def _send(self, url: str, params: Optional[Mapping[str, Any]]) -> ApiResponse:
        if self._session is None:
            raise RuntimeError("GitHubClient must be used as an async context manager")

        async with self._session.get(url, params=params) as response:
            try:
                body = await response.json(content_type=None)
            except ValueError:
                body = await response.text()

            next_link = response.links.get('next')
            next_url = str(next_link['url']) if next_link else None

            return ApiResponse(
                status=response.status,
                headers=response.headers,
                body=body,
                url=str(response.url),
                next_url=next_url,
            )

    async def request(self, path: str, params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        """
        GET a path (or absolute URL) with rate limit handling.

        Args:
            path: API path such as "/repos/o/r/releases", or an absolute pagination URL
            params: Optional query parameters

        Returns:
            ApiResponse with the decoded JSON body

        Raises:
            GitHubNotFoundError: on HTTP 404
            GitHubRateLimitError: when still rate limited after max_retries retries
            GitHubApiError: on any other HTTP or connection failure
        """
        url = self._build_url(path)
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            try:
                self.requests_made += 1
                response = await self._send(url, params)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                bt.logging.error(f"GitHub request to {url} failed: {e}")
                raise GitHubApiError(str(e) or type(e).__name__, status=0, url=url) from e

            rate_limited, wait_seconds = is_rate_limited(response)
            if rate_limited:
                if attempt < attempts - 1:
                    await wait_for_rate_limit_reset(wait_seconds or 0, context=url)
                    continue
                bt.logging.error(f"Rate limit exceeded on final attempt for {url}")
                raise GitHubRateLimitError(
                    response.message or f"GitHub API rate limit exceeded ({response.status})",
                    status=response.status,
                    url=url,
                    rate_limit=parse_rate_limit_headers(response.headers),
                )

            if response.status == 404:
                raise GitHubNotFoundError(response.message or "Not Found", status=404, url=url)

            if response.status >= 400:
                raise GitHubApiError(
                    response.message or f"GitHub API request failed ({response.status})",
                    status=response.status,
                    url=url,
                    rate_limit=parse_rate_limit_headers(response.headers),
                )

            check_preemptive_rate_limit(response)
            return response

        # unreachable: the loop either returns or raises
        raise GitHubApiError("No attempts made", status=0, url=url)

    async def get_json(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        response = await self.request(path, params)
        return response.body

    async def iter_pages(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        item_key: Optional[str] = None,
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Yield one list of records per page, following the Link header.

        Args:
            path: API path of a paginated collection
            params: Query parameters for the first page (later pages reuse the "next" URL)
            item_key: Key holding the list when the payload is an object (search, check runs)
        """
        url: Optional[str] = path
        query: Optional[Dict[str, Any]] = {**(dict(params) if params else {}), "per_page": self.per_page}
        page = 0

        while url:
            page += 1
            response = await self.request(url, query)
            items = response.body.get(item_key, []) if item_key and isinstance(response.body, dict) else response.body
            if not isinstance(items, list):
                raise GitHubApiError(
                    f"Expected list from GitHub pagination (path={path}, item_key={item_key!r})",
                    status=response.status,
                    url=response.url,
                )
            bt.logging.debug(f"Fetched page {page} of {path}: {len(items)} records")
            yield items

            url = response.next_url
            # the next URL already carries the query string
            query = None

    async def iter_items(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        item_key: Optional[str] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        async for page in self.iter_pages(path, params, item_key):
            for item in page:
                yield item

    async def get_all(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        item_key: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return [item async for item in self.iter_items(path, params, item_key)]

    # =========================================================================
    # Repository endpoints
    # =========================================================================

    async def get_release_by_tag(self, tag: str) -> Dict[str, Any]:
        return await self.get_json(self.repo_path(f"/releases/tags/{tag}"))

    async def get_tag_ref(self, tag: str) -> Dict[str, Any]:
        return await self.get_json(self.repo_path(f"/git/ref/tags/{tag}"))

    def iter_release_pages(self) -> AsyncIterator[List[Dict[str, Any]]]:
        """Releases, newest created first."""
        return self.iter_pages(self.repo_path("/releases"))

    def iter_pulls(
        self, state: str = "all", sort: str = "updated", direction: str = "desc"
    ) -> AsyncIterator[Dict[str, Any]]:
        return self.iter_items(
            self.repo_path("/pulls"),
            {"state": state, "sort": sort, "direction": direction},
        )

    def iter_tags(self) -> AsyncIterator[Dict[str, Any]]:
        return self.iter_items(self.repo_path("/tags"))

    def iter_releases(self) -> AsyncIterator[Dict[str, Any]]:
        return self.iter_items(self.repo_path("/releases"))

    async def list_commits(self, since: str) -> List[Dict[str, Any]]:
        return await self.get_all(self.repo_path("/commits"), {"since": since})

    async def list_pull_commits(self, number: int) -> List[Dict[str, Any]]:
        return await self.get_all(self.repo_path(f"/pulls/{number}/commits"))

    async def list_check_runs(self, ref: str) -> List[Dict[str, Any]]:
        return await self.get_all(self.repo_path(f"/commits/{ref}/check-runs"), item_key="check_runs")

    async def list_statuses(self, ref: str) -> List[Dict[str, Any]]:
        """Commit statuses for a ref, in reverse chronological order."""
        return await self.get_all(self.repo_path(f"/commits/{ref}/statuses"))

    async def search_issues(self, query: str) -> List[Dict[str, Any]]:
        return await self.get_all("/search/issues", {"q": query}, item_key="items")
