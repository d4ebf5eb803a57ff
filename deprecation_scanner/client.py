import aiohttp
import asyncio
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    before_sleep_log,
)
from tenacity.stop import stop_base

from .domain import (
    ApiError,
    AuthenticationError,
    RateLimitError,
    SecondaryRateLimitError,
)

logger = logging.getLogger(__name__)

DEFAULT_SECONDARY_RETRY_AFTER = 60


class stop_after_rate_limit_retries(stop_base):
    """
    Stop once one kind of rate-limit signal has been retried too often.

    Primary and secondary signals are counted independently, so a request
    can be retried up to ``max_retries`` times for each of them.
    """

    def __init__(self, max_retries: int):
        self.max_retries = max_retries
        self.signals: Dict[type, int] = {}

    def __call__(self, retry_state: RetryCallState) -> bool:
        kind = type(retry_state.outcome.exception())
        self.signals[kind] = self.signals.get(kind, 0) + 1
        return self.signals[kind] > self.max_retries


def wait_retry_after(retry_state: RetryCallState) -> float:
    """Wait for the delay the server asked for."""
    exc = retry_state.outcome.exception()
    return max(0.0, float(getattr(exc, "retry_after", 0.0)))


class GitHubClient:
    """
    GitHub REST API client for the Actions and Checks endpoints.

    Every request goes through a bounded retry policy that honours GitHub's
    primary and secondary rate-limit signals. Responses are returned as raw
    JSON so they can be cached verbatim.
    """

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        timeout: int = 30,
        max_rate_limit_retries: int = 2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not token:
            raise ValueError("GitHub token is required and must be valid")

        self.api_url = api_url.rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "Deprecation-Scanner/1.0",
        }
        self.timeout = timeout
        self.max_rate_limit_retries = max_rate_limit_retries
        self._sleep = sleep
        self._connector = None
        self._session = None

    async def __aenter__(self):
        """Async context manager entry."""
        self._connector = aiohttp.TCPConnector(
            limit=10,
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        self._session = aiohttp.ClientSession(
            connector=self._connector,
            headers=self.headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self._session:
            await self._session.close()
        if self._connector:
            await self._connector.close()

    async def test_connection(self) -> bool:
        """Test GitHub API connection and authentication."""
        try:
            response = await self._request("GET", "/rate_limit")
            core = response["resources"]["core"]
            logger.info("✅ GitHub API connection successful")
            logger.info(f"🚦 Rate limit remaining: {core['remaining']}")
            return True
        except (ApiError, KeyError, TypeError) as e:
            logger.error(f"❌ GitHub API connection test failed: {e}")
            return False

    async def _request(
        self, method: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Make a request, retrying on rate-limit signals.

        The wait before each retry is the delay indicated by GitHub. Once a
        signal has been retried ``max_rate_limit_retries`` times, the
        RateLimitError surfaces to the caller.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RateLimitError),
            stop=stop_after_rate_limit_retries(self.max_rate_limit_retries),
            wait=wait_retry_after,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._send(method, path, params)

    async def _send(
        self, method: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Perform a single request and translate failures into domain errors."""
        if not self._session:
            raise RuntimeError("Client must be used as async context manager")

        url = f"{self.api_url}{path}"
        try:
            async with self._session.request(method, url, params=params) as resp:
                if 200 <= resp.status < 300:
                    return await resp.json()

                if resp.status == 401:
                    raise AuthenticationError("GitHub API authentication failed")

                if resp.status in {403, 429}:
                    body = await resp.text()
                    self._raise_for_rate_limit(method, path, resp.headers, body)
                    raise ApiError(
                        f"{method} {path} forbidden ({resp.status}): {body[:200]}"
                    )

                raise ApiError(f"{method} {path} failed with status {resp.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"🔁 Network error for {method} {path}: {e}")
            raise ApiError(f"{method} {path} failed: {e}") from e

    def _raise_for_rate_limit(self, method: str, path: str, headers, body: str):
        if headers.get("X-RateLimit-Remaining") == "0":
            logger.warning(f"⏱️ Request quota exhausted for request {method} {path}")
            reset = headers.get("X-RateLimit-Reset")
            if reset and str(reset).isdigit():
                retry_after = max(0, int(reset) - int(time.time())) + 1
            else:
                retry_after = DEFAULT_SECONDARY_RETRY_AFTER
            raise RateLimitError(
                f"Request quota exhausted for {method} {path}", retry_after
            )

        retry_after_header = headers.get("Retry-After")
        if "secondary rate limit" in body.lower() or retry_after_header is not None:
            logger.warning(
                f"⏱️ Secondary request quota exhausted for request {method} {path}"
            )
            if retry_after_header and str(retry_after_header).isdigit():
                retry_after = int(retry_after_header)
            else:
                retry_after = DEFAULT_SECONDARY_RETRY_AFTER
            raise SecondaryRateLimitError(
                f"Secondary rate limit hit for {method} {path}", retry_after
            )

    async def list_repo_workflows(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"/repos/{owner}/{repo}/actions/workflows")
        return data["workflows"]

    async def list_workflow_runs(
        self, owner: str, repo: str, workflow_id: int, per_page: int = 10
    ) -> List[Dict[str, Any]]:
        """Most recent runs of a workflow, newest first."""
        data = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/actions/workflows/{workflow_id}/runs",
            params={"per_page": per_page},
        )
        return data["workflow_runs"]

    async def list_check_runs_for_ref(
        self, owner: str, repo: str, ref: str, per_page: int = 10
    ) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/commits/{ref}/check-runs",
            params={"per_page": per_page},
        )
        return data["check_runs"]

    async def list_annotations(
        self, owner: str, repo: str, check_run_id: int
    ) -> List[Dict[str, Any]]:
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/check-runs/{check_run_id}/annotations"
        )

    async def list_org_repos(
        self, org: str, page: int = 1, per_page: int = 100
    ) -> List[Dict[str, Any]]:
        return await self._request(
            "GET",
            f"/orgs/{org}/repos",
            params={"per_page": per_page, "page": page},
        )

    async def iter_org_repo_pages(
        self, org: str, per_page: int = 100
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Yield pages of an organization's repositories.

        Pagination stops after the first page holding fewer than ``per_page``
        entries.
        """
        page = 1
        while True:
            batch = await self.list_org_repos(org, page=page, per_page=per_page)
            logger.debug(f"📄 Page {page}: {len(batch)} repositories")
            yield batch
            if len(batch) < per_page:
                break
            page += 1
