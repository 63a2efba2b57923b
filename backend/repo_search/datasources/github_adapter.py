import asyncio
from typing import Any, List, Optional

import httpx
from loguru import logger

from ..config import get_settings
from ..schemas import ErrorKind, RepositoryRecord
from .base import (
    TRANSPORT_MESSAGE,
    CancellationToken,
    Cancelled,
    FetchError,
    FetchOutcome,
    FetchSuccess,
    SearchClient,
)

RATE_LIMIT_MESSAGE = "GitHub API rate limit exceeded. Please wait a moment and try again."
INVALID_QUERY_MESSAGE = "GitHub could not process this search query. Try different keywords."
MALFORMED_MESSAGE = "GitHub returned an unexpected response. Please try again."


class GitHubSearchClient(SearchClient):
    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ):
        """
        Settings only fill in arguments that were not passed. ``timeout=None``
        disables timeouts; leaving it unset keeps ``REQUEST_TIMEOUT_SECONDS``
        when configured, else the http client's own timeout.
        """
        if base_url is None or timeout is httpx.USE_CLIENT_DEFAULT:
            settings = get_settings()
            if base_url is None:
                base_url = str(settings.github_base_url)
            if timeout is httpx.USE_CLIENT_DEFAULT and settings.request_timeout_seconds is not None:
                timeout = settings.request_timeout_seconds
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "repo-search",
        }
        self._owns_client = http_client is None
        # an owned client never times out unless asked to
        self.client = http_client or httpx.AsyncClient(timeout=None)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def fetch(self, query: str, token: Optional[CancellationToken] = None) -> FetchOutcome:
        """
        Search repositories for ``query``, most starred first.

        Every failure comes back as a ``FetchError``; a cancelled token
        resolves to ``Cancelled`` instead.
        """
        if token is not None and token.cancelled:
            return Cancelled()

        request = asyncio.ensure_future(self._request(query))
        if token is None:
            return await request

        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not request.done():
                request.cancel()
        if not request.done() or request.cancelled():
            logger.debug(f"[search] request for {query!r} cancelled")
            return Cancelled()
        return request.result()

    async def _request(self, query: str) -> FetchOutcome:
        params = {"q": query, "sort": "stars", "order": "desc"}
        try:
            resp = await self.client.get(
                f"{self.base_url}/search/repositories",
                params=params,
                headers=self.headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            return self._http_error(exc.response)
        except httpx.HTTPError as exc:
            logger.warning(f"[search] GitHub request error: {type(exc).__name__} {exc!r}")
            return FetchError(ErrorKind.TRANSPORT, TRANSPORT_MESSAGE)
        except Exception:
            logger.exception(f"[search] unexpected failure searching {query!r}")
            return FetchError(ErrorKind.TRANSPORT, TRANSPORT_MESSAGE)

        try:
            records = parse_items(resp.json())
        except (ValueError, TypeError) as exc:
            # pydantic's ValidationError and json decode errors are both ValueErrors
            logger.warning(f"[search] malformed GitHub payload: {exc}")
            return FetchError(ErrorKind.MALFORMED_RESPONSE, MALFORMED_MESSAGE)
        return FetchSuccess(tuple(records))

    def _http_error(self, response: httpx.Response) -> FetchError:
        status = response.status_code
        logger.warning(f"[search] GitHub {status}: {response.text[:200]}")
        remaining = response.headers.get("X-RateLimit-Remaining")
        if status == 429 or (status == 403 and remaining == "0"):
            message = RATE_LIMIT_MESSAGE
        elif status == 422:
            message = INVALID_QUERY_MESSAGE
        else:
            message = f"GitHub returned an error (HTTP {status}). Please try again."
        return FetchError(ErrorKind.HTTP, message, status_code=status)


def parse_items(data: Any) -> List[RepositoryRecord]:
    """Validate a search payload into records, dropping repeated ids."""
    if not isinstance(data, dict) or not isinstance(data.get("items"), list):
        raise ValueError("payload has no 'items' array")
    seen = set()
    results: List[RepositoryRecord] = []
    for item in data["items"]:
        record = RepositoryRecord.model_validate(item)
        if record.id in seen:
            continue
        seen.add(record.id)
        results.append(record)
    return results
