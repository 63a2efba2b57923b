import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from loguru import logger

from ..datasources.base import (
    TRANSPORT_MESSAGE,
    CancellationToken,
    Cancelled,
    FetchError,
    FetchOutcome,
    SearchClient,
)
from ..schemas import ErrorKind, SearchState, SearchStatus
from .debouncer import Debouncer
from .query import EMPTY, Query, normalize

Listener = Callable[[SearchState], None]


@dataclass
class PendingRequest:
    seq: int
    query: Query
    token: CancellationToken


class SearchController:
    """
    Drives a search box: echoes the term, debounces dispatch, and publishes
    a ``SearchState`` snapshot after every transition.

    Responses are applied only when their sequence number is still the latest
    one issued. Cancellation tokens are advisory, the sequence check is what
    keeps a slow response from overwriting a newer query.
    """

    def __init__(self, client: SearchClient, debounce_seconds: float = 0.5):
        self.client = client
        self.debouncer = Debouncer(self._on_debounced, delay=debounce_seconds)
        self._state = SearchState()
        self._seq = 0
        self._pending: Optional[PendingRequest] = None
        # status to fall back to when a failure is dismissed
        self._settled_status = SearchStatus.IDLE
        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []
        self._closed = False

    async def __aenter__(self) -> "SearchController":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def state(self) -> SearchState:
        return self._state

    def snapshot(self) -> SearchState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_input_changed(self, raw: str) -> None:
        if self._closed:
            return
        query = normalize(raw)
        self._update(term=raw)
        if query is EMPTY:
            self._clear()
        self.debouncer.schedule(query)

    def dismiss_error(self) -> None:
        """Hide the error and return to the last settled view. Never refetches."""
        if self._state.status is SearchStatus.FAILED:
            self._update(status=self._settled_status, error=None)

    def close(self) -> None:
        """Stop the timer and cancel the in-flight request. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self.debouncer.cancel()
        self._cancel_pending()
        self._listeners.clear()

    async def aclose(self) -> None:
        """Close, then wait for outstanding fetch tasks to unwind."""
        self.close()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_debounced(self, query: Optional[Query]) -> None:
        if self._closed:
            return
        if query is EMPTY:
            self._clear()
        else:
            self._dispatch(query)

    def _dispatch(self, query: Query) -> None:
        self._seq += 1
        self._cancel_pending()
        pending = PendingRequest(seq=self._seq, query=query, token=CancellationToken())
        self._pending = pending
        logger.info(f"[controller] searching {query!r} (seq={pending.seq})")
        self._update(status=SearchStatus.LOADING, error=None)

        task = asyncio.get_running_loop().create_task(self._run(pending))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, pending: PendingRequest) -> None:
        try:
            outcome = await self.client.fetch(pending.query, pending.token)
        except Exception:
            logger.exception(f"[controller] search client raised for {pending.query!r}")
            outcome = FetchError(ErrorKind.TRANSPORT, TRANSPORT_MESSAGE)
        self._complete(pending, outcome)

    def _complete(self, pending: PendingRequest, outcome: FetchOutcome) -> None:
        if isinstance(outcome, Cancelled):
            logger.debug(f"[controller] seq={pending.seq} cancelled")
            return
        if self._closed or pending.seq != self._seq:
            logger.debug(f"[controller] dropping stale response seq={pending.seq} (current={self._seq})")
            return
        self._pending = None
        if isinstance(outcome, FetchError):
            logger.warning(f"[controller] search {pending.query!r} failed: {outcome.message}")
            # results stay as they were so the last good list remains visible
            self._update(status=SearchStatus.FAILED, error=outcome.to_info())
        else:
            logger.info(f"[controller] {len(outcome.records)} results for {pending.query!r}")
            self._settled_status = SearchStatus.LOADED
            self._update(status=SearchStatus.LOADED, results=outcome.records, error=None)

    def _clear(self) -> None:
        # bumping the sequence also invalidates a request whose transport ignores its token
        self._seq += 1
        self._cancel_pending()
        self._settled_status = SearchStatus.IDLE
        if self._state.results or self._state.error or self._state.status is not SearchStatus.IDLE:
            self._update(status=SearchStatus.IDLE, results=(), error=None)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.token.cancel()
            self._pending = None

    def _update(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("[controller] state listener failed")
