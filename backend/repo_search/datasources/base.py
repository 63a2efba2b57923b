import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, Union

from ..schemas import ErrorInfo, ErrorKind, RepositoryRecord

TRANSPORT_MESSAGE = "Failed to fetch repositories. Please try again."


class CancellationToken:
    """Advisory cancellation flag shared between a caller and one fetch."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass(frozen=True)
class FetchSuccess:
    records: Tuple[RepositoryRecord, ...]


@dataclass(frozen=True)
class FetchError:
    kind: ErrorKind
    message: str
    status_code: Optional[int] = None

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(kind=self.kind, message=self.message, status_code=self.status_code)


@dataclass(frozen=True)
class Cancelled:
    pass


FetchOutcome = Union[FetchSuccess, FetchError, Cancelled]


class SearchClient(Protocol):
    async def fetch(self, query: str, token: Optional[CancellationToken] = None) -> FetchOutcome:
        ...
