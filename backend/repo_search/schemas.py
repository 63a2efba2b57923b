from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field


class RepositoryRecord(BaseModel):
    """A repository as returned by the search API. ``id`` is the render key."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    full_name: str
    html_url: str
    stargazers_count: int = Field(ge=0)
    description: Optional[str] = None


class SearchStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class ErrorKind(str, Enum):
    TRANSPORT = "transport"
    HTTP = "http"
    MALFORMED_RESPONSE = "malformed_response"


class ErrorInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    status_code: Optional[int] = None


class SearchState(BaseModel):
    """Read-only snapshot of a controller, published after every transition."""

    model_config = ConfigDict(frozen=True)

    term: str = ""
    results: Tuple[RepositoryRecord, ...] = ()
    status: SearchStatus = SearchStatus.IDLE
    error: Optional[ErrorInfo] = None

    @computed_field
    @property
    def loading(self) -> bool:
        return self.status is SearchStatus.LOADING


class SearchResponse(BaseModel):
    query: str
    results: list[RepositoryRecord]
