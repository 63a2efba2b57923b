"""Shared fixtures: GitHub payloads and controllable fake search clients."""

from __future__ import annotations

import asyncio
from typing import Optional

import pytest

from repo_search.datasources.base import CancellationToken, FetchOutcome, FetchSuccess
from repo_search.schemas import RepositoryRecord


def repo_item(id: int, full_name: str, stars: int = 0, description: Optional[str] = None) -> dict:
    return {
        "id": id,
        "full_name": full_name,
        "html_url": f"https://github.com/{full_name}",
        "stargazers_count": stars,
        "description": description,
    }


def record(id: int, full_name: str, stars: int = 0) -> RepositoryRecord:
    return RepositoryRecord.model_validate(repo_item(id, full_name, stars))


class GatedClient:
    """Fake search client whose responses are released by the test.

    It ignores cancellation tokens, like a transport that can't abort, so the
    controller must rely on its sequence check.
    """

    def __init__(self):
        self.calls: list[str] = []
        self.tokens: list[CancellationToken] = []
        self._gates: dict[str, asyncio.Future] = {}

    def _gate(self, query: str) -> asyncio.Future:
        if query not in self._gates:
            self._gates[query] = asyncio.get_running_loop().create_future()
        return self._gates[query]

    async def fetch(self, query: str, token: Optional[CancellationToken] = None) -> FetchOutcome:
        self.calls.append(query)
        self.tokens.append(token)
        return await self._gate(query)

    def resolve(self, query: str, outcome: FetchOutcome) -> None:
        self._gate(query).set_result(outcome)


class InstantClient:
    """Fake search client answering every query immediately."""

    def __init__(self, outcome: FetchOutcome = FetchSuccess(())):
        self.outcome = outcome
        self.calls: list[str] = []

    async def fetch(self, query: str, token: Optional[CancellationToken] = None) -> FetchOutcome:
        self.calls.append(query)
        return self.outcome


async def settle(seconds: float = 0.0) -> None:
    """Let scheduled tasks run (and optionally let timers expire)."""
    await asyncio.sleep(seconds)
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def golang_payload() -> dict:
    return {
        "total_count": 1,
        "incomplete_results": False,
        "items": [repo_item(1, "golang/go", 120000, "The Go programming language")],
    }
