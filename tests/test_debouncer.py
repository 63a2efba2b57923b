"""Debouncer timing behaviour."""

from __future__ import annotations

import asyncio

import pytest

from repo_search.services.debouncer import Debouncer

from conftest import settle

DELAY = 0.1


@pytest.mark.asyncio
async def test_burst_collapses_into_one_call_with_last_argument():
    calls: list[str] = []
    debouncer = Debouncer(calls.append, delay=DELAY)

    for value in ["r", "re", "rea", "reac", "react"]:
        debouncer.schedule(value)
        await asyncio.sleep(DELAY / 10)

    await settle(DELAY * 3)
    assert calls == ["react"]


@pytest.mark.asyncio
async def test_schedule_never_runs_action_synchronously():
    calls: list[str] = []
    debouncer = Debouncer(calls.append, delay=0)

    debouncer.schedule("now")
    assert calls == []
    assert debouncer.pending

    await settle()
    assert calls == ["now"]
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_cancel_discards_pending_call():
    calls: list[str] = []
    debouncer = Debouncer(calls.append, delay=DELAY)

    debouncer.schedule("go")
    debouncer.cancel()

    await settle(DELAY * 3)
    assert calls == []
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_separate_quiet_periods_fire_separately():
    calls: list[str] = []
    debouncer = Debouncer(calls.append, delay=DELAY)

    debouncer.schedule("first")
    await settle(DELAY * 3)
    debouncer.schedule("second")
    await settle(DELAY * 3)

    assert calls == ["first", "second"]


@pytest.mark.asyncio
async def test_instances_do_not_share_timers():
    a_calls: list[str] = []
    b_calls: list[str] = []
    a = Debouncer(a_calls.append, delay=DELAY)
    b = Debouncer(b_calls.append, delay=DELAY)

    a.schedule("a")
    b.schedule("b")
    a.cancel()

    await settle(DELAY * 3)
    assert a_calls == []
    assert b_calls == ["b"]


@pytest.mark.asyncio
async def test_coroutine_action_is_awaited_and_not_cancelled_by_reschedule():
    started = asyncio.Event()
    release = asyncio.Event()
    finished: list[str] = []

    async def action(value):
        started.set()
        await release.wait()
        finished.append(value)

    debouncer = Debouncer(action, delay=0)
    debouncer.schedule("slow")
    await asyncio.wait_for(started.wait(), 1)

    # a new schedule must not cancel the action already running
    debouncer.schedule("next")
    debouncer.cancel()
    release.set()
    await settle()

    assert finished == ["slow"]


@pytest.mark.asyncio
async def test_failing_action_is_contained():
    def boom(value):
        raise RuntimeError(value)

    debouncer = Debouncer(boom, delay=0)
    debouncer.schedule("x")
    await settle()
    assert not debouncer.pending


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        Debouncer(print, delay=-1)
