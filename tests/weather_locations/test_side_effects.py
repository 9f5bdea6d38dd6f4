"""Tests for the side-effect dispatcher."""

from __future__ import annotations

import asyncio

import pytest

from weather_locations.services.favorites import SideEffectDispatcher


@pytest.mark.asyncio
async def test_dispatch_runs_effect_in_background() -> None:
    dispatcher = SideEffectDispatcher()
    seen: list[str] = []

    async def _effect() -> None:
        seen.append("ran")

    dispatcher.dispatch("record", _effect)
    assert dispatcher.pending == 1

    await dispatcher.drain()

    assert seen == ["ran"]
    assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_failing_effect_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    dispatcher = SideEffectDispatcher()

    async def _effect() -> None:
        raise RuntimeError("publish failed")

    task = dispatcher.dispatch("explode", _effect)
    await dispatcher.drain()

    assert task.exception() is None
    assert "Side effect explode failed" in caplog.text


@pytest.mark.asyncio
async def test_drain_cancels_effects_that_outlive_the_timeout() -> None:
    dispatcher = SideEffectDispatcher()
    started = asyncio.Event()

    async def _effect() -> None:
        started.set()
        await asyncio.sleep(10)

    task = dispatcher.dispatch("slow", _effect)
    await started.wait()

    await dispatcher.drain(timeout=0.01)

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_drain_without_pending_effects_returns_immediately() -> None:
    await SideEffectDispatcher().drain()
