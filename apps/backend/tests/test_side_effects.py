"""Post-commit side effects never fail the parent request."""
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import BackgroundTasks

from services.side_effects import SideEffects, run_side_effect


def _scope(session):
    @asynccontextmanager
    async def scope():
        yield session
    return scope


def _fake_session():
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.mark.asyncio
async def test_run_side_effect_commits_on_success():
    session = _fake_session()
    fn = AsyncMock()

    outcome = await run_side_effect(_scope(session), "ok_effect", fn, 1, flag=True)

    assert outcome.ok is True
    assert outcome.error is None
    fn.assert_awaited_once_with(session, 1, flag=True)
    session.commit.assert_awaited_once()
    session.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_side_effect_swallows_and_records_failure():
    session = _fake_session()
    fn = AsyncMock(side_effect=RuntimeError("downstream is down"))

    outcome = await run_side_effect(_scope(session), "bad_effect", fn)

    assert outcome.ok is False
    assert outcome.name == "bad_effect"
    assert outcome.error == "downstream is down"
    session.rollback.assert_awaited_once()
    session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_scheduled_effects_run_in_order_and_collect_outcomes():
    session = _fake_session()
    background = BackgroundTasks()
    effects = SideEffects(background, _scope(session))
    calls = []

    async def first(s, value):
        calls.append(("first", value))

    async def second(s):
        calls.append(("second", None))
        raise ValueError("nope")

    async def third(s):
        calls.append(("third", None))

    effects.schedule("first", first, 42)
    effects.schedule("second", second)
    effects.schedule("third", third)
    assert calls == []

    await background()

    assert [c[0] for c in calls] == ["first", "second", "third"]
    assert [(o.name, o.ok) for o in effects.outcomes] == [("first", True), ("second", False), ("third", True)]
