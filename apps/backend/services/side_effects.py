"""Side effects that run after a core write has committed.

Routes schedule follow-up work (notifications, best-effort emails) here
once the primary row is stored and its response built. Each effect runs
detached from the request, after the response, in its own session and its
own failure domain: an exception is logged, counted, reported to Sentry and
recorded as a ``SideEffectOutcome``; it never reaches the client and never
undoes the parent write.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from fastapi import BackgroundTasks, Depends

from database import get_session_scope
from observability.logging import get_logger
from observability.metrics import side_effect_failures_total
from observability.sentry_config import capture_exception

logger = get_logger(__name__)

Effect = Callable[..., Awaitable[Any]]


@dataclass
class SideEffectOutcome:
    name: str
    ok: bool
    error: Optional[str] = None


async def run_side_effect(session_scope, name: str, fn: Effect, *args: Any, **kwargs: Any) -> SideEffectOutcome:
    """Run ``fn(session, *args, **kwargs)`` and commit; never raises."""
    try:
        async with session_scope() as session:
            try:
                await fn(session, *args, **kwargs)
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    except Exception as e:
        side_effect_failures_total.labels(name=name).inc()
        logger.error(f"[SideEffect] {name} failed: {e}", exc_info=True)
        capture_exception(e, side_effect=name)
        return SideEffectOutcome(name=name, ok=False, error=str(e))

    return SideEffectOutcome(name=name, ok=True)


class SideEffects:
    """Per-request queue of side effects, flushed after the response is sent."""

    def __init__(self, background_tasks: BackgroundTasks, session_scope):
        self.background_tasks = background_tasks
        self.session_scope = session_scope
        self.outcomes: List[SideEffectOutcome] = []

    def schedule(self, name: str, fn: Effect, *args: Any, **kwargs: Any) -> None:
        self.background_tasks.add_task(self._run, name, fn, *args, **kwargs)

    async def _run(self, name: str, fn: Effect, *args: Any, **kwargs: Any) -> None:
        outcome = await run_side_effect(self.session_scope, name, fn, *args, **kwargs)
        self.outcomes.append(outcome)


def get_side_effects(
    background_tasks: BackgroundTasks,
    session_scope=Depends(get_session_scope),
) -> SideEffects:
    return SideEffects(background_tasks, session_scope)
