import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

from predsync.core.config import get_settings

logger = logging.getLogger(__name__)


class Outcome(Protocol):
    @property
    def success(self) -> bool: ...


OutcomeT = TypeVar("OutcomeT", bound=Outcome)

Job = Callable[[], Awaitable[Any]]
Defer = Callable[[float, Job, str], None]

_background_tasks: set[asyncio.Task] = set()


def defer_with_asyncio(delay_seconds: float, job: Job, name: str) -> None:
    """Run *job* after *delay_seconds* on the running event loop."""

    async def _runner() -> None:
        await asyncio.sleep(delay_seconds)
        try:
            await job()
        except Exception:
            logger.exception("Deferred job failed", extra={"job": name})

    task = asyncio.get_running_loop().create_task(_runner(), name=name)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


class RetryCoordinator:
    """Re-attempts a failed update on a delay, independent of the regular schedule."""

    def __init__(
        self,
        *,
        defer: Defer = defer_with_asyncio,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self.defer = defer
        self.max_attempts = max(0, max_attempts if max_attempts is not None else settings.max_retry_attempts)
        self.delay_seconds = max(
            0.0,
            delay_seconds if delay_seconds is not None else settings.retry_delay_seconds,
        )

    async def run_with_retry(
        self,
        update_fn: Callable[[], Awaitable[OutcomeT]],
        max_attempts: int | None = None,
        *,
        label: str = "update",
        attempt: int = 0,
    ) -> OutcomeT:
        """Invoke *update_fn* now; on failure schedule a single delayed retry.

        *max_attempts* counts retries after the first call. Returns the outcome
        of this call; retries report through their own logging.
        """
        limit = self.max_attempts if max_attempts is None else max(0, max_attempts)
        outcome = await update_fn()
        if outcome.success:
            return outcome

        if attempt >= limit:
            logger.error(
                "Retries exhausted; keeping cached data until next cycle",
                extra={"label": label, "attempts": attempt + 1},
            )
            return outcome

        next_attempt = attempt + 1
        logger.info(
            f"Retry {next_attempt}/{limit} in {self.delay_seconds:g}s",
            extra={"label": label, "retry": next_attempt, "delay_seconds": self.delay_seconds},
        )

        async def _retry() -> None:
            await self.run_with_retry(update_fn, limit, label=label, attempt=next_attempt)

        self.defer(self.delay_seconds, _retry, f"retry:{label}:{next_attempt}")
        return outcome
