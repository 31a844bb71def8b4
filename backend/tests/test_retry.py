from dataclasses import dataclass

from predsync.services.retry import RetryCoordinator


@dataclass
class FakeOutcome:
    success: bool


class ScriptedUpdate:
    def __init__(self, *results: bool) -> None:
        self.results = list(results)
        self.calls = 0

    async def __call__(self) -> FakeOutcome:
        self.calls += 1
        return FakeOutcome(self.results.pop(0))


async def test_success_schedules_nothing(recording_defer) -> None:
    coordinator = RetryCoordinator(defer=recording_defer, max_attempts=3, delay_seconds=60)
    update = ScriptedUpdate(True)

    outcome = await coordinator.run_with_retry(update)

    assert outcome.success is True
    assert update.calls == 1
    assert recording_defer.calls == []


async def test_failure_schedules_exactly_one_delayed_retry(recording_defer) -> None:
    coordinator = RetryCoordinator(defer=recording_defer, max_attempts=3, delay_seconds=60)
    update = ScriptedUpdate(False, True)

    outcome = await coordinator.run_with_retry(update, label="daily_predictions")

    assert outcome.success is False
    assert update.calls == 1
    assert len(recording_defer.calls) == 1
    delay, job, name = recording_defer.calls[0]
    assert delay == 60
    assert name == "retry:daily_predictions:1"

    await job()

    assert update.calls == 2
    assert len(recording_defer.calls) == 1


async def test_retries_stop_after_max_attempts(recording_defer) -> None:
    coordinator = RetryCoordinator(defer=recording_defer, max_attempts=2, delay_seconds=5)
    update = ScriptedUpdate(False, False, False, True)

    await coordinator.run_with_retry(update)
    while len(recording_defer.calls) < 10:
        pending = len(recording_defer.calls)
        await recording_defer.calls[-1][1]()
        if len(recording_defer.calls) == pending:
            break

    # First call plus two retries, then give up.
    assert update.calls == 3
    assert [name for _, _, name in recording_defer.calls] == ["retry:update:1", "retry:update:2"]


async def test_zero_max_attempts_never_retries(recording_defer) -> None:
    coordinator = RetryCoordinator(defer=recording_defer, max_attempts=3, delay_seconds=60)
    update = ScriptedUpdate(False)

    await coordinator.run_with_retry(update, max_attempts=0)

    assert recording_defer.calls == []
