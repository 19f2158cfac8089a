import asyncio

from conftest import FakeClock, make_snapshot
from cardgen.modules.generation.models import GenerationStatus
from cardgen.modules.polling.synchronizer import PollingSynchronizer, PollOutcome


class ScriptedFetcher:
    """Returns statuses in order, repeating the last one; exceptions are raised."""

    def __init__(self, clock, *script, cost=0.0):
        self.clock = clock
        self.script = list(script)
        self.cost = cost
        self.calls = []

    async def __call__(self, generation_id):
        self.calls.append((generation_id, self.clock.now))
        self.clock.now += self.cost
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return make_snapshot(item, generation_id)


def make_poller(fetch, clock, **kwargs):
    stops = []
    poller = PollingSynchronizer(
        fetch,
        on_stop=lambda outcome, latest: stops.append(outcome),
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )
    return poller, stops


async def test_first_fetch_is_immediate_then_fixed_interval():
    clock = FakeClock()
    fetch = ScriptedFetcher(
        clock,
        GenerationStatus.PROCESSING,
        GenerationStatus.PROCESSING,
        GenerationStatus.COMPLETED,
    )
    poller, stops = make_poller(fetch, clock)

    poller.start(7)
    outcome = await poller.wait()

    assert outcome is PollOutcome.COMPLETED
    assert [t for _, t in fetch.calls] == [0.0, 2.0, 4.0]
    assert stops == [PollOutcome.COMPLETED]
    assert poller.latest.generation_id == 7
    assert not poller.running


async def test_gives_up_after_max_time_without_raising():
    clock = FakeClock()
    fetch = ScriptedFetcher(clock, GenerationStatus.PROCESSING)
    poller, stops = make_poller(fetch, clock)

    poller.start(1)
    outcome = await poller.wait()

    assert outcome is PollOutcome.TIMEOUT
    assert stops == [PollOutcome.TIMEOUT]
    assert clock.now >= 45.0
    assert fetch.calls[-1][1] <= 45.0
    assert poller.latest.status is GenerationStatus.PROCESSING


async def test_failure_between_ticks_stops_on_next_tick():
    clock = FakeClock()
    fetch = ScriptedFetcher(
        clock,
        GenerationStatus.PROCESSING,
        GenerationStatus.PROCESSING,
        GenerationStatus.FAILED,
        GenerationStatus.COMPLETED,
    )
    poller, stops = make_poller(fetch, clock)

    poller.start(1)
    outcome = await poller.wait()

    assert outcome is PollOutcome.FAILED
    assert len(fetch.calls) == 3
    assert poller.latest.status is GenerationStatus.FAILED


async def test_fetch_errors_do_not_stop_polling():
    clock = FakeClock()
    fetch = ScriptedFetcher(
        clock,
        RuntimeError("network blip"),
        RuntimeError("again"),
        GenerationStatus.COMPLETED,
    )
    seen = []
    poller, _ = make_poller(fetch, clock, on_snapshot=seen.append)

    poller.start(1)
    outcome = await poller.wait()

    assert outcome is PollOutcome.COMPLETED
    assert len(fetch.calls) == 3
    assert [s.status for s in seen] == [GenerationStatus.COMPLETED]


async def test_slow_fetch_does_not_overlap_ticks():
    clock = FakeClock()
    fetch = ScriptedFetcher(
        clock, GenerationStatus.PROCESSING, GenerationStatus.PROCESSING, GenerationStatus.COMPLETED, cost=0.5
    )
    poller, _ = make_poller(fetch, clock)

    poller.start(1)
    await poller.wait()

    assert clock.sleeps == [1.5, 1.5]
    assert [t for _, t in fetch.calls] == [0.0, 2.0, 4.0]


async def test_callback_errors_are_contained():
    clock = FakeClock()
    fetch = ScriptedFetcher(clock, GenerationStatus.PROCESSING, GenerationStatus.COMPLETED)

    def explode(snapshot):
        raise ValueError("consumer bug")

    poller, _ = make_poller(fetch, clock, on_snapshot=explode)

    poller.start(1)

    assert await poller.wait() is PollOutcome.COMPLETED


async def test_stop_cancels_pending_poll():
    blocked = asyncio.Event()

    async def fetch(generation_id):
        await blocked.wait()

    stops = []
    poller = PollingSynchronizer(fetch, on_stop=lambda o, s: stops.append(o))
    poller.start(1)
    await asyncio.sleep(0)
    assert poller.running

    poller.stop()
    outcome = await poller.wait()

    assert outcome is PollOutcome.STOPPED
    assert stops == [PollOutcome.STOPPED]
    assert not poller.running


async def test_stop_from_callback_ends_after_current_tick():
    clock = FakeClock()
    fetch = ScriptedFetcher(clock, GenerationStatus.PROCESSING)
    poller = None

    def on_snapshot(snapshot):
        poller.stop()

    poller, stops = make_poller(fetch, clock, on_snapshot=on_snapshot)
    poller.start(1)

    assert await poller.wait() is PollOutcome.STOPPED
    assert len(fetch.calls) == 1
    assert stops == [PollOutcome.STOPPED]


async def test_restart_replaces_running_poll():
    gate = asyncio.Event()
    calls = []

    async def fetch(generation_id):
        calls.append(generation_id)
        if generation_id == 1:
            await gate.wait()
        return make_snapshot(GenerationStatus.COMPLETED, generation_id)

    stops = []
    poller = PollingSynchronizer(fetch, on_stop=lambda o, s: stops.append(o))
    poller.start(1)
    await asyncio.sleep(0)

    poller.start(2)
    outcome = await poller.wait()

    assert outcome is PollOutcome.COMPLETED
    assert poller.latest.generation_id == 2
    assert stops == [PollOutcome.COMPLETED]
    assert calls == [1, 2]


async def test_context_manager_cleans_up():
    blocked = asyncio.Event()

    async def fetch(generation_id):
        await blocked.wait()

    async with PollingSynchronizer(fetch) as poller:
        poller.start(1)
        await asyncio.sleep(0)
        assert poller.running

    assert not poller.running
    assert poller.outcome is PollOutcome.STOPPED


async def test_async_callbacks_are_awaited():
    clock = FakeClock()
    fetch = ScriptedFetcher(clock, GenerationStatus.COMPLETED)
    seen = []

    async def on_stop(outcome, latest):
        seen.append((outcome, latest.status))

    poller = PollingSynchronizer(fetch, on_stop=on_stop, clock=clock, sleep=clock.sleep)
    poller.start(3)
    await poller.wait()

    assert seen == [(PollOutcome.COMPLETED, GenerationStatus.COMPLETED)]


async def test_restart_from_callback_retires_previous_loop():
    clock = FakeClock()
    fetch = ScriptedFetcher(
        clock,
        GenerationStatus.PROCESSING,
        GenerationStatus.PROCESSING,
        GenerationStatus.PROCESSING,
        GenerationStatus.COMPLETED,
    )
    poller = None

    def on_snapshot(snapshot):
        if snapshot.generation_id == 1:
            poller.start(2)

    poller, stops = make_poller(fetch, clock, on_snapshot=on_snapshot)
    poller.start(1)
    outcome = await poller.wait()

    assert outcome is PollOutcome.COMPLETED
    assert [gid for gid, _ in fetch.calls] == [1, 2, 2, 2]
    assert stops == [PollOutcome.COMPLETED]
    assert poller.latest.generation_id == 2
    assert poller.ticks == 3


async def test_stop_during_final_callback_keeps_terminal_outcome():
    clock = FakeClock()
    fetch = ScriptedFetcher(clock, GenerationStatus.COMPLETED)
    entered = asyncio.Event()
    release = asyncio.Event()
    stops = []

    async def on_stop(outcome, latest):
        stops.append(outcome)
        entered.set()
        await release.wait()

    poller = PollingSynchronizer(fetch, on_stop=on_stop, clock=clock, sleep=clock.sleep)
    poller.start(1)
    await entered.wait()

    poller.stop()
    release.set()
    outcome = await poller.wait()

    assert outcome is PollOutcome.COMPLETED
    assert stops == [PollOutcome.COMPLETED]


async def test_status_is_derived_from_records_not_reported_label():
    clock = FakeClock()
    failed = make_snapshot(GenerationStatus.FAILED, 1)
    mislabelled = failed.model_copy(update={"status": GenerationStatus.PROCESSING})

    async def fetch(generation_id):
        return mislabelled

    poller, stops = make_poller(fetch, clock)
    poller.start(1)

    assert await poller.wait() is PollOutcome.FAILED
    assert stops == [PollOutcome.FAILED]
