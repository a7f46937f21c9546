import asyncio
import io
import random

import pytest
from rich.console import Console

from git_reword.git import DiffRecord
from git_reword.pipeline import (
    ChunkedRequestPipeline,
    RetryExhaustedError,
    RetryPolicy,
    backoff_delay,
    inter_chunk_delay,
    parity_batch_size,
    partition,
)
from git_reword.providers import ProviderAuthError, RateLimitError


class FakeGenerator:
    """Answers "msg:<diff>" and fails on demand."""

    def __init__(self, failures=None, error=RateLimitError, delays=None):
        self.failures = dict(failures or {})
        self.error = error
        self.delays = delays or {}
        self.calls = []
        self.events = []

    async def generate(self, diff):
        self.calls.append(diff)
        self.events.append(("start", diff))
        await asyncio.sleep(self.delays.get(diff, 0))
        self.events.append(("end", diff))
        if self.failures.get(diff, 0) > 0:
            self.failures[diff] -= 1
            raise self.error(f"backend refused {diff}")
        return f"msg:{diff}"


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def make_records(count):
    return [DiffRecord(id=f"sha{i}", diff=f"d{i}") for i in range(count)]


def make_pipeline(generator, sleep, **kwargs):
    console = Console(file=io.StringIO(), width=200)
    return ChunkedRequestPipeline(
        generator, sleep=sleep, rng=random.Random(7), console=console, **kwargs
    )


def test_parity_batch_size():
    for total in range(1, 21):
        assert parity_batch_size(total) == (4 if total % 2 == 0 else 3)


def test_partition_covers_input_without_gaps():
    records = make_records(10)
    chunks = partition(records, 4)

    assert [(c.start, c.end) for c in chunks] == [(0, 4), (4, 8), (8, 10)]
    assert [r for c in chunks for r in c.records] == records


def test_partition_rejects_non_positive_size():
    with pytest.raises(ValueError):
        partition(make_records(3), 0)


def test_delays_stay_in_range():
    rng = random.Random(1)
    for _ in range(200):
        assert 1100 <= inter_chunk_delay(rng) <= 5500
        assert 61_000 <= backoff_delay(rng) <= 65_000


@pytest.mark.parametrize("count", [1, 2, 3, 4, 5, 7, 8, 11])
def test_output_matches_input_order(count):
    rng = random.Random(count)
    delays = {f"d{i}": rng.random() / 1000 for i in range(count)}
    generator = FakeGenerator(delays=delays)
    records = make_records(count)

    result = asyncio.run(make_pipeline(generator, SleepRecorder()).improve(records))

    assert [item.id for item in result] == [r.id for r in records]
    assert [item.message for item in result] == [f"msg:{r.diff}" for r in records]


def test_empty_input_skips_everything():
    generator = FakeGenerator()
    sleep = SleepRecorder()

    def strategy(total):
        raise AssertionError("strategy must not be consulted")

    result = asyncio.run(make_pipeline(generator, sleep, batch_size=strategy).improve([]))

    assert result == []
    assert generator.calls == []
    assert sleep.calls == []


def test_chunks_never_overlap():
    generator = FakeGenerator(delays={"d0": 0.002, "d5": 0.001})
    records = make_records(8)

    asyncio.run(make_pipeline(generator, SleepRecorder()).improve(records))

    # chunk size 4: every request of the first chunk ends before the second starts
    first_chunk = {f"d{i}" for i in range(4)}
    last_end = max(i for i, (kind, diff) in enumerate(generator.events) if kind == "end" and diff in first_chunk)
    first_start = min(
        i for i, (kind, diff) in enumerate(generator.events) if kind == "start" and diff not in first_chunk
    )
    assert last_end < first_start
    # all requests of a chunk are issued before any of them finishes
    assert [kind for kind, _ in generator.events[:4]] == ["start"] * 4


def test_successful_run_only_sleeps_between_chunks():
    sleep = SleepRecorder()
    records = make_records(9)

    asyncio.run(make_pipeline(FakeGenerator(), sleep).improve(records))

    assert len(sleep.calls) == 2
    assert all(1.1 <= seconds <= 5.5 for seconds in sleep.calls)


def test_single_commit_rate_limited_once():
    generator = FakeGenerator(failures={"d0": 1})
    sleep = SleepRecorder()

    result = asyncio.run(make_pipeline(generator, sleep).improve(make_records(1)))

    assert len(result) == 1
    assert result[0].id == "sha0"
    assert result[0].message == "msg:d0"
    long_sleeps = [s for s in sleep.calls if s >= 60]
    assert len(long_sleeps) == 1
    assert sleep.calls == long_sleeps


def test_failed_chunk_is_retried_from_its_start():
    records = make_records(5)
    clean = asyncio.run(make_pipeline(FakeGenerator(), SleepRecorder()).improve(records))

    generator = FakeGenerator(failures={"d4": 1})
    sleep = SleepRecorder()
    result = asyncio.run(make_pipeline(generator, sleep).improve(records))

    assert result == clean
    # chunk size 3: second chunk is d3, d4 and both are requested again
    assert generator.calls == ["d0", "d1", "d2", "d3", "d4", "d3", "d4"]
    assert len([s for s in sleep.calls if s >= 60]) == 1


def test_generic_failure_also_backs_off():
    generator = FakeGenerator(failures={"d1": 2}, error=RuntimeError)
    sleep = SleepRecorder()

    result = asyncio.run(make_pipeline(generator, sleep).improve(make_records(2)))

    assert [item.message for item in result] == ["msg:d0", "msg:d1"]
    assert len([s for s in sleep.calls if s >= 60]) == 2


def test_auth_errors_are_fatal():
    generator = FakeGenerator(failures={"d0": 1}, error=ProviderAuthError)
    sleep = SleepRecorder()

    with pytest.raises(ProviderAuthError):
        asyncio.run(make_pipeline(generator, sleep).improve(make_records(3)))

    assert sleep.calls == []


def test_bounded_attempts_per_chunk():
    generator = FakeGenerator(failures={"d3": 100})
    sleep = SleepRecorder()
    pipeline = make_pipeline(generator, sleep, retry_policy=RetryPolicy(max_attempts=2))

    with pytest.raises(RetryExhaustedError) as excinfo:
        asyncio.run(pipeline.improve(make_records(4)))

    assert excinfo.value.chunk.start == 0
    assert excinfo.value.chunk.end == 4
    assert excinfo.value.attempts == 2
    assert isinstance(excinfo.value.last_error, RateLimitError)
    assert len([s for s in sleep.calls if s >= 60]) == 1


def test_circuit_breaker_counts_failures_across_chunks():
    generator = FakeGenerator(failures={"d0": 1, "d3": 5})
    pipeline = make_pipeline(
        generator, SleepRecorder(), batch_size=lambda total: 1, retry_policy=RetryPolicy(max_failures=3)
    )

    with pytest.raises(RetryExhaustedError) as excinfo:
        asyncio.run(pipeline.improve(make_records(4)))

    assert excinfo.value.chunk.start == 3
    assert excinfo.value.attempts == 2


def test_custom_batch_size_strategy():
    generator = FakeGenerator()
    sleep = SleepRecorder()
    records = make_records(3)

    result = asyncio.run(make_pipeline(generator, sleep, batch_size=lambda total: 1).improve(records))

    assert [item.id for item in result] == ["sha0", "sha1", "sha2"]
    assert len(sleep.calls) == 2
    assert [kind for kind, _ in generator.events] == ["start", "end"] * 3


def test_progress_is_reported():
    console_file = io.StringIO()
    pipeline = ChunkedRequestPipeline(
        FakeGenerator(failures={"d0": 1}),
        sleep=SleepRecorder(),
        rng=random.Random(3),
        console=Console(file=console_file, width=200),
    )

    asyncio.run(pipeline.improve(make_records(1)))

    output = console_file.getvalue()
    assert "chunks of 3" in output
    assert "rate limited" in output
    assert "Retrying after sleeping for" in output
