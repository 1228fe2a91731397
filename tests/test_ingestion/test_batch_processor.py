"""
Tests for BatchProcessor: concurrency bound, accounting and abort policy.
"""

import asyncio

import pytest

from quant_loader.ingestion.batch import BatchProcessor, create_batches
from quant_loader.ingestion.config.value_objects import BatchConfig
from quant_loader.ingestion.errors import AuthenticationFailedError


class Boom(Exception):
    pass


def make_transform(failing=(), delay=0.0, started=None, tracker=None):
    async def transform(item):
        if started is not None:
            started.append(item)
        if tracker is not None:
            tracker["current"] += 1
            tracker["peak"] = max(tracker["peak"], tracker["current"])
        try:
            await asyncio.sleep(delay)
            if item in failing:
                raise Boom(f"item {item}")
            return item * 10
        finally:
            if tracker is not None:
                tracker["current"] -= 1

    return transform


class TestContinueOnError:
    @pytest.mark.asyncio
    async def test_every_input_accounted_for_once(self):
        processor = BatchProcessor(BatchConfig(batch_size=10, max_concurrent=2, batch_delay_seconds=0))

        result = await processor.run([0, 1, 2, 3, 4], make_transform(failing={1, 3}))

        assert result.successes == [0, 20, 40]
        assert [f.index for f in result.failures] == [1, 3]
        assert [f.item for f in result.failures] == [1, 3]
        assert all(isinstance(f.error, Boom) for f in result.failures)
        assert result.total_processed == 5
        assert result.success_rate == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_limit(self):
        tracker = {"current": 0, "peak": 0}
        processor = BatchProcessor(BatchConfig(batch_size=20, max_concurrent=3, batch_delay_seconds=0))

        await processor.run(range(12), make_transform(delay=0.01, tracker=tracker))

        assert tracker["peak"] == 3

    @pytest.mark.asyncio
    async def test_chunks_and_delay(self, monkeypatch):
        sleeps = []
        real_sleep = asyncio.sleep

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            await real_sleep(0)

        monkeypatch.setattr(asyncio, "sleep", fake_sleep)
        processor = BatchProcessor(BatchConfig(batch_size=2, max_concurrent=5, batch_delay_seconds=0.5))

        result = await processor.run([1, 2, 3, 4, 5], make_transform())

        assert result.successes == [10, 20, 30, 40, 50]
        # Three chunks, a delay between each pair, none after the last
        assert sleeps.count(0.5) == 2

    @pytest.mark.asyncio
    async def test_fatal_error_aborts_even_when_continuing(self):
        async def transform(item):
            if item == 2:
                raise AuthenticationFailedError("bad key")
            return item

        processor = BatchProcessor(BatchConfig(batch_size=10, max_concurrent=1, batch_delay_seconds=0))

        with pytest.raises(AuthenticationFailedError):
            await processor.run(
                [0, 1, 2, 3], transform, is_fatal=lambda e: isinstance(e, AuthenticationFailedError)
            )

    @pytest.mark.asyncio
    async def test_empty_input(self):
        result = await BatchProcessor().run([], make_transform())
        assert result.total_processed == 0
        assert result.success_rate == 0.0


class TestPrepare:
    @pytest.mark.asyncio
    async def test_prepared_items_skip_transform_and_slot(self):
        released = asyncio.Event()
        started = []
        processor = BatchProcessor(BatchConfig(batch_size=10, max_concurrent=1, batch_delay_seconds=0))

        async def prepare(item):
            if item == 0:
                return None
            if item == 2:
                released.set()
            return -item

        async def transform(item):
            started.append(item)
            await released.wait()
            return item * 10

        # Item 0 holds the only slot until item 2 has been prepared
        result = await asyncio.wait_for(processor.run([0, 1, 2], transform, prepare=prepare), timeout=2)

        assert result.successes == [0, -1, -2]
        assert started == [0]

    @pytest.mark.asyncio
    async def test_prepare_errors_follow_the_error_policy(self):
        processor = BatchProcessor(BatchConfig(batch_size=10, max_concurrent=2, batch_delay_seconds=0))

        async def prepare(item):
            if item == 1:
                raise Boom("prepare failed")
            return None

        result = await processor.run([0, 1, 2], make_transform(), prepare=prepare)

        assert result.successes == [0, 20]
        assert [f.index for f in result.failures] == [1]


class TestStopOnError:
    @pytest.mark.asyncio
    async def test_first_failure_propagates(self):
        processor = BatchProcessor(
            BatchConfig(batch_size=10, max_concurrent=2, batch_delay_seconds=0, continue_on_error=False)
        )

        with pytest.raises(Boom, match="item 3"):
            await processor.run([0, 1, 2, 3, 4], make_transform(failing={3}))

    @pytest.mark.asyncio
    async def test_queued_items_never_start(self):
        started = []
        processor = BatchProcessor(
            BatchConfig(batch_size=10, max_concurrent=1, batch_delay_seconds=0, continue_on_error=False)
        )

        with pytest.raises(Boom):
            await processor.run([0, 1, 2, 3], make_transform(failing={1}, started=started))

        assert started == [0, 1]

    @pytest.mark.asyncio
    async def test_later_chunks_never_start(self):
        started = []
        processor = BatchProcessor(
            BatchConfig(batch_size=2, max_concurrent=2, batch_delay_seconds=0, continue_on_error=False)
        )

        with pytest.raises(Boom):
            await processor.run([0, 1, 2, 3], make_transform(failing={0}, started=started))

        assert 2 not in started and 3 not in started


class TestHelpers:
    def test_create_batches(self):
        assert create_batches([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert create_batches([], 3) == []

    def test_create_batches_rejects_zero(self):
        with pytest.raises(ValueError):
            create_batches([1], 0)

    def test_config_validation(self):
        with pytest.raises(ValueError):
            BatchConfig(max_concurrent=0)
        with pytest.raises(ValueError):
            BatchConfig(batch_size=0)
