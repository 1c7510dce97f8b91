"""Tests for the bounded-concurrency batch orchestrator."""

import asyncio

import pytest

from matchfacts.jobs.batch import DEADLINE_EXCEEDED, BatchOrchestrator


async def echo(item):
    return str(item)


class TestFailureIsolation:
    """One unit failing never aborts its siblings."""

    @pytest.mark.asyncio
    async def test_failures_collected_siblings_complete(self):
        async def handler(item):
            if item in (3, 7):
                raise RuntimeError(f"unit {item} broke")
            return item * 10

        result = await BatchOrchestrator(concurrency=3).run(range(10), handler)

        assert len(result.results) == 8
        assert [f.key for f in result.failures] == ["3", "7"]
        assert result.failures[0].error == "unit 3 broke"
        assert result.failure_count == 2

    @pytest.mark.asyncio
    async def test_failure_list_is_capped(self):
        async def handler(item):
            if item in (3, 7):
                raise RuntimeError("broke")
            return item

        result = await BatchOrchestrator(concurrency=1, failure_cap=1).run(range(10), handler)

        assert len(result.failures) == 1
        assert result.dropped_failures == 1
        assert result.failure_count == 2
        assert len(result.results) == 8

    @pytest.mark.asyncio
    async def test_error_text_truncated_and_never_empty(self):
        async def handler(item):
            if item == "long":
                raise ValueError("x" * 500)
            raise RuntimeError()

        result = await BatchOrchestrator().run(["long", "bare"], handler)
        errors = {f.key: f.error for f in result.failures}

        assert len(errors["long"]) == 200
        assert errors["bare"] == "RuntimeError"
        assert result.failures[0].to_dict().keys() == {"key", "error"}


class TestOrdering:
    @pytest.mark.asyncio
    async def test_results_in_input_order_with_keys(self):
        async def handler(item):
            # Later items finish first
            await asyncio.sleep(0.01 * (5 - item))
            return item

        result = await BatchOrchestrator(concurrency=5).run(range(5), handler, key=lambda i: f"u{i}")

        assert result.values() == [0, 1, 2, 3, 4]
        assert [unit.key for unit in result.results] == ["u0", "u1", "u2", "u3", "u4"]

    @pytest.mark.asyncio
    async def test_each_unit_runs_once(self):
        seen = []

        async def handler(item):
            seen.append(item)
            await asyncio.sleep(0)
            return item

        await BatchOrchestrator(concurrency=3).run(range(7), handler)
        assert sorted(seen) == list(range(7))


class TestLimits:
    @pytest.mark.asyncio
    async def test_empty_input_rejected(self):
        with pytest.raises(ValueError):
            await BatchOrchestrator().run([], echo)

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValueError):
            BatchOrchestrator(concurrency=0)

    @pytest.mark.asyncio
    async def test_concurrency_bound(self):
        active = 0
        peak = 0

        async def handler(item):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return item

        await BatchOrchestrator(concurrency=2).run(range(6), handler)
        assert peak == 2

    @pytest.mark.asyncio
    async def test_deadline_records_unfinished_units(self):
        async def handler(item):
            if item == 1:
                await asyncio.sleep(10)
            return str(item)

        result = await BatchOrchestrator(concurrency=2, deadline_seconds=0.2).run([0, 1, 2], handler)

        assert result.values() == ["0", "2"]
        assert [f.to_dict() for f in result.failures] == [{"key": "1", "error": DEADLINE_EXCEEDED}]

    @pytest.mark.asyncio
    async def test_politeness_delay_between_units(self, sleeper):
        orchestrator = BatchOrchestrator(concurrency=1, unit_delay=1.5, sleep=sleeper)

        result = await orchestrator.run(["a", "b", "c"], echo)

        assert result.values() == ["a", "b", "c"]
        assert sleeper.delays == [1.5, 1.5]
