import asyncio

import pytest

from petscan_engine.concurrency import first_successful, gather_settled
from petscan_engine.errors import AllSourcesExhausted, NetworkError


def test_first_success_cancels_the_losers():
    cancelled = []

    def slow(name):
        async def run():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(name)
                raise
            return name

        return run

    async def fast():
        await asyncio.sleep(0.01)
        return "B"

    result = asyncio.run(first_successful([slow("A"), fast, slow("C")]))
    assert result == "B"
    assert sorted(cancelled) == ["A", "C"]


def test_failures_are_skipped_until_a_success():
    async def fail():
        raise NetworkError("down", "a")

    async def succeed():
        await asyncio.sleep(0.01)
        return 42

    assert asyncio.run(first_successful([fail, succeed])) == 42


def test_rejected_results_do_not_win():
    async def short():
        return ""

    async def good():
        await asyncio.sleep(0.01)
        return "chicken, rice"

    assert asyncio.run(first_successful([short, good], accept=bool)) == "chicken, rice"


def test_all_failures_raise_exhausted_with_last_error():
    async def fail():
        raise NetworkError("down", "a")

    with pytest.raises(AllSourcesExhausted) as info:
        asyncio.run(first_successful([fail, fail]))
    assert isinstance(info.value.__cause__, NetworkError)

    with pytest.raises(AllSourcesExhausted):
        asyncio.run(first_successful([]))


def test_caller_cancellation_propagates_to_children():
    cancelled = []

    async def child():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    async def run():
        task = asyncio.ensure_future(first_successful([child, child]))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())
    assert cancelled == [True, True]


def test_gather_settled_splits_results_and_errors():
    async def ok():
        return 1

    async def bad():
        raise NetworkError("down", "b")

    results, errors = asyncio.run(gather_settled([ok, bad, ok]))
    assert results == [1, 1]
    assert len(errors) == 1
    assert isinstance(errors[0], NetworkError)
