"""Tests for trailing-edge debouncing of live edits and queries."""

import asyncio

import pytest

from notelens.daemon.coalescer import Debouncer, UpdateCoalescer


class TestUpdateCoalescer:
    """UpdateCoalescer tests. Delays are scaled down from seconds to ms."""

    @pytest.mark.asyncio
    async def test_given_burst_when_quiet_then_last_trigger_fires_once(self) -> None:
        """Calls at t=0, 10, 20 with a 100 delay fire once, with the last request."""
        # Given
        coalescer = UpdateCoalescer()
        fired: list[str] = []

        def trigger(label: str):  # type: ignore[no-untyped-def]
            async def run() -> None:
                fired.append(label)

            return run

        # When
        coalescer.schedule("a.md", trigger("first"), 0.1)
        await asyncio.sleep(0.01)
        coalescer.schedule("a.md", trigger("second"), 0.1)
        await asyncio.sleep(0.01)
        coalescer.schedule("a.md", trigger("third"), 0.1)
        await asyncio.sleep(0.05)

        # Then: still inside the quiet window of the last request
        assert fired == []
        assert coalescer.pending_keys() == {"a.md"}

        await asyncio.sleep(0.1)
        await coalescer.drain()
        assert fired == ["third"]
        assert coalescer.pending_keys() == set()

    @pytest.mark.asyncio
    async def test_given_two_keys_when_scheduled_then_independent(self) -> None:
        coalescer = UpdateCoalescer()
        fired: list[str] = []

        async def on_a() -> None:
            fired.append("a")

        async def on_b() -> None:
            fired.append("b")

        coalescer.schedule("a.md", on_a, 0.02)
        coalescer.schedule("b.md", on_b, 0.02)
        await asyncio.sleep(0.06)
        await coalescer.drain()

        assert sorted(fired) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_given_pending_when_cancelled_then_never_fires(self) -> None:
        coalescer = UpdateCoalescer()
        fired: list[str] = []

        async def trigger() -> None:
            fired.append("x")

        coalescer.schedule("a.md", trigger, 0.02)

        assert coalescer.cancel("a.md") is True
        assert coalescer.cancel("a.md") is False
        await asyncio.sleep(0.05)
        assert fired == []

    @pytest.mark.asyncio
    async def test_given_slow_trigger_when_key_fires_again_then_runs_serialize(self) -> None:
        """A fired trigger waits for the previous one for the same key."""
        # Given
        coalescer = UpdateCoalescer()
        events: list[str] = []
        release = asyncio.Event()

        async def slow() -> None:
            events.append("slow-start")
            await release.wait()
            events.append("slow-end")

        async def fast() -> None:
            events.append("fast")

        # When
        coalescer.schedule("a.md", slow, 0)
        await asyncio.sleep(0.01)
        coalescer.schedule("a.md", fast, 0)
        await asyncio.sleep(0.01)

        # Then
        assert events == ["slow-start"]
        release.set()
        await coalescer.drain()
        assert events == ["slow-start", "slow-end", "fast"]

    @pytest.mark.asyncio
    async def test_given_failing_trigger_then_error_contained(self) -> None:
        coalescer = UpdateCoalescer()
        fired: list[str] = []

        async def boom() -> None:
            raise RuntimeError("embedding exploded")

        async def ok() -> None:
            fired.append("ok")

        coalescer.schedule("a.md", boom, 0)
        coalescer.schedule("b.md", ok, 0)
        await asyncio.sleep(0.01)
        await coalescer.drain()

        assert fired == ["ok"]

    @pytest.mark.asyncio
    async def test_given_stopped_then_pending_dropped_and_new_ignored(self) -> None:
        coalescer = UpdateCoalescer()
        fired: list[str] = []

        async def trigger() -> None:
            fired.append("x")

        coalescer.schedule("a.md", trigger, 0.02)
        await coalescer.stop()
        coalescer.schedule("b.md", trigger, 0)
        await asyncio.sleep(0.05)

        assert fired == []
        assert coalescer.pending_keys() == set()

    @pytest.mark.asyncio
    async def test_given_trigger_in_flight_when_exclusive_then_waits_for_it(self) -> None:
        # Given
        coalescer = UpdateCoalescer()
        order: list[str] = []
        entered = asyncio.Event()
        release = asyncio.Event()

        async def slow_update() -> None:
            entered.set()
            await release.wait()
            order.append("update")

        async def remove() -> None:
            async with coalescer.exclusive("a.md"):
                order.append("remove")

        coalescer.schedule("a.md", slow_update, 0.01)
        await asyncio.wait_for(entered.wait(), 1.0)

        # When
        removal = asyncio.create_task(remove())
        await asyncio.sleep(0.02)
        assert not removal.done()
        release.set()
        await removal
        await coalescer.drain()

        # Then
        assert order == ["update", "remove"]

    @pytest.mark.asyncio
    async def test_exclusive_on_other_key_does_not_block(self) -> None:
        coalescer = UpdateCoalescer()

        async with coalescer.exclusive("a.md"):
            await asyncio.wait_for(_enter(coalescer, "b.md"), 0.5)


async def _enter(coalescer: UpdateCoalescer, key: str) -> None:
    async with coalescer.exclusive(key):
        pass


class TestDebouncer:
    """Debouncer tests."""

    @pytest.mark.asyncio
    async def test_given_burst_then_one_call_with_last_arguments(self) -> None:
        """Calls at t=0, 10, 20 with a 100 delay run once, at ~120, with the last args."""
        # Given
        calls: list[str] = []

        async def search(query: str) -> str:
            calls.append(query)
            return f"results for {query}"

        debounced = Debouncer(search, 0.1)
        loop = asyncio.get_running_loop()
        started = loop.time()

        # When
        first = asyncio.create_task(debounced("c"))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(debounced("ca"))
        await asyncio.sleep(0.01)
        third = asyncio.create_task(debounced("cat"))
        results = await asyncio.gather(first, second, third)
        elapsed = loop.time() - started

        # Then
        assert calls == ["cat"]
        assert results == ["results for cat"] * 3
        assert elapsed >= 0.115

    @pytest.mark.asyncio
    async def test_given_separate_bursts_then_one_call_each(self) -> None:
        calls: list[int] = []

        async def fn(n: int) -> int:
            calls.append(n)
            return n

        debounced = Debouncer(fn, 0.01)

        assert await debounced(1) == 1
        assert await debounced(2) == 2
        assert calls == [1, 2]

    @pytest.mark.asyncio
    async def test_given_failing_call_then_every_waiter_sees_error(self) -> None:
        async def fn(_: str) -> str:
            raise ValueError("bad query")

        debounced = Debouncer(fn, 0.01)
        tasks = [asyncio.create_task(debounced("a")), asyncio.create_task(debounced("b"))]

        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, ValueError) for r in results)

    @pytest.mark.asyncio
    async def test_given_pending_when_cancelled_then_waiters_cancelled(self) -> None:
        calls: list[str] = []

        async def fn(q: str) -> str:
            calls.append(q)
            return q

        debounced = Debouncer(fn, 0.05)
        task = asyncio.create_task(debounced("q"))
        await asyncio.sleep(0)

        debounced.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.08)
        assert calls == []
        assert not debounced.pending
