"""
Tests for the fixed-size provider pool.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from ...pricing.pool_types import RawPriceState
from ..errors import ProviderConnectionError
from ..provider_pool import ProviderHandle, ProviderPool
from .fakes import FailingConnect, FakePoolProvider, make_state

POOL_A = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"
POOL_B = "0xCBCdF9626bC03E24f779434178A73a0B4bad62eD"


class TestProviderPoolConnect:
    """Test establishing connections at startup."""

    @pytest.mark.asyncio
    async def test_connects_every_slot_round_robin(self):
        """Slots are spread over the endpoints in order."""
        connect = FailingConnect([])

        pool = await ProviderPool.connect(["http://a", "http://b"], 3, connect)

        assert len(pool) == 3
        assert [pool.get(i).endpoint_url for i in range(3)] == ["http://a", "http://b", "http://a"]
        assert len({id(pool.get(i).provider) for i in range(3)}) == 3

    @pytest.mark.asyncio
    async def test_fail_fast_closes_opened_connections(self):
        """One unreachable endpoint fails startup and nothing stays open."""
        connect = FailingConnect(["http://b"])

        with patch("asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ProviderConnectionError) as exc_info:
                await ProviderPool.connect(["http://a", "http://b"], 2, connect, max_retries=2)

        assert exc_info.value.endpoint == "http://b"
        assert connect.attempts.count("http://b") == 2
        assert connect.opened and all(p.closed for p in connect.opened)

    @pytest.mark.asyncio
    async def test_wrong_chain_is_rejected(self):
        """An endpoint serving another network fails startup."""
        chains = {"http://a": 1, "http://b": 8453}

        async def connect(url):
            provider = FakePoolProvider(url, chain_id=chains[url])
            opened.append(provider)
            return provider

        opened = []
        with pytest.raises(ProviderConnectionError, match="serves chain id 8453, expected 1") as exc_info:
            await ProviderPool.connect(["http://a", "http://b"], 2, connect, expected_chain_id=1)

        assert exc_info.value.endpoint == "http://b"
        assert all(p.closed for p in opened)

    @pytest.mark.asyncio
    async def test_unknown_chain_id_is_accepted(self):
        pool = await ProviderPool.connect(["http://a"], 1, FailingConnect([]), expected_chain_id=1)
        assert pool.get(0).provider.chain_id is None

    @pytest.mark.asyncio
    async def test_retry_then_success(self):
        """A connection that fails once is retried after a backoff."""
        attempts = []

        async def flaky_connect(url):
            attempts.append(url)
            if len(attempts) == 1:
                raise ProviderConnectionError("Timed out", url)
            return FakePoolProvider(url)

        sleep = AsyncMock()
        with patch("asyncio.sleep", new=sleep):
            pool = await ProviderPool.connect(["http://a"], 1, flaky_connect, max_retries=3)

        assert len(pool) == 1
        assert attempts == ["http://a", "http://a"]
        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_non_connection_errors_are_wrapped(self):
        async def broken_connect(url):
            raise OSError("Name or service not known")

        with patch("asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ProviderConnectionError, match="Could not connect"):
                await ProviderPool.connect(["http://a"], 1, broken_connect, max_retries=1)

    @pytest.mark.asyncio
    async def test_no_endpoints(self):
        with pytest.raises(ProviderConnectionError):
            await ProviderPool.connect([], 1, FailingConnect([]))

    def test_empty_pool_rejected(self):
        with pytest.raises(ValueError):
            ProviderPool([])


class TestProviderPoolAssignment:
    """Test pool-to-connection assignment."""

    def make_pool(self, size):
        return ProviderPool([ProviderHandle(i, FakePoolProvider(f"fake://{i}")) for i in range(size)])

    def test_distinct_connections_when_enough_slots(self):
        pool = self.make_pool(3)
        handles = [pool.assign(i) for i in range(3)]

        assert [h.index for h in handles] == [0, 1, 2]
        assert not any(h.shared for h in handles)

    def test_round_robin_wraps_when_oversubscribed(self):
        pool = self.make_pool(2)
        handles = [pool.assign(i) for i in range(5)]

        assert [h.index for h in handles] == [0, 1, 0, 1, 0]
        assert pool.get(0).users == 3
        assert pool.get(0).shared and pool.get(1).shared

    def test_assignment_is_deterministic(self):
        first = self.make_pool(2)
        second = self.make_pool(2)
        assert [first.assign(i).index for i in range(4)] == [second.assign(i).index for i in range(4)]

    @pytest.mark.asyncio
    async def test_aclose_closes_everything(self):
        pool = self.make_pool(2)
        await pool.aclose()
        assert all(h.provider.closed for h in pool.handles)


class TestSharedHandle:
    """Test call serialization on a shared connection."""

    @pytest.mark.asyncio
    async def test_shared_calls_do_not_overlap(self):
        """Concurrent reads through one handle run strictly one at a time."""
        provider = FakePoolProvider(
            states={POOL_A: make_state(2**96, 1), POOL_B: make_state(2**97, 2)},
            latency=0.01,
        )
        handle = ProviderHandle(0, provider)

        results = await asyncio.gather(
            *(handle.read_pool_state(POOL_A if i % 2 == 0 else POOL_B) for i in range(6))
        )

        assert provider.max_in_flight == 1
        assert [r.tick for r in results] == [1, 2, 1, 2, 1, 2]
        assert all(isinstance(r, RawPriceState) for r in results)

    @pytest.mark.asyncio
    async def test_shared_calls_keep_queue_order(self):
        provider = FakePoolProvider(
            states={POOL_A: make_state(2**96, 1), POOL_B: make_state(2**97, 2)},
            latency=0.005,
        )
        handle = ProviderHandle(0, provider)

        order = [POOL_A, POOL_B, POOL_B, POOL_A]
        await asyncio.gather(*(handle.read_pool_state(address) for address in order))

        assert [address for address, _ in provider.reads] == [a.lower() for a in order]

    @pytest.mark.asyncio
    async def test_failure_releases_lock(self):
        provider = FakePoolProvider(states={POOL_A: RuntimeError("node hiccup")})
        handle = ProviderHandle(0, provider)

        with pytest.raises(RuntimeError):
            await handle.read_pool_state(POOL_A)

        assert not handle.lock.locked()
