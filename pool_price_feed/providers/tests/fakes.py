"""
In-memory stand-ins for RPC-backed components, shared by the test suites.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ...core.sinks import PriceSink
from ...pricing.pool_types import DerivedPrice, RawPriceState
from ..base import FieldRequest, FieldResult, OnChainDataProvider
from ..errors import ProviderConnectionError, ResolutionError, StateReadError

# Mainnet addresses; USDC sorts before WETH so it is token0 of the pair
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
WBTC = "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599"
USDC_WETH_POOL = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"
WBTC_WETH_POOL = "0xCBCdF9626bC03E24f779434178A73a0B4bad62eD"

# slot0().sqrtPriceX96 of USDC/WETH with ETH around 2600 USDC
USDC_WETH_SQRT_PRICE = 19611 * 2**96 + 2**95

StateScript = Union[RawPriceState, Exception, Callable[[int], Union[RawPriceState, Exception]]]


def make_state(sqrt_price_x96: int, tick: int = 0) -> RawPriceState:
    return RawPriceState(sqrt_price_x96=sqrt_price_x96, tick=tick)


class FakePoolProvider(OnChainDataProvider):
    """
    OnChainDataProvider backed by dictionaries.

    contracts maps lowercase contract address to {field name: value}; a
    value that is an Exception is raised instead of returned. states maps
    lowercase pool address to a RawPriceState, an Exception, or a callable
    receiving the 1-based read number for that pool.
    """

    def __init__(
        self,
        endpoint_url: str = "fake://node",
        contracts: Optional[Dict[str, Dict[str, Any]]] = None,
        states: Optional[Dict[str, StateScript]] = None,
        latency: float = 0.0,
        chain_id: Optional[int] = None,
    ):
        super().__init__(endpoint_url)
        self.chain_id = chain_id
        self.contracts = {k.lower(): v for k, v in (contracts or {}).items()}
        self.states = {k.lower(): v for k, v in (states or {}).items()}
        self.latency = latency
        self.closed = False
        self.batches: List[Tuple[FieldRequest, ...]] = []
        self.reads: List[Tuple[str, float]] = []
        self.read_counts: Dict[str, int] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    @classmethod
    async def connect(cls, endpoint_url: str, **kwargs) -> "FakePoolProvider":
        return cls(endpoint_url, **kwargs)

    async def resolve_immutable_field(self, address: str, field_name: str) -> Any:
        fields = self.contracts.get(address.lower(), {})
        if field_name not in fields:
            raise ResolutionError(f"{field_name}() on {address} reverted")
        value = fields[field_name]
        if isinstance(value, Exception):
            raise value
        return value

    async def resolve_immutable_fields(self, requests: Sequence[FieldRequest]) -> List[FieldResult]:
        self.batches.append(tuple(requests))
        return await super().resolve_immutable_fields(requests)

    async def read_pool_state(self, pool_address: str) -> RawPriceState:
        key = pool_address.lower()
        loop = asyncio.get_running_loop()
        self.reads.append((key, loop.time()))
        count = self.read_counts.get(key, 0) + 1
        self.read_counts[key] = count

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            script = self.states.get(key)
            if script is None:
                raise StateReadError("slot0() reverted", pool_address)
            outcome = script(count) if callable(script) else script
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


def pool_contracts(
    pool_address: str,
    token0: str,
    token1: str,
    decimals0: int,
    decimals1: int,
    fee: int = 500,
    symbol0: Optional[str] = None,
    symbol1: Optional[str] = None,
) -> Dict[str, Dict[str, Any]]:
    """Contract table describing one pool and its two tokens."""
    token0_fields: Dict[str, Any] = {"decimals": decimals0}
    token1_fields: Dict[str, Any] = {"decimals": decimals1}
    if symbol0:
        token0_fields["symbol"] = symbol0
    if symbol1:
        token1_fields["symbol"] = symbol1
    return {
        pool_address: {"token0": token0, "token1": token1, "fee": fee},
        token0: token0_fields,
        token1: token1_fields,
    }


def usdc_weth_contracts() -> Dict[str, Dict[str, Any]]:
    return pool_contracts(USDC_WETH_POOL, USDC, WETH, 6, 18, 500, "USDC", "WETH")


def wbtc_weth_contracts() -> Dict[str, Dict[str, Any]]:
    return pool_contracts(WBTC_WETH_POOL, WBTC, WETH, 8, 18, 3000, "WBTC", "WETH")


class FailingConnect:
    """Connect function that fails for chosen endpoints."""

    def __init__(self, failing: Sequence[str], latencies: Optional[Dict[str, float]] = None, **provider_kwargs):
        self.failing = set(failing)
        self.latencies = latencies or {}
        self.provider_kwargs = provider_kwargs
        self.attempts: List[str] = []
        self.opened: List[FakePoolProvider] = []

    async def __call__(self, endpoint_url: str) -> FakePoolProvider:
        self.attempts.append(endpoint_url)
        if endpoint_url in self.failing:
            raise ProviderConnectionError(f"RPC not connected: {endpoint_url}", endpoint_url)
        kwargs = dict(self.provider_kwargs)
        if endpoint_url in self.latencies:
            kwargs["latency"] = self.latencies[endpoint_url]
        provider = FakePoolProvider(endpoint_url, **kwargs)
        self.opened.append(provider)
        return provider


class CollectingSink(PriceSink):
    """
    Keeps every emitted price in memory.

    fail_on makes every emit for that pool raise RuntimeError; outages lists
    the emit calls (1-based) that raise ConnectionError instead.
    """

    def __init__(self, fail_on: Optional[str] = None, outages: Sequence[int] = ()):
        self.prices: List[DerivedPrice] = []
        self.fail_on = fail_on.lower() if fail_on else None
        self.outages = set(outages)
        self.calls = 0
        self.closed = False

    async def emit(self, price: DerivedPrice) -> None:
        self.calls += 1
        if self.fail_on and price.pool_address.lower() == self.fail_on:
            raise RuntimeError("sink rejected price")
        if self.calls in self.outages:
            raise ConnectionError("NATS publish timed out")
        self.prices.append(price)

    def for_pool(self, pool_address: str) -> List[DerivedPrice]:
        return [p for p in self.prices if p.pool_address.lower() == pool_address.lower()]

    async def aclose(self) -> None:
        self.closed = True
