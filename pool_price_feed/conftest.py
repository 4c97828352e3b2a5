"""
Pytest configuration shared by all pool_price_feed tests.
"""

import pytest

from .pricing.pool_types import Pool, Token
from .providers.tests.fakes import (
    USDC,
    USDC_WETH_POOL,
    USDC_WETH_SQRT_PRICE,
    WETH,
    CollectingSink,
    FakePoolProvider,
    make_state,
    usdc_weth_contracts,
)


@pytest.fixture
def usdc_weth_pool():
    """Resolved USDC/WETH 0.05% descriptor."""
    return Pool(
        address=USDC_WETH_POOL,
        version=3,
        token0=Token(USDC, 6, "USDC"),
        token1=Token(WETH, 18, "WETH"),
        fee=500,
    )


@pytest.fixture
def usdc_weth_provider():
    """Fake provider serving the USDC/WETH pool and its tokens."""
    return FakePoolProvider(
        contracts=usdc_weth_contracts(),
        states={USDC_WETH_POOL: make_state(USDC_WETH_SQRT_PRICE, tick=200000)},
    )


@pytest.fixture
def collecting_sink():
    """Sink recording every emitted price."""
    return CollectingSink()
