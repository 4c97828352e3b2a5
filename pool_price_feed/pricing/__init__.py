"""
Price derivation for Uniswap V3 style pools.

Converts a pool's Q64.96 square-root price into a decimal exchange rate
adjusted for token decimals and quote-token orientation.
"""

from .pool_types import (
    V3_POOL_VERSION,
    DerivedPrice,
    Pool,
    RawPriceState,
    Token,
)
from .converter import (
    derive_price,
    invert_price,
    scale_by_decimals,
    sqrt_price_x96_to_price,
    squared_ratio,
)

__all__ = [
    'V3_POOL_VERSION',
    'Token',
    'Pool',
    'RawPriceState',
    'DerivedPrice',
    'squared_ratio',
    'scale_by_decimals',
    'invert_price',
    'sqrt_price_x96_to_price',
    'derive_price',
]
