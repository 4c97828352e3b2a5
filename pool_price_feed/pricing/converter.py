"""
Uniswap V3 sqrtPriceX96 to decimal price conversion.

Key concepts:
- sqrtPriceX96: square root of the token1/token0 raw-unit ratio in Q64.96
- raw ratio: (sqrtPriceX96 / 2^96)^2, token1 raw units per token0 raw unit
- human price: raw ratio / 10^(token1.decimals - token0.decimals)

Two squaring modes are supported:
- truncated (default): (sqrtPriceX96 >> 96)^2. The 96 fractional bits are
  dropped before squaring, so ratios below 1 collapse to 0 and small ratios
  lose precision. This is the long-standing behavior of the feed.
- full precision: sqrtPriceX96^2 / 2^192 evaluated in Decimal.

All arithmetic is done with Python integers and decimal.Decimal in a private
context; no float is involved at any point.
"""

from datetime import datetime
from decimal import Context, Decimal, ROUND_HALF_EVEN
from typing import Optional

from ..providers.errors import ConversionError, UnsupportedPoolVersion
from .pool_types import V3_POOL_VERSION, DerivedPrice, Pool, RawPriceState, same_address

# Q96 constants
Q96_RESOLUTION = 96
Q96 = 2**96
Q192 = 2**192
MAX_UINT160 = 2**160 - 1

# 80 significant digits comfortably holds any truncated ratio (< 2^128)
PRICE_CONTEXT = Context(prec=80, rounding=ROUND_HALF_EVEN)


def squared_ratio(sqrt_price_x96: int, *, full_precision: bool = False) -> Decimal:
    """
    Square a Q64.96 value into the token1/token0 raw-unit ratio.

    Args:
        sqrt_price_x96: Square root price in Q64.96 format
        full_precision: Keep the fractional bits instead of truncating them

    Returns:
        Raw-unit ratio as a Decimal

    Raises:
        ConversionError: If the value is zero, negative or wider than 160 bits
    """
    if not isinstance(sqrt_price_x96, int) or isinstance(sqrt_price_x96, bool):
        raise ConversionError(f"sqrtPriceX96 must be an integer, got {type(sqrt_price_x96).__name__}")
    if sqrt_price_x96 == 0:
        raise ConversionError("sqrtPriceX96 is zero (uninitialized or degenerate pool)")
    if sqrt_price_x96 < 0 or sqrt_price_x96 > MAX_UINT160:
        raise ConversionError(f"sqrtPriceX96 out of uint160 range: {sqrt_price_x96}")

    if full_precision:
        return PRICE_CONTEXT.divide(Decimal(sqrt_price_x96 * sqrt_price_x96), Decimal(Q192))

    integer_root = sqrt_price_x96 >> Q96_RESOLUTION
    return Decimal(integer_root * integer_root)


def scale_by_decimals(ratio: Decimal, token0_decimals: int, token1_decimals: int) -> Decimal:
    """
    Convert a raw-unit ratio into a human-unit ratio.

    Divides by 10^(token1_decimals - token0_decimals). A negative delta
    multiplies instead, a zero delta leaves the ratio untouched.
    """
    decimal_delta = token1_decimals - token0_decimals
    if decimal_delta == 0:
        return ratio
    return ratio.scaleb(-decimal_delta, PRICE_CONTEXT)


def invert_price(price: Decimal) -> Decimal:
    """Return 1 / price, refusing to divide by zero."""
    if price == 0:
        raise ConversionError("price is zero and cannot be inverted")
    return PRICE_CONTEXT.divide(Decimal(1), price)


def sqrt_price_x96_to_price(
    sqrt_price_x96: int,
    token0_decimals: int,
    token1_decimals: int,
    *,
    invert: bool = False,
    full_precision: bool = False,
) -> Decimal:
    """
    Calculate the human-readable price from sqrtPriceX96.

    Formula: price = (sqrtPriceX96 / 2^96)^2 / 10^(token1_decimals - token0_decimals)

    Args:
        sqrt_price_x96: Square root price in Q64.96 format
        token0_decimals: Decimals of token0
        token1_decimals: Decimals of token1
        invert: Return token0 per token1 instead of token1 per token0
        full_precision: Keep fractional bits when squaring

    Returns:
        Price as a Decimal (token1 per token0 unless inverted)
    """
    for decimals in (token0_decimals, token1_decimals):
        if decimals < 0:
            raise ConversionError(f"token decimals must be non-negative, got {decimals}")

    ratio = squared_ratio(sqrt_price_x96, full_precision=full_precision)
    price = scale_by_decimals(ratio, token0_decimals, token1_decimals)

    if invert:
        price = invert_price(price)

    return price


def derive_price(
    pool: Pool,
    state: RawPriceState,
    *,
    reference_token: Optional[str] = None,
    full_precision: bool = False,
    timestamp: Optional[datetime] = None,
) -> DerivedPrice:
    """
    Derive the emitted price for one pool tick.

    When token0 is the reference currency the ratio is inverted so the
    reference token always ends up on the quote side.

    Raises:
        UnsupportedPoolVersion: For pools that are not V3 layout
        ConversionError: For degenerate pool state
    """
    if pool.version != V3_POOL_VERSION:
        raise UnsupportedPoolVersion(pool.version, pool.address)

    invert = same_address(pool.token0.address, reference_token)

    try:
        price = sqrt_price_x96_to_price(
            state.sqrt_price_x96,
            pool.token0.decimals,
            pool.token1.decimals,
            invert=invert,
            full_precision=full_precision,
        )
    except ConversionError as e:
        raise ConversionError(e.message, pool.address) from e

    if invert:
        base_token, quote_token = pool.token1, pool.token0
    else:
        base_token, quote_token = pool.token0, pool.token1

    kwargs = {"timestamp": timestamp} if timestamp is not None else {}
    return DerivedPrice(
        pool_address=pool.address,
        price=price,
        base_token=base_token,
        quote_token=quote_token,
        inverted=invert,
        tick=state.tick,
        **kwargs,
    )
