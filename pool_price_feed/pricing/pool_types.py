"""
Core types for pool descriptors and prices.

Domain models used across the price feed for representing tokens, pools,
raw on-chain pool state and the derived prices that get emitted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence, Tuple

# Pool layout/formula versions the converter knows how to price
V3_POOL_VERSION = 3


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive comparison of two hex addresses."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


@dataclass(frozen=True)
class Token:
    """
    ERC-20 token taking part in a pool.

    Attributes:
        address: Token contract address
        decimals: Number of fractional digits of the raw balance
        symbol: Token symbol, when the contract exposes one
    """

    address: str
    decimals: int
    symbol: Optional[str] = None

    @property
    def label(self) -> str:
        return self.symbol or self.address


@dataclass(frozen=True)
class Pool:
    """
    Immutable pool descriptor resolved once at startup.

    Attributes:
        address: Pool contract address
        version: Layout/formula version of the pool
        token0: First token of the pair (as ordered by the pool)
        token1: Second token of the pair
        fee: Fee tier in hundredths of a bip (informational)
    """

    address: str
    version: int
    token0: Token
    token1: Token
    fee: int

    def __post_init__(self):
        if same_address(self.token0.address, self.token1.address):
            raise ValueError(
                f"Pool {self.address} has identical token0 and token1: {self.token0.address}"
            )

    @property
    def decimal_delta(self) -> int:
        """token1.decimals - token0.decimals, may be negative."""
        return self.token1.decimals - self.token0.decimals

    @property
    def label(self) -> str:
        return f"{self.token0.label}/{self.token1.label}"


@dataclass(frozen=True)
class RawPriceState:
    """
    Snapshot of a V3 pool's slot0 taken on one tick.

    Only sqrt_price_x96 feeds the price formula; the remaining fields are
    carried so a tick's read is complete.
    """

    sqrt_price_x96: int
    tick: int
    observation_index: int = 0
    observation_cardinality: int = 0
    observation_cardinality_next: int = 0
    fee_protocol: int = 0
    unlocked: bool = True

    @classmethod
    def from_slot0(cls, values: Sequence[Any]) -> "RawPriceState":
        """Build a state from the 7-tuple returned by slot0()."""
        if len(values) != 7:
            raise ValueError(f"slot0 returned {len(values)} values, expected 7")
        return cls(
            sqrt_price_x96=int(values[0]),
            tick=int(values[1]),
            observation_index=int(values[2]),
            observation_cardinality=int(values[3]),
            observation_cardinality_next=int(values[4]),
            fee_protocol=int(values[5]),
            unlocked=bool(values[6]),
        )


@dataclass(frozen=True)
class DerivedPrice:
    """
    Price of one base token expressed in quote tokens.

    Attributes:
        pool_address: Pool the price was read from
        price: Quote units per one base unit
        base_token: Token being priced
        quote_token: Token the price is expressed in
        inverted: True when the raw token1/token0 ratio was inverted
        tick: Pool tick at read time
        timestamp: When the price was derived (UTC)
    """

    pool_address: str
    price: Decimal
    base_token: Token
    quote_token: Token
    inverted: bool = False
    tick: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_emission(self) -> Tuple[str, datetime, Decimal]:
        """(pool identity, timestamp, price) as exposed to consumers."""
        return self.pool_address, self.timestamp, self.price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool": self.pool_address,
            "timestamp": self.timestamp.isoformat(),
            "price": str(self.price),
            "base": self.base_token.address,
            "base_symbol": self.base_token.symbol,
            "quote": self.quote_token.address,
            "quote_symbol": self.quote_token.symbol,
            "inverted": self.inverted,
            "tick": self.tick,
        }
