"""
On-chain data provider utilities.

This package provides the provider abstraction the price feed reads
through, its web3.py implementation, the fixed-size provider pool and the
pool descriptor resolver.
"""

from .errors import (
    ConversionError,
    ErrorHandler,
    PriceFeedError,
    ProviderConnectionError,
    ResolutionError,
    SinkError,
    StateReadError,
    UnsupportedPoolVersion,
)
from .base import OnChainDataProvider
from .provider_pool import ProviderHandle, ProviderPool
from .resolver import PoolDescriptorResolver
from .web3_provider import Web3PoolDataProvider

__all__ = [
    'PriceFeedError',
    'ProviderConnectionError',
    'ResolutionError',
    'StateReadError',
    'ConversionError',
    'SinkError',
    'UnsupportedPoolVersion',
    'ErrorHandler',
    'OnChainDataProvider',
    'ProviderHandle',
    'ProviderPool',
    'PoolDescriptorResolver',
    'Web3PoolDataProvider',
]
