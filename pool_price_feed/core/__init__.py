"""
Core runtime of the price feed: pollers, their orchestrator and price sinks.
"""

from .sinks import LoggingPriceSink, MultiPriceSink, PriceSink

__all__ = ['PriceSink', 'LoggingPriceSink', 'MultiPriceSink']
