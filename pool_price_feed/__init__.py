"""
Uniswap V3 pool price feed.

Polls a set of V3 pools over a fixed pool of RPC connections, converts each
pool's sqrtPriceX96 into a decimal price and emits it to a sink.
"""

__version__ = "0.1.0"
