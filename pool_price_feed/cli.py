#!/usr/bin/env python3
"""
Command-line interface for the pool price feed.

Usage:
    python -m pool_price_feed
    python -m pool_price_feed --pool 0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640@12
    python -m pool_price_feed --chain base --pool 0xd0b53D9277642d899DF5C87A3966A349A798F224 --once
"""

import argparse
import asyncio
import contextlib
import dataclasses
import functools
import logging
import signal
import sys
from typing import Any, Dict, List, Optional

from .config import ConfigError, ConfigManager, FeedConfig
from .core.orchestrator import PriceFeedOrchestrator
from .core.sinks import LoggingPriceSink, MultiPriceSink, PriceSink
from .providers import ProviderConnectionError, Web3PoolDataProvider
from .utils.nats import NatsPricePublisher

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pool-price-feed",
        description="Poll Uniswap V3 pools and emit their current prices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # WETH/USDC on Ethereum at the chain's block time
  python -m pool_price_feed

  # Two pools with their own intervals, spread over two endpoints
  python -m pool_price_feed --pool 0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640@5 \\
      --pool 0xCBCdF9626bC03E24f779434178A73a0B4bad62eD@12 \\
      --rpc-url https://eth.llamarpc.com --rpc-url https://rpc.ankr.com/eth

  # Read every pool once and exit
  python -m pool_price_feed --once

Pools, endpoints and the rest of the settings can also come from the
environment (POOLS, RPC_ENDPOINTS, POLL_INTERVAL_SECONDS, QUOTE_TOKEN, ...).
Command-line flags take precedence.
        """,
    )

    parser.add_argument(
        "--chain",
        choices=["ethereum", "base", "arbitrum"],
        help="Chain the pools live on",
    )
    parser.add_argument(
        "--pool",
        action="append",
        dest="pools",
        metavar="ADDRESS[@INTERVAL]",
        help="Pool to monitor, optionally with its own interval in seconds (repeatable)",
    )
    parser.add_argument(
        "--rpc-url",
        action="append",
        dest="rpc_urls",
        metavar="URL",
        help="RPC endpoint (repeatable; connections are spread round-robin)",
    )
    parser.add_argument(
        "--interval", type=float, help="Default polling interval in seconds"
    )
    parser.add_argument(
        "--quote-token",
        help="Quote currency as trusted symbol (usdc, weth, ...) or address",
    )
    parser.add_argument(
        "--connections",
        type=int,
        help="Number of RPC connections to open (default: one per pool)",
    )
    parser.add_argument(
        "--timeout", type=float, help="Per-request timeout in seconds"
    )
    parser.add_argument(
        "--full-precision",
        action="store_true",
        help="Keep the fractional bits of sqrtPriceX96 when squaring",
    )
    parser.add_argument(
        "--no-batching",
        action="store_true",
        help="Issue metadata reads one by one instead of as a JSON-RPC batch",
    )
    parser.add_argument(
        "--nats", action="store_true", help="Also publish prices to NATS"
    )
    parser.add_argument(
        "--once", action="store_true", help="Read every pool once, then exit"
    )
    return parser


def build_feed_config(args: argparse.Namespace) -> FeedConfig:
    """Environment-based feed configuration with command-line overrides applied."""
    overrides: Dict[str, Any] = {}
    if args.chain:
        overrides["CHAIN"] = args.chain
    if args.pools:
        overrides["POOLS"] = args.pools
    if args.rpc_urls:
        overrides["RPC_ENDPOINTS"] = args.rpc_urls
    if args.interval is not None:
        overrides["POLL_INTERVAL_SECONDS"] = args.interval
    if args.quote_token:
        overrides["QUOTE_TOKEN"] = args.quote_token
    if args.connections is not None:
        overrides["PROVIDER_POOL_SIZE"] = args.connections
    if args.timeout is not None:
        overrides["REQUEST_TIMEOUT_SECONDS"] = args.timeout
    if args.full_precision:
        overrides["FULL_PRECISION"] = True
    if args.no_batching:
        overrides["USE_BATCHING"] = False
    return dataclasses.replace(FeedConfig(), **overrides)


def build_sink(config: ConfigManager, publish_nats: bool = False) -> PriceSink:
    sinks: List[PriceSink] = [LoggingPriceSink()]
    if publish_nats or config.nats.NATS_ENABLED:
        sinks.append(NatsPricePublisher(config.chain, config.nats))
    if len(sinks) == 1:
        return sinks[0]
    return MultiPriceSink(sinks)


def build_orchestrator(
    config: ConfigManager, sink: PriceSink, max_ticks: Optional[int] = None
) -> PriceFeedOrchestrator:
    feed = config.feed
    specs = config.pool_specs
    connect = functools.partial(
        Web3PoolDataProvider.connect,
        timeout=feed.REQUEST_TIMEOUT_SECONDS,
        use_batching=feed.USE_BATCHING,
    )
    return PriceFeedOrchestrator(
        specs,
        config.rpc_endpoints,
        sink,
        connect,
        reference_token=config.reference_token,
        pool_size=feed.get_provider_pool_size(len(specs)),
        request_timeout=feed.REQUEST_TIMEOUT_SECONDS,
        shutdown_grace=feed.SHUTDOWN_GRACE_SECONDS,
        full_precision=feed.FULL_PRECISION,
        connect_retries=feed.CONNECT_RETRIES,
        max_ticks=max_ticks,
        chain_id=config.chain_id,
    )


def format_feed_result(result: Dict[str, Any]) -> None:
    """Format and display the per-pool outcome of a run."""
    logger.info("=" * 60)
    logger.info("📊 PRICE FEED SUMMARY")
    logger.info("=" * 60)

    for address, pool_result in result.get("results", {}).items():
        pair = pool_result.metadata.get("pair", address)
        if not pool_result.success:
            logger.error(f"❌ {pair}: {pool_result.error}")
            continue
        duration = pool_result.duration
        ran_for = f" in {duration.total_seconds():.1f}s" if duration else ""
        logger.info(
            f"✅ {pair}: {pool_result.emitted} prices over {pool_result.ticks} ticks{ran_for} "
            f"({pool_result.failures} failed reads)"
        )
        logger.debug(f"{address}: {pool_result.to_dict()}")

    logger.info("=" * 60)
    logger.info(
        f"🎯 Results: {result['completed']} completed, {result['failed']} failed, "
        f"{result['cancelled']} cancelled of {result['total']} pools"
    )


@contextlib.contextmanager
def shutdown_on_signals(orchestrator: PriceFeedOrchestrator):
    """Route SIGINT/SIGTERM to a graceful orchestrator stop."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            logger.debug(f"Cannot install handler for {sig.name} on this platform")
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


async def run_feed(config: ConfigManager, publish_nats: bool = False, once: bool = False) -> Dict[str, Any]:
    """Run the feed until every poller stops or a shutdown signal arrives."""
    sink = build_sink(config, publish_nats)
    orchestrator = build_orchestrator(config, sink, max_ticks=1 if once else None)

    try:
        if isinstance(sink, NatsPricePublisher):
            await sink.aconnect()
        elif isinstance(sink, MultiPriceSink):
            for inner in sink.sinks:
                if isinstance(inner, NatsPricePublisher):
                    await inner.aconnect()

        with shutdown_on_signals(orchestrator):
            return await orchestrator.run()
    finally:
        await sink.aclose()


async def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ConfigManager(feed=build_feed_config(args))
        config.validate_configuration()
    except ConfigError as e:
        logger.error(f"❌ Invalid configuration: {e}")
        return 2

    logger.debug(f"Configuration: {config.to_dict()}")

    logger.info(f"🚀 Starting pool price feed on {config.chain}")
    try:
        result = await run_feed(config, publish_nats=args.nats, once=args.once)
    except ProviderConnectionError as e:
        logger.error(f"❌ Could not connect to RPC: {e}")
        return 1
    except ConnectionError as e:
        logger.error(f"❌ NATS unavailable: {e}")
        return 1

    format_feed_result(result)
    return 0 if result["failed"] == 0 else 1


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("⏹️  Price feed interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    run()
