"""
Arbitrage Engine: main entry point.

Architecture:
  EndpointPool  (preferred RPC URL + public fallbacks)
      |
  FallbackManager  (quorum-based failover, one logical connection)
      |
  ArbitrageMonitor  (polls block height, checks pool vs reference prices)
      |            \\
      |             AlertProducer  [Kafka topic: arbitrage-alerts]  (optional)
      |
  Status API  (FastAPI on ARBITRAGE_PORT)

The monitor runs in a daemon thread. uvicorn blocks the main thread.
"""

import logging
import threading

import uvicorn

import config
from api.status_api import create_app
from models.arbitrage import ArbitragePair
from monitor.arbitrage_monitor import ArbitrageMonitor
from price_sources.binance_source import BinancePriceSource
from price_sources.simulated_source import SimulatedPriceSource, StaticPriceSource
from rpc.endpoint_pool import EndpointPool
from rpc.fallback_manager import FallbackManager

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_monitor() -> ArbitrageMonitor:
    pool = EndpointPool.from_config(config.PUBLIC_RPC_URLS, config.ETHERSCAN_RPC_URL)
    manager = FallbackManager(
        pool,
        quorum=config.RPC_QUORUM,
        timeout=config.RPC_TIMEOUT_SECONDS,
        stall_timeout=config.RPC_STALL_TIMEOUT_SECONDS,
        block_lag_tolerance=config.RPC_BLOCK_LAG_TOLERANCE,
    )

    if config.PRICE_SOURCE == "binance":
        reference_source = BinancePriceSource()
    else:
        reference_source = StaticPriceSource(config.BASE_PRICES)

    publisher = None
    if config.USE_KAFKA:
        from producers.alert_producer import AlertProducer

        publisher = AlertProducer()

    return ArbitrageMonitor(
        manager,
        pairs=[ArbitragePair(*p) for p in config.ARBITRAGE_PAIRS],
        pool_source=SimulatedPriceSource(reference_source),
        reference_source=reference_source,
        threshold=config.ARBITRAGE_THRESHOLD,
        publisher=publisher,
        interval=config.POLL_INTERVAL_SECONDS,
    )


def main():
    logger.info("=" * 58)
    logger.info("  Arbitrage Engine API v1.0  |  High-Frequency Monitoring")
    logger.info("=" * 58)
    logger.info(f"  Pairs    : {len(config.ARBITRAGE_PAIRS)}")
    logger.info(f"  Quorum   : {config.RPC_QUORUM}")
    logger.info(f"  Interval : {config.POLL_INTERVAL_SECONDS:g}s")
    logger.info(f"  Kafka    : {'on' if config.USE_KAFKA else 'off'}")
    logger.info("=" * 58)

    monitor = build_monitor()
    monitor.initialize()

    t = threading.Thread(target=monitor.run_forever, daemon=True, name="monitor")
    t.start()

    logger.info(f"Arbitrage Engine API v1.0 listening on port {config.API_PORT}")
    try:
        uvicorn.run(create_app(monitor), host="0.0.0.0", port=config.API_PORT, log_level="warning")
    finally:
        monitor.stop()


if __name__ == "__main__":
    main()
