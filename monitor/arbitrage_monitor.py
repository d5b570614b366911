import logging
import threading
from datetime import datetime, timezone
from decimal import Decimal

from models.arbitrage import Opportunity, PairReport
from price_sources.base_source import PriceUnavailable
from rpc.errors import RpcError
from rpc.fallback_manager import ConnectionState, FallbackManager

logger = logging.getLogger(__name__)


class MonitorStatus:
    INITIALIZING = "initializing"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class ArbitrageMonitor:
    """
    Polling loop. Every cycle it reads the chain height through the
    FallbackManager, then compares each pair's pool price to its reference price.

    Owns all mutable service state (current block, status, last opportunity);
    the status API reads it through snapshot().
    """

    def __init__(
        self,
        manager: FallbackManager,
        pairs: list,
        pool_source,
        reference_source,
        threshold: float = 0.0015,
        publisher=None,
        interval: float = 2.0,
    ):
        self.manager = manager
        self.pairs = list(pairs)
        self.pool_source = pool_source
        self.reference_source = reference_source
        self.threshold = Decimal(str(threshold))
        self.publisher = publisher
        self.interval = interval

        self.status = MonitorStatus.INITIALIZING
        self.current_block = 0
        self.last_opportunity = None
        self.last_reports = []
        self._stop = threading.Event()

    def initialize(self) -> bool:
        self.status = MonitorStatus.CONNECTING
        if self.manager.connect():
            self.current_block = self.manager.last_known_height
            logger.info(f"[Monitor] Connected to Ethereum Mainnet at block {self.current_block}.")
            self.status = MonitorStatus.CONNECTED
            return True

        logger.error(f"[Monitor] Failed to connect to all RPC endpoints: {self.manager.last_error}")
        self.status = MonitorStatus.DISCONNECTED
        return False

    def run_once(self):
        """One polling cycle. Never raises."""
        try:
            self._poll()
        except Exception as e:
            logger.error(f"[Monitor] Cycle failed: {type(e).__name__}: {e}")
            self.status = MonitorStatus.ERROR

    def _poll(self):
        if self.manager.state == ConnectionState.DISCONNECTED:
            logger.warning("[Monitor] RPC connection not initialized. Attempting reconnection...")
            if not self.initialize():
                return
            # connect() already read the height for this cycle
            block = self.manager.last_known_height
        else:
            try:
                block = self.manager.get_chain_height()
            except RpcError as e:
                logger.error(f"[Monitor] Could not fetch block height: {e}")
                self.status = MonitorStatus.ERROR
                return

        self.current_block = block
        self.status = MonitorStatus.CONNECTED

        reports = []
        for pair in self.pairs:
            try:
                report = self.check_pair(pair)
            except PriceUnavailable as e:
                logger.warning(f"[Monitor] Skipping {pair.name}: {e}")
                continue
            reports.append(report)
            if report.opportunity:
                self._record_opportunity(report, block)
        self.last_reports = reports

        found = any(r.opportunity for r in reports)
        logger.info(
            f"[Monitor] Block: {block}. Pairs checked: {len(reports)}/{len(self.pairs)}. "
            f"Arbitrage found: {'YES' if found else 'No'}."
        )

    def check_pair(self, pair) -> PairReport:
        pool_price = self.pool_source.fetch_price(pair)
        reference_price = self.reference_source.fetch_price(pair)
        if reference_price <= 0:
            raise PriceUnavailable(f"non-positive reference price {reference_price}")
        difference = (pool_price - reference_price) / reference_price
        return PairReport(
            pair=pair.name,
            difference=difference,
            opportunity=abs(difference) > self.threshold,
        )

    def _record_opportunity(self, report: PairReport, block: int):
        self.last_opportunity = Opportunity(
            block_number=block,
            details=f"{report.pair}: {report.difference_pct} difference.",
        )
        if self.publisher is not None:
            try:
                self.publisher.publish(self.last_opportunity, key=report.pair)
            except Exception as e:
                logger.error(f"[Monitor] Failed to publish opportunity: {e}")

    def run_forever(self):
        logger.info(f"[Monitor] Starting auto-monitor. Running every {self.interval:g} seconds...")
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval)

    def stop(self):
        self._stop.set()

    # ---------- Status payloads ----------

    def snapshot(self) -> dict:
        connection = self.manager.get_status()
        return {
            "status": self.status,
            "blockchainConnection": (
                "disconnected"
                if connection.state in (ConnectionState.DISCONNECTED, ConnectionState.CONNECTING)
                else "robust_connected"
            ),
            "connectionState": connection.state.value,
            "currentBlock": self.current_block,
            "lastOpportunity": self.last_opportunity.to_dict() if self.last_opportunity else None,
            "monitoredPairsCount": len(self.pairs),
            "reports": [r.to_dict() for r in self.last_reports],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
