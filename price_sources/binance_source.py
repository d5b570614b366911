from decimal import Decimal, InvalidOperation

import requests

from models.arbitrage import ArbitragePair
from price_sources.base_source import PriceSource, PriceUnavailable

API_URL = "https://api.binance.com/api/v3/ticker/price"


class BinancePriceSource(PriceSource):
    """Spot ticker from Binance. Binance uses "ETHUSDT" format (no slash)."""

    name = "Binance"

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self.session = requests.Session()

    def fetch_price(self, pair: ArbitragePair) -> Decimal:
        binance_symbol = pair.symbol.replace("/", "")
        try:
            resp = self.session.get(API_URL, params={"symbol": binance_symbol}, timeout=self.timeout)
            resp.raise_for_status()
            return Decimal(resp.json()["price"])
        except (requests.exceptions.RequestException, KeyError, ValueError, InvalidOperation) as e:
            raise PriceUnavailable(f"[{self.name}] {binance_symbol}: {e}") from e
