import random
from decimal import Decimal

from models.arbitrage import ArbitragePair
from price_sources.base_source import PriceSource, PriceUnavailable

# Pool prices drift up to +/-0.3% around the base price
JITTER = Decimal("0.006")


class StaticPriceSource(PriceSource):
    """Always returns the configured base price. Used as the reference leg."""

    name = "static"

    def __init__(self, base_prices: dict):
        self.base_prices = {sym: Decimal(str(p)) for sym, p in base_prices.items()}

    def fetch_price(self, pair: ArbitragePair) -> Decimal:
        try:
            return self.base_prices[pair.symbol]
        except KeyError:
            raise PriceUnavailable(f"no base price for {pair.symbol}") from None


class SimulatedPriceSource(PriceSource):
    """
    Stand-in for reading pool reserves: the price of `base_source` with a random jitter.
    Pass the reference source as the base so pool and reference track the same market.
    """

    name = "simulated"

    def __init__(self, base_source: PriceSource, seed: int = None):
        self.base_source = base_source
        self._rng = random.Random(seed)

    def fetch_price(self, pair: ArbitragePair) -> Decimal:
        base = self.base_source.fetch_price(pair)
        offset = (Decimal(str(self._rng.random())) - Decimal("0.5")) * JITTER
        return base * (1 + offset)
