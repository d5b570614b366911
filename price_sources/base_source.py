from decimal import Decimal

from models.arbitrage import ArbitragePair


class PriceSource:
    """
    Base class for price sources.
    Subclasses implement fetch_price() for one venue (a DEX pool, an exchange, a simulation).
    """

    name = "base"

    def fetch_price(self, pair: ArbitragePair) -> Decimal:
        """Latest price for the pair. Raise PriceUnavailable if there is none."""
        raise NotImplementedError


class PriceUnavailable(Exception):
    """The source could not produce a price for the pair."""
