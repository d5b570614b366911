import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class ArbitragePair:
    name: str
    pool_address: str
    symbol: str  # reference market, e.g. "ETH/USDT"


@dataclass
class PairReport:
    pair: str
    difference: Decimal  # (pool - reference) / reference
    opportunity: bool

    @property
    def difference_pct(self) -> str:
        return f"{self.difference * 100:.4f}%"

    def to_dict(self) -> dict:
        return {
            "pair": self.pair,
            "difference": self.difference_pct,
            "opportunity": self.opportunity,
        }


@dataclass
class Opportunity:
    block_number: int
    details: str
    timestamp: Optional[str] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "blockNumber": self.block_number,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: str) -> "Opportunity":
        return cls(**json.loads(data))
