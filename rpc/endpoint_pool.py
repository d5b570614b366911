import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoint:
    url: str
    priority: int

    @property
    def label(self) -> str:
        """scheme://host only. Keyed provider URLs carry the API key in the path."""
        parts = urlsplit(self.url)
        if not parts.netloc:
            return self.url
        return f"{parts.scheme}://{parts.netloc}"


class EndpointPool:
    """
    Ordered, immutable set of RPC endpoints.
    Priority is the position in the list: 0 is dialled first.
    """

    def __init__(self, urls: list):
        seen = set()
        endpoints = []
        for url in urls:
            url = url.strip()
            if not url or url in seen:
                continue
            seen.add(url)
            endpoints.append(Endpoint(url=url, priority=len(endpoints)))
        if not endpoints:
            raise ValueError("EndpointPool needs at least one RPC URL")
        self._endpoints = tuple(endpoints)

    @classmethod
    def from_config(cls, public_urls: list, preferred_url: str = None) -> "EndpointPool":
        """Build the pool, putting the preferred endpoint (if any) at the head."""
        urls = list(public_urls)
        if preferred_url:
            urls.insert(0, preferred_url)
            logger.info("[EndpointPool] Using preferred RPC URL from environment for primary connection.")
        else:
            logger.warning("[EndpointPool] Preferred RPC URL not set. Relying solely on public endpoints.")
        return cls(urls)

    @property
    def endpoints(self) -> tuple:
        return self._endpoints

    def __iter__(self):
        return iter(self._endpoints)

    def __len__(self):
        return len(self._endpoints)

    def __getitem__(self, index) -> Endpoint:
        return self._endpoints[index]
