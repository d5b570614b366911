import threading

import pytest

from rpc.endpoint_pool import EndpointPool
from rpc.errors import EndpointUnreachable
from rpc.fallback_manager import FallbackManager

URLS = [f"https://rpc{i}.example.org" for i in range(1, 6)]


class FakeClient:
    """Stands in for JsonRpcClient; behaviour is looked up per endpoint URL."""

    def __init__(self, network, endpoint, timeout):
        self.network = network
        self.endpoint = endpoint
        self.timeout = timeout
        self.closed = threading.Event()

    def call(self, method, params=None):
        self.network.calls.append((self.endpoint.url, method))
        kind, *args = self.network.behaviour.get(self.endpoint.url, ("refuse",))
        if kind == "ok":
            return args[0]
        if kind == "slow":
            delay, value = args
            if self.closed.wait(delay):
                raise EndpointUnreachable(self.endpoint, "session closed")
            return value
        if kind == "crash":
            raise args[0]
        if kind == "hang":
            # Only returns once the manager abandons the request
            self.closed.wait(30)
            raise EndpointUnreachable(self.endpoint, "session closed")
        raise EndpointUnreachable(self.endpoint, "connection refused")

    def close(self):
        self.network.closed.append(self.endpoint.url)
        self.closed.set()


class FakeNetwork:
    def __init__(self):
        self.behaviour = {}
        self.calls = []
        self.closed = []

    def set(self, url, *behaviour):
        self.behaviour[url] = behaviour

    def client_factory(self, endpoint, timeout):
        return FakeClient(self, endpoint, timeout)


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def make_manager(network):
    def _make(urls=URLS, **kwargs):
        kwargs.setdefault("timeout", 1.0)
        kwargs.setdefault("stall_timeout", 0.05)
        return FallbackManager(EndpointPool(urls), client_factory=network.client_factory, **kwargs)

    return _make
