"""
Fallback connection manager.

Presents one logical JSON-RPC connection backed by every endpoint in an
EndpointPool. Endpoints are dialled in priority order, staggered by a stall
timeout, and each answer is tallied as it arrives. The first value backed by
`quorum` endpoints wins; whatever is still in flight is abandoned.

State machine:
    Disconnected --connect() ok-->          Connected
    Disconnected --connect() fail-->        Disconnected
    any          --query ok-->              Connected
    Connected    --query unreachable-->     Errored   (also from Errored/Degraded)
    Disconnected --query unreachable-->     Disconnected
    any          --query disagreement-->    Degraded

One log record is emitted per state change. Individual endpoint failures are
logged at DEBUG only.
"""

import json
import logging
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from rpc.endpoint_pool import EndpointPool
from rpc.errors import (
    AllEndpointsUnreachable,
    EndpointError,
    EndpointTimeout,
    EndpointUnreachable,
    MalformedResponse,
    QuorumDisagreement,
    RpcError,
)
from rpc.json_rpc import JsonRpcClient, parse_quantity

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"
    ERRORED = "errored"


@dataclass(frozen=True)
class ConnectionStatus:
    state: ConnectionState
    last_known_height: int
    last_error: Optional[str]
    endpoint_count: int
    quorum: int
    updated_at: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass(frozen=True)
class QueryResult:
    value: object
    responders: tuple  # Endpoints whose answers formed the quorum, priority order


def exact_tally(votes: list, quorum: int):
    """
    Accept the first value returned identically by `quorum` endpoints.
    votes: [(Endpoint, value), ...] in arrival order.
    Returns (value, responders) or None.
    """
    groups = {}
    for endpoint, value in votes:
        key = json.dumps(value, sort_keys=True, default=str)
        groups.setdefault(key, []).append((endpoint, value))
        if len(groups[key]) >= quorum:
            members = groups[key]
            return members[0][1], tuple(ep for ep, _ in members)
    return None


def height_tally(tolerance: int):
    """
    Chain heights from healthy nodes rarely match exactly.
    Heights no more than `tolerance` blocks apart count as one answer; the
    lowest height of the largest such group is returned, ties going to the
    more recent group.
    """

    def tally(votes: list, quorum: int):
        ranked = sorted(votes, key=lambda v: v[1])
        best = None
        for i, (_, low) in enumerate(ranked):
            group = [v for v in ranked[i:] if v[1] - low <= tolerance]
            if len(group) < quorum:
                continue
            if best is None or len(group) >= len(best):
                best = group
        if best is None:
            return None
        responders = tuple(sorted((ep for ep, _ in best), key=lambda ep: ep.priority))
        return best[0][1], responders

    return tally


class FallbackManager:
    def __init__(
        self,
        pool: EndpointPool,
        quorum: int = 1,
        timeout: float = 5.0,
        stall_timeout: float = 0.75,
        block_lag_tolerance: int = 2,
        client_factory=JsonRpcClient,
    ):
        if quorum < 1:
            raise ValueError(f"quorum must be >= 1, got {quorum}")
        if quorum > len(pool):
            raise ValueError(f"quorum {quorum} exceeds the {len(pool)} configured endpoint(s)")

        self.pool = pool
        self.quorum = quorum
        self.timeout = timeout
        self.stall_timeout = stall_timeout
        self.block_lag_tolerance = block_lag_tolerance
        self._client_factory = client_factory

        self.state = ConnectionState.DISCONNECTED
        self.last_known_height = 0
        self.last_error = None
        self.last_responders = ()
        self._updated_at = time.time()

    # ---------- Public API ----------

    def connect(self) -> bool:
        """Liveness probe. True if quorum endpoints reported a chain height."""
        self._transition(ConnectionState.CONNECTING, "liveness probe")
        try:
            result = self._query_height()
        except RpcError as e:
            self.last_error = str(e)
            self._transition(ConnectionState.DISCONNECTED, str(e))
            return False

        self._record_success(result)
        self.last_known_height = result.value
        self._transition(
            ConnectionState.CONNECTED,
            f"block {result.value} via {', '.join(ep.label for ep in result.responders)}",
        )
        return True

    def query(self, method: str, params: list = None, tally=None, decode=None) -> QueryResult:
        """
        Run a read-only RPC call against the pool.
        Raises AllEndpointsUnreachable or QuorumDisagreement; never an EndpointError.
        """
        try:
            result = self._query(method, params, tally or exact_tally, decode)
        except AllEndpointsUnreachable as e:
            self.last_error = str(e)
            if self.state != ConnectionState.DISCONNECTED:
                self._transition(ConnectionState.ERRORED, str(e))
            raise
        except QuorumDisagreement as e:
            self.last_error = str(e)
            self._transition(ConnectionState.DEGRADED, str(e))
            raise

        self._record_success(result)
        self._transition(ConnectionState.CONNECTED, f"{method} answered")
        return result

    def get_chain_height(self) -> int:
        result = self.query(
            "eth_blockNumber",
            tally=height_tally(self.block_lag_tolerance),
            decode=parse_quantity,
        )
        self.last_known_height = result.value
        return result.value

    def get_status(self) -> ConnectionStatus:
        return ConnectionStatus(
            state=self.state,
            last_known_height=self.last_known_height,
            last_error=self.last_error,
            endpoint_count=len(self.pool),
            quorum=self.quorum,
            updated_at=self._updated_at,
        )

    # ---------- Internals ----------

    def _query_height(self) -> QueryResult:
        return self._query(
            "eth_blockNumber",
            None,
            height_tally(self.block_lag_tolerance),
            parse_quantity,
        )

    def _record_success(self, result: QueryResult):
        self.last_error = None
        self.last_responders = result.responders

    def _transition(self, new_state: ConnectionState, reason: str):
        old_state = self.state
        if new_state == old_state:
            return
        self.state = new_state
        self._updated_at = time.time()

        level = logging.INFO
        if new_state in (ConnectionState.DISCONNECTED, ConnectionState.ERRORED, ConnectionState.DEGRADED):
            level = logging.WARNING
        logger.log(
            level,
            f"[FallbackManager] {old_state.value} -> {new_state.value}: {reason}",
            extra={
                "event": "rpc_state_change",
                "old_state": old_state.value,
                "new_state": new_state.value,
                "reason": reason,
            },
        )

    def _query(self, method: str, params, tally, decode) -> QueryResult:
        endpoints = list(self.pool)
        votes = []
        failures = {}
        pending = {}  # future -> (endpoint, client, started)
        next_index = 0
        last_launch = 0.0

        executor = ThreadPoolExecutor(max_workers=len(endpoints), thread_name_prefix="rpc")

        def launch(count: int):
            nonlocal next_index, last_launch
            for _ in range(count):
                if next_index >= len(endpoints):
                    return
                endpoint = endpoints[next_index]
                next_index += 1
                client = self._client_factory(endpoint, timeout=self.timeout)
                future = executor.submit(client.call, method, params)
                pending[future] = (endpoint, client, time.monotonic())
                last_launch = time.monotonic()

        def fail(endpoint, error: EndpointError):
            failures[endpoint.label] = error
            logger.debug(f"[FallbackManager] {method} failed on {endpoint.label}: {error.message}")

        try:
            launch(self.quorum)

            while pending:
                now = time.monotonic()
                deadline = min(started + self.timeout for _, _, started in pending.values())
                if next_index < len(endpoints):
                    deadline = min(deadline, last_launch + self.stall_timeout)

                done, _ = wait(list(pending), timeout=max(deadline - now, 0), return_when=FIRST_COMPLETED)

                failed = 0
                for future in sorted(done, key=lambda f: pending[f][0].priority):
                    endpoint, client, _ = pending.pop(future)
                    client.close()
                    try:
                        value = future.result()
                        if decode is not None:
                            value = decode(value)
                    except EndpointError as e:
                        fail(endpoint, e)
                        failed += 1
                        continue
                    except ValueError as e:
                        fail(endpoint, MalformedResponse(endpoint, str(e)))
                        failed += 1
                        continue
                    except Exception as e:
                        fail(endpoint, EndpointUnreachable(endpoint, f"{type(e).__name__}: {e}"))
                        failed += 1
                        continue

                    votes.append((endpoint, value))
                    outcome = tally(votes, self.quorum)
                    if outcome is not None:
                        value, responders = outcome
                        return QueryResult(value=value, responders=responders)

                now = time.monotonic()
                for future, (endpoint, client, started) in list(pending.items()):
                    if now - started >= self.timeout:
                        del pending[future]
                        future.cancel()
                        client.close()
                        fail(endpoint, EndpointTimeout(endpoint, f"no answer within {self.timeout}s"))
                        failed += 1

                to_launch = max(failed, self.quorum - len(votes) - len(pending))
                if not pending:
                    to_launch = max(to_launch, 1)
                elif now - last_launch >= self.stall_timeout:
                    to_launch = max(to_launch, 1)
                launch(to_launch)
        finally:
            for _, client, _ in pending.values():
                client.close()
            executor.shutdown(wait=False, cancel_futures=True)

        if len(votes) >= self.quorum:
            raise QuorumDisagreement(method, [(ep.label, v) for ep, v in votes], self.quorum)
        raise AllEndpointsUnreachable(method, failures, self.quorum, answered=len(votes))
