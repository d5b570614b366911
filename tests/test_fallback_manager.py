import logging
import time

import pytest

from conftest import URLS
from rpc.endpoint_pool import EndpointPool
from rpc.errors import AllEndpointsUnreachable, EndpointUnreachable, MalformedResponse, QuorumDisagreement
from rpc.fallback_manager import ConnectionState, FallbackManager, exact_tally, height_tally


class TestConnect:
    def test_connects_when_quorum_reachable(self, network, make_manager):
        for url in URLS:
            network.set(url, "ok", "0x64")
        manager = make_manager()

        assert manager.connect() is True
        assert manager.state == ConnectionState.CONNECTED
        assert manager.last_known_height == 100

    def test_stays_disconnected_when_nothing_answers(self, network, make_manager):
        manager = make_manager()

        assert manager.connect() is False
        assert manager.state == ConnectionState.DISCONNECTED
        assert manager.last_error is not None

    def test_quorum_two_with_one_reachable_fails(self, network, make_manager):
        network.set(URLS[2], "ok", "0x64")
        manager = make_manager(quorum=2)

        assert manager.connect() is False
        assert manager.state == ConnectionState.DISCONNECTED

    def test_quorum_two_with_two_reachable_succeeds(self, network, make_manager):
        network.set(URLS[1], "ok", "0x64")
        network.set(URLS[4], "ok", "0x65")
        manager = make_manager(quorum=2)

        assert manager.connect() is True
        assert manager.state == ConnectionState.CONNECTED
        assert manager.last_known_height == 100
        assert [ep.url for ep in manager.last_responders] == [URLS[1], URLS[4]]


class TestQuery:
    def test_falls_through_refusals_to_last_endpoint(self, network, make_manager):
        network.set(URLS[4], "ok", "0x64")
        manager = make_manager()

        assert manager.get_chain_height() == 100
        assert manager.state == ConnectionState.CONNECTED
        assert sorted(url for url, _ in network.calls) == URLS

    def test_single_failure_is_isolated(self, network, make_manager):
        for url in URLS[1:]:
            network.set(url, "ok", "0x10")
        manager = make_manager()

        assert manager.get_chain_height() == 16

    def test_all_timeouts_raise_and_stay_disconnected(self, network, make_manager):
        for url in URLS:
            network.set(url, "hang")
        manager = make_manager(timeout=0.2, stall_timeout=0.01)

        started = time.monotonic()
        with pytest.raises(AllEndpointsUnreachable) as exc_info:
            manager.get_chain_height()
        elapsed = time.monotonic() - started

        assert elapsed < 0.2 + 5 * 0.01 + 1.0
        assert manager.state == ConnectionState.DISCONNECTED
        assert len(exc_info.value.failures) == 5
        assert sorted(network.closed) == sorted(URLS)

    def test_hanging_primary_does_not_delay_answer(self, network, make_manager):
        network.set(URLS[0], "hang")
        network.set(URLS[1], "ok", "0x2a")
        manager = make_manager(timeout=5.0, stall_timeout=0.05)

        started = time.monotonic()
        assert manager.get_chain_height() == 42
        assert time.monotonic() - started < 1.0
        # the abandoned request was cancelled, not left running
        assert URLS[0] in network.closed
        assert [url for url, _ in network.calls] == URLS[:2]

    def test_fastest_answer_wins_over_slow_primary(self, network, make_manager):
        network.set(URLS[0], "slow", 0.1, "0x1")
        network.set(URLS[1], "ok", "0x1")
        manager = make_manager(urls=URLS[:2], stall_timeout=0.0)

        result = manager.query("eth_chainId")
        assert result.value == "0x1"
        assert result.responders[0].url == URLS[1]

    def test_malformed_response_counts_as_failure(self, network, make_manager):
        network.set(URLS[0], "ok", "not-a-number")
        network.set(URLS[1], "ok", "0x64")
        manager = make_manager(urls=URLS[:2], quorum=2)

        with pytest.raises(AllEndpointsUnreachable) as exc_info:
            manager.get_chain_height()
        assert isinstance(exc_info.value.failures["https://rpc1.example.org"], MalformedResponse)
        assert exc_info.value.answered == 1

    def test_unexpected_client_error_falls_through_to_next_endpoint(self, network, make_manager):
        network.set(URLS[0], "crash", RecursionError("maximum recursion depth exceeded"))
        network.set(URLS[1], "ok", "0x64")
        manager = make_manager(urls=URLS[:2])

        assert manager.get_chain_height() == 100
        assert manager.state == ConnectionState.CONNECTED

    def test_unexpected_client_errors_count_as_unreachable(self, network, make_manager):
        network.set(URLS[0], "crash", TypeError("bad payload"))
        manager = make_manager(urls=URLS[:1])

        with pytest.raises(AllEndpointsUnreachable) as exc_info:
            manager.get_chain_height()
        failure = exc_info.value.failures["https://rpc1.example.org"]
        assert isinstance(failure, EndpointUnreachable)
        assert "TypeError" in failure.message

    def test_failed_query_after_connect_is_errored(self, network, make_manager):
        network.set(URLS[0], "ok", "0x64")
        manager = make_manager()
        assert manager.connect()

        network.set(URLS[0], "refuse")
        with pytest.raises(AllEndpointsUnreachable):
            manager.get_chain_height()
        assert manager.state == ConnectionState.ERRORED
        assert manager.last_known_height == 100

        network.set(URLS[3], "ok", "0x65")
        assert manager.get_chain_height() == 101
        assert manager.state == ConnectionState.CONNECTED
        assert manager.last_error is None

    def test_disagreement_degrades(self, network, make_manager):
        network.set(URLS[0], "ok", "0x64")
        network.set(URLS[1], "ok", "0x1f4")
        manager = make_manager(urls=URLS[:2], quorum=2)

        with pytest.raises(QuorumDisagreement):
            manager.get_chain_height()
        assert manager.state == ConnectionState.DEGRADED

    def test_outlier_is_outvoted(self, network, make_manager):
        network.set(URLS[0], "ok", hex(999999))
        network.set(URLS[1], "ok", "0x64")
        network.set(URLS[2], "ok", "0x65")
        manager = make_manager(urls=URLS[:3], quorum=2, stall_timeout=0.0)

        assert manager.get_chain_height() == 100

    def test_generic_query_needs_identical_answers(self, network, make_manager):
        network.set(URLS[0], "ok", {"chain": 1})
        network.set(URLS[1], "ok", {"chain": 1})
        manager = make_manager(urls=URLS[:2], quorum=2)

        result = manager.query("eth_getBlockByNumber", ["latest", False])
        assert result.value == {"chain": 1}
        assert ("https://rpc1.example.org", "eth_getBlockByNumber") in network.calls


class TestStatus:
    def test_get_status_is_idempotent(self, network, make_manager):
        network.set(URLS[0], "ok", "0x64")
        manager = make_manager()
        manager.connect()

        first = manager.get_status()
        second = manager.get_status()
        assert first == second
        assert first.state == ConnectionState.CONNECTED
        assert first.to_dict()["state"] == "connected"
        assert first.to_dict()["last_known_height"] == 100

    def test_initial_status(self, make_manager):
        status = make_manager().get_status()
        assert status.state == ConnectionState.DISCONNECTED
        assert status.endpoint_count == 5
        assert status.quorum == 1
        assert status.last_error is None


class TestLogging:
    def test_one_record_per_transition(self, network, make_manager, caplog):
        network.set(URLS[4], "ok", "0x64")
        manager = make_manager()

        with caplog.at_level(logging.DEBUG, logger="rpc.fallback_manager"):
            manager.connect()
            manager.get_chain_height()
            manager.get_chain_height()

        transitions = [r for r in caplog.records if getattr(r, "event", None) == "rpc_state_change"]
        assert [(r.old_state, r.new_state) for r in transitions] == [
            ("disconnected", "connecting"),
            ("connecting", "connected"),
        ]
        # endpoint failures stay below INFO
        noisy = [r for r in caplog.records if r.levelno >= logging.INFO and r not in transitions]
        assert noisy == []


class TestConfiguration:
    def test_quorum_must_be_positive(self):
        with pytest.raises(ValueError):
            FallbackManager(EndpointPool(URLS), quorum=0)

    def test_quorum_cannot_exceed_pool(self):
        with pytest.raises(ValueError):
            FallbackManager(EndpointPool(URLS[:2]), quorum=3)


class TestTally:
    def test_exact_tally_waits_for_quorum(self):
        pool = EndpointPool(URLS[:3])
        votes = [(pool[0], "a"), (pool[1], "b")]
        assert exact_tally(votes, 2) is None
        votes.append((pool[2], "a"))
        value, responders = exact_tally(votes, 2)
        assert value == "a"
        assert responders == (pool[0], pool[2])

    def test_height_tally_returns_lowest_agreeing_height(self):
        pool = EndpointPool(URLS[:3])
        tally = height_tally(2)
        value, responders = tally([(pool[0], 103), (pool[1], 101), (pool[2], 50)], 2)
        assert value == 101
        assert responders == (pool[0], pool[1])

    def test_height_tally_rejects_spread_beyond_tolerance(self):
        pool = EndpointPool(URLS[:2])
        assert height_tally(2)([(pool[0], 100), (pool[1], 103)], 2) is None
