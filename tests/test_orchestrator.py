"""Tests for the run lifecycle and strategy scheduling."""

import threading
import time

import httpx
import pytest

from conftest import FakeSender

from bypassfuzzer.attacks.verb import VerbAttack
from bypassfuzzer.core.config import ATTACK_TYPES, FuzzerConfig
from bypassfuzzer.core import orchestrator
from bypassfuzzer.core.models import (
    BaselineRequest, CapabilityLostError, ConfigurationError, RunState,
)
from bypassfuzzer.core.orchestrator import FuzzingOrchestrator, resolve_target_url

JOIN_TIMEOUT = 10


def relative(url="/admin", host="example.com", tls=False) -> BaselineRequest:
    headers = (("Host", host),) if host is not None else ()
    return BaselineRequest("GET", url, headers=headers, tls=tls)


class BlockingSender(FakeSender):
    """Holds every send until released."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def __call__(self, request):
        self.entered.set()
        self.release.wait(JOIN_TIMEOUT)
        return super().__call__(request)


@pytest.fixture
def config() -> FuzzerConfig:
    return FuzzerConfig()


# ── target resolution ───────────────────────────────────────────

@pytest.mark.parametrize("baseline,expected", [
    (relative(), "http://example.com/admin"),
    (relative(tls=True), "https://example.com/admin"),
    (relative(host="example.com:443"), "https://example.com:443/admin"),
    (relative(host="example.com:8080"), "http://example.com:8080/admin"),
    (relative(url="/a?x=1"), "http://example.com/a?x=1"),
    (relative(url="admin"), "http://example.com/admin"),
    (BaselineRequest("GET", "https://other.test/x"), "https://other.test/x"),
])
def test_resolve_target_url(baseline, expected) -> None:
    assert resolve_target_url(baseline) == expected


@pytest.mark.parametrize("baseline", [
    relative(host=None),
    relative(host="  "),
    relative(host="example.com:notaport"),
])
def test_resolve_target_url_rejects_bad_host(baseline) -> None:
    with pytest.raises(ConfigurationError):
        resolve_target_url(baseline)


# ── start / stop ────────────────────────────────────────────────

def test_canonical_strategy_order(config, sender) -> None:
    orch = FuzzingOrchestrator(config, sender)
    tags = [s.tag for s in orch.build_strategies()]

    assert tags == ["Header", "Path", "Verb", "Param", "TrailingDot",
                    "TrailingSlash", "Protocol", "Case", "Extension",
                    "ContentType", "Encoding", "Cookie"]
    assert [t.lower() for t in tags] == ATTACK_TYPES


def test_start_without_host_fails_before_network(config, sender) -> None:
    orch = FuzzingOrchestrator(config, sender)

    with pytest.raises(ConfigurationError):
        orch.start(relative(host=None), ["verb"], lambda r: None)
    assert orch.state is RunState.IDLE
    assert sender.sent == []


@pytest.mark.parametrize("enabled", [[], ["nosuchattack"]])
def test_start_with_nothing_enabled_fails(config, sender, enabled) -> None:
    orch = FuzzingOrchestrator(config, sender)

    with pytest.raises(ConfigurationError):
        orch.start(relative(), enabled, lambda r: None)
    assert not orch.is_running()


def test_full_run_completes_in_order(config, sender, log) -> None:
    orch = FuzzingOrchestrator(config, sender, logger=log)
    results = []

    assert orch.start(relative(), ["TrailingDot", "verb"], results.append)
    assert orch.join(JOIN_TIMEOUT)

    assert orch.state is RunState.COMPLETED
    types = [r.attack_type for r in results]
    assert types == ["Verb"] * types.count("Verb") + ["TrailingDot"]
    assert orch.completed_attempts == len(results) == len(sender.sent)
    assert all(r.request.url.startswith("http://example.com/") for r in results)
    assert log.contains("Skipping Header (disabled in config)", "debug")
    assert log.contains(f"BypassFuzzer completed: {len(results)} results")


def test_every_result_is_tracked_by_smart_filter(config, sender) -> None:
    orch = FuzzingOrchestrator(config, sender)
    results = []
    orch.start(relative(), ["verb"], results.append)
    orch.join(JOIN_TIMEOUT)

    assert orch.smart_filter.pattern_count((403, 6, "text/html")) == len(results)
    shown = [r for r in results if orch.smart_filter.should_show(r)]
    assert len(shown) == config.smart_filter_repeats

    orch.clear_results()
    assert orch.smart_filter.statistics() == "No patterns tracked"


def test_start_while_running_is_noop(config, log) -> None:
    send = BlockingSender()
    orch = FuzzingOrchestrator(config, send, logger=log)

    assert orch.start(relative(), ["verb"], lambda r: None)
    assert send.entered.wait(JOIN_TIMEOUT)
    first_worker = orch._worker

    assert orch.start(relative(), ["verb"], lambda r: None) is False
    assert orch._worker is first_worker
    assert log.contains("already running", "warn")

    orch.stop()
    send.release.set()
    assert orch.join(JOIN_TIMEOUT)


def test_stop_is_observed_promptly(config) -> None:
    send = BlockingSender()
    orch = FuzzingOrchestrator(config, send)
    results = []

    orch.start(relative(), ["verb", "trailingdot"], results.append)
    assert send.entered.wait(JOIN_TIMEOUT)

    orch.stop()
    assert not orch.is_running()
    assert orch.state is RunState.STOPPING

    send.release.set()
    assert orch.join(JOIN_TIMEOUT)
    assert len(send.sent) == 1
    # the in-flight result is tracked but not delivered after stop
    assert results == []
    assert orch.completed_attempts == 1


def test_restart_after_completion(config, sender) -> None:
    orch = FuzzingOrchestrator(config, sender)
    orch.start(relative(), ["trailingdot"], lambda r: None)
    orch.join(JOIN_TIMEOUT)

    assert orch.start(relative(), ["trailingdot"], lambda r: None)
    assert orch.join(JOIN_TIMEOUT)
    assert len(sender.sent) == 2


def test_restart_proceeds_when_previous_worker_is_stuck(config, log, monkeypatch) -> None:
    monkeypatch.setattr(orchestrator, "PREVIOUS_RUN_GRACE_S", 0.05)
    monkeypatch.setattr(orchestrator, "PREVIOUS_RUN_CANCEL_GRACE_S", 0.05)
    send = BlockingSender()
    orch = FuzzingOrchestrator(config, send, logger=log)

    assert orch.start(relative(), ["trailingdot"], lambda r: None)
    assert send.entered.wait(JOIN_TIMEOUT)
    stuck = orch._worker
    orch.stop()

    began = time.monotonic()
    assert orch.start(relative(), ["trailingdot"], lambda r: None) is True
    assert time.monotonic() - began < 2
    assert stuck.is_alive()
    assert orch._worker is not stuck
    assert log.contains("Waiting for previous fuzzer run")
    assert log.contains("Previous run still active", "warn")

    send.release.set()
    assert orch.join(JOIN_TIMEOUT)
    stuck.join(JOIN_TIMEOUT)
    assert not stuck.is_alive()


def test_failing_strategy_does_not_stop_the_run(config, sender, log, monkeypatch) -> None:
    def explode(self, *args, **kwargs):
        raise RuntimeError("strategy bug")

    monkeypatch.setattr(VerbAttack, "execute", explode)
    orch = FuzzingOrchestrator(config, sender, logger=log)
    results = []

    orch.start(relative(), ["verb", "trailingdot"], results.append)
    orch.join(JOIN_TIMEOUT)

    assert [r.attack_type for r in results] == ["TrailingDot"]
    assert log.contains("Error in Verb attack: strategy bug", "error")


def test_failing_sink_does_not_stop_the_run(config, sender, log) -> None:
    orch = FuzzingOrchestrator(config, sender, logger=log)

    def sink(result):
        raise ValueError("display gone")

    orch.start(relative(), ["trailingdot", "verb"], sink)
    orch.join(JOIN_TIMEOUT)

    assert orch.completed_attempts == len(sender.sent) > 1
    assert log.contains("Error sending result to sink: display gone", "error")


def test_lost_capability_aborts_the_run(config, log) -> None:
    calls = []

    def send(request):
        calls.append(request)
        raise CapabilityLostError("client closed")

    orch = FuzzingOrchestrator(config, send, logger=log)
    results = []
    orch.start(relative(), ["verb", "trailingdot", "protocol"], results.append)

    assert orch.join(JOIN_TIMEOUT)
    assert len(calls) == 1
    assert results == []
    assert orch.state is RunState.COMPLETED


def test_transport_failures_are_reported_as_status_zero(config) -> None:
    def send(request):
        raise httpx.ConnectTimeout("timed out")

    orch = FuzzingOrchestrator(config, send)
    results = []
    orch.start(relative(), ["trailingdot"], results.append)
    orch.join(JOIN_TIMEOUT)

    (r,) = results
    assert r.status_code == 0 and r.response is None


def test_rate_limiter_is_fed_every_status() -> None:
    throttled = FakeSender(status=429)
    config = FuzzerConfig(throttle_status_codes={429}, max_delay_ms=1)
    orch = FuzzingOrchestrator(config, throttled)
    orch.start(relative(), ["verb"], lambda r: None)

    assert orch.join(JOIN_TIMEOUT)
    assert orch.rate_limiter.current_delay_ms == 1


def test_each_run_gets_a_fresh_rate_limiter(config, sender) -> None:
    orch = FuzzingOrchestrator(config, sender)
    orch.start(relative(), ["trailingdot"], lambda r: None)
    orch.join(JOIN_TIMEOUT)
    first = orch.rate_limiter

    orch.start(relative(), ["trailingdot"], lambda r: None)
    orch.join(JOIN_TIMEOUT)
    assert orch.rate_limiter is not first


def test_cleanup_never_raises(config, sender) -> None:
    orch = FuzzingOrchestrator(config, sender)
    orch.cleanup()

    orch.start(relative(), ["trailingdot"], lambda r: None)
    orch.cleanup()
    assert orch.join(JOIN_TIMEOUT)
