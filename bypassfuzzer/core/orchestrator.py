"""Run lifecycle and strategy scheduling.

One background worker executes every enabled strategy in a fixed order. Stop
requests are cooperative: a per-run event is checked between attempts and
between strategies, and joins are always bounded.
"""

import threading
from typing import Callable, Iterable, List, Optional
from urllib.parse import urlsplit

from bypassfuzzer.attacks.base import AttackStrategy
from bypassfuzzer.attacks.case import CaseAttack
from bypassfuzzer.attacks.content_type import ContentTypeAttack
from bypassfuzzer.attacks.cookie import CookieAttack
from bypassfuzzer.attacks.encoding import EncodingAttack
from bypassfuzzer.attacks.extension import ExtensionAttack
from bypassfuzzer.attacks.header import HeaderAttack
from bypassfuzzer.attacks.param import ParamAttack
from bypassfuzzer.attacks.path import PathAttack
from bypassfuzzer.attacks.protocol import ProtocolAttack
from bypassfuzzer.attacks.trailing import TrailingDotAttack, TrailingSlashAttack
from bypassfuzzer.attacks.verb import VerbAttack
from bypassfuzzer.core.config import FuzzerConfig
from bypassfuzzer.core.filters import SmartFilter
from bypassfuzzer.core.models import (
    AttackResult, BaselineRequest, CapabilityLostError, ConfigurationError, RunState,
)
from bypassfuzzer.core.payloads import PayloadLoader
from bypassfuzzer.core.rate_limiter import RateLimiter
from bypassfuzzer.reporters.console import safe_log

PREVIOUS_RUN_GRACE_S = 5.0
PREVIOUS_RUN_CANCEL_GRACE_S = 2.0
CLEANUP_GRACE_S = 2.0


def resolve_target_url(baseline: BaselineRequest) -> str:
    """Absolute URL for *baseline*, rebuilt from the Host header if needed."""
    if baseline.is_absolute():
        return baseline.url

    host = (baseline.header("Host") or "").strip()
    if not host:
        raise ConfigurationError(f"Cannot resolve target URL for {baseline.url!r}: no Host header")

    parsed = urlsplit(f"//{host}")
    try:
        port = parsed.port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid Host header {host!r}: {exc}") from exc
    if not parsed.hostname:
        raise ConfigurationError(f"Invalid Host header {host!r}")

    scheme = "https" if baseline.tls or port == 443 else "http"
    target = baseline.target
    if not target.startswith("/"):
        target = "/" + target
    return f"{scheme}://{host}{target}"


class FuzzingOrchestrator:
    """
    Owns one fuzzing run at a time.

    Usage:
        orch = FuzzingOrchestrator(config, engine, logger=log)
        orch.start(baseline, config.enabled_attacks(), sink)
        orch.join()
    """

    def __init__(self, config: FuzzerConfig, send: Callable, logger=None,
                 loader: Optional[PayloadLoader] = None, oob_provider=None):
        self.config = config
        self.send = send
        self.logger = logger
        self.loader = loader or PayloadLoader(config.payload_files, logger=logger)
        self.oob_provider = oob_provider
        self.smart_filter = SmartFilter(config.smart_filter_repeats, enabled=config.smart_filter)
        self.rate_limiter: Optional[RateLimiter] = None

        self._lock = threading.Lock()
        self._state = RunState.IDLE
        self._worker: Optional[threading.Thread] = None
        self._cancel = threading.Event()
        self.completed_attempts = 0

    # ── public API ──────────────────────────────────────────────

    @property
    def state(self) -> RunState:
        return self._state

    def is_running(self) -> bool:
        return self._state is RunState.RUNNING

    def start(self, baseline: BaselineRequest, enabled: Iterable[str],
              sink: Callable[[AttackResult], None]) -> bool:
        """
        Start a run in the background. Returns False (and does nothing) if a
        run is already active. Raises ConfigurationError before any network
        activity if the target cannot be resolved or nothing is enabled.
        """
        with self._lock:
            if self._state is RunState.RUNNING:
                self._log("warn", "Fuzzer is already running!")
                return False

        self._wait_for_previous()

        target_url = resolve_target_url(baseline)
        known = {s.tag.lower() for s in self.build_strategies()}
        enabled_set = {e.strip().lower() for e in enabled} & known
        if not enabled_set:
            raise ConfigurationError("No attack strategies enabled")

        baseline = baseline.with_url(target_url)
        limiter = RateLimiter(
            self.config.requests_per_second, self.config.throttle_status_codes,
            self.config.auto_throttle, max_delay_ms=self.config.max_delay_ms, logger=self.logger)
        cancel = threading.Event()

        with self._lock:
            if self._state is RunState.RUNNING:
                self._log("warn", "Fuzzer is already running!")
                return False
            self.rate_limiter = limiter
            self._cancel = cancel
            self.completed_attempts = 0
            self._state = RunState.RUNNING
            worker = threading.Thread(
                target=self._run, args=(baseline, target_url, enabled_set, sink, cancel, limiter),
                name="bypassfuzzer-worker", daemon=True)
            self._worker = worker
        worker.start()
        return True

    def stop(self) -> None:
        with self._lock:
            self._cancel.set()
            if self._state is RunState.RUNNING:
                self._state = RunState.STOPPING
                self._log("info", "Fuzzer stopped by user")

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker; True once it has exited."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def cleanup(self) -> None:
        """Shutdown hook: cancel and wait briefly. Never raises."""
        try:
            self._cancel.set()
            worker = self._worker
            if worker is not None and worker.is_alive():
                worker.join(CLEANUP_GRACE_S)
        except Exception:
            pass

    def clear_results(self) -> None:
        self.smart_filter.reset()

    def build_strategies(self) -> List[AttackStrategy]:
        """All strategies in canonical order."""
        log = self.logger
        return [
            HeaderAttack(self.loader, oob_payload=self.config.oob_payload,
                         oob_provider=self.oob_provider, logger=log),
            PathAttack(self.loader, logger=log),
            VerbAttack(logger=log),
            ParamAttack(self.loader, logger=log),
            TrailingDotAttack(logger=log),
            TrailingSlashAttack(logger=log),
            ProtocolAttack(logger=log),
            CaseAttack(logger=log),
            ExtensionAttack(self.loader, logger=log),
            ContentTypeAttack(logger=log),
            EncodingAttack(logger=log),
            CookieAttack(self.loader, fuzz_existing=self.config.fuzz_existing_cookies, logger=log),
        ]

    # ── worker ──────────────────────────────────────────────────

    def _wait_for_previous(self) -> None:
        previous = self._worker
        if previous is None or not previous.is_alive():
            return
        self._log("info", "Waiting for previous fuzzer run to complete...")
        previous.join(PREVIOUS_RUN_GRACE_S)
        if previous.is_alive():
            self._log("warn", "Previous run still active, cancelling it")
            self._cancel.set()
            previous.join(PREVIOUS_RUN_CANCEL_GRACE_S)

    def _run(self, baseline: BaselineRequest, target_url: str, enabled: set,
             sink: Callable[[AttackResult], None], cancel: threading.Event,
             limiter: RateLimiter) -> None:
        lost = threading.Event()

        def should_continue() -> bool:
            return not cancel.is_set() and not lost.is_set()

        def send(request):
            try:
                return self.send(request)
            except CapabilityLostError:
                lost.set()
                raise

        def emit(result: AttackResult) -> None:
            self.smart_filter.track(result)
            limiter.report_response(result.status_code)
            self.completed_attempts += 1
            if cancel.is_set():
                return
            try:
                sink(result)
            except Exception as exc:
                self._log("error", f"Error sending result to sink: {exc}")

        try:
            self._log("info", "=== BypassFuzzer started ===")
            self._log("info", f"Target: {baseline.method} {target_url}")
            self._log("info", f"Attack types enabled: {', '.join(sorted(enabled))}")

            for strategy in self.build_strategies():
                if not should_continue():
                    self._log("info", "Fuzzer stopped during execution")
                    break
                if strategy.tag.lower() not in enabled:
                    self._log("debug", f"Skipping {strategy.tag} (disabled in config)")
                    continue

                self._log("info", f"=== Executing {strategy.tag} Attack ===")
                try:
                    strategy.execute(send, baseline, target_url, emit, should_continue, limiter)
                except Exception as exc:
                    self._log("error", f"Error in {strategy.tag} attack: {exc}")

                if lost.is_set():
                    break

            if not lost.is_set():
                self._log("info", f"=== BypassFuzzer completed: {self.completed_attempts} results ===")
        finally:
            with self._lock:
                if self._worker is threading.current_thread():
                    self._state = RunState.COMPLETED

    def _log(self, level: str, msg: str) -> bool:
        return safe_log(self.logger, level, msg)
