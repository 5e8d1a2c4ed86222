"""Abstract base for all attack strategies."""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, NamedTuple, Optional
from urllib.parse import urlsplit

import httpx

from bypassfuzzer.core.models import AttackResult, BaselineRequest, CapabilityLostError
from bypassfuzzer.core.rate_limiter import RateLimiter
from bypassfuzzer.reporters.console import safe_log

SendFn = Callable[[BaselineRequest], httpx.Response]
EmitFn = Callable[[AttackResult], None]


class Attempt(NamedTuple):
    payload: str                 # human readable description
    request: BaselineRequest
    attack_type: Optional[str] = None    # overrides the strategy tag on the result


def path_of(url: str) -> str:
    return urlsplit(url).path or "/"


class AttackStrategy(ABC):
    """Every strategy yields attempts; ``execute`` sends them."""

    tag: str = "Unnamed"
    progress_every: int = 100
    skip_root: bool = False

    def __init__(self, logger=None):
        self.logger = logger

    # ── public API ──────────────────────────────────────────────

    @abstractmethod
    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        """Lazily produce the mutated requests for this strategy."""
        ...

    def execute(
        self,
        send: SendFn,
        baseline: BaselineRequest,
        target_url: str,
        emit: EmitFn,
        should_continue: Callable[[], bool],
        rate_limiter: Optional[RateLimiter] = None,
    ) -> int:
        """
        Send every attempt and emit one AttackResult per completed send.
        Never raises; returns the number of results emitted.
        """
        if self.skip_root and path_of(target_url) == "/":
            self._log("info", f"{self.tag} Attack: skipped, target path is root '/' "
                              "(consider testing a deeper endpoint)")
            return 0

        try:
            planned: List[Attempt] = list(self.attempts(baseline, target_url))
        except Exception as exc:
            self._log("error", f"{self.tag} Attack: could not build payloads: {exc}")
            return 0

        if not self._log("info", f"Starting {self.tag} Attack: {len(planned)} payloads"):
            return 0

        count = 0
        for attempt in planned:
            if not should_continue():
                self._log("info", f"{self.tag} Attack stopped by user "
                                  f"({count} of {len(planned)} completed)")
                return count

            if count and count % self.progress_every == 0:
                self._log("info", f"{self.tag} Attack progress: {count} of {len(planned)} requests sent")

            if rate_limiter is not None:
                rate_limiter.wait_before_request()

            try:
                try:
                    response = self.send_attempt(send, attempt)
                    if response is None:
                        continue
                except httpx.TransportError as exc:
                    self._log("debug", f"{self.tag} attack transport error with payload "
                                       f"{attempt.payload}: {exc}")
                    response = None
                emit(AttackResult.from_response(attempt.attack_type or self.tag, attempt.payload,
                                                attempt.request, response))
                count += 1
            except CapabilityLostError:
                return count
            except Exception as exc:
                self._log("error", f"{self.tag} attack error with payload {attempt.payload}: {exc}")

        self._log("info", f"{self.tag} Attack completed: {count} results sent")
        return count

    def send_attempt(self, send: SendFn, attempt: Attempt) -> Optional[httpx.Response]:
        """Send one attempt. ``None`` means the attempt produced no result."""
        return send(attempt.request)

    # ── shared helpers ──────────────────────────────────────────

    def _log(self, level: str, msg: str) -> bool:
        return safe_log(self.logger, level, msg)
