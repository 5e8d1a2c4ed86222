"""Request pacing with automatic back-off on throttling responses."""

import time
from typing import Callable, Iterable, Optional

from bypassfuzzer.reporters.console import safe_log

THROTTLE_DETECTION_WINDOW = 5      # throttle responses in a row before slowing down
THROTTLE_SLOWDOWN_FACTOR = 0.5     # delay / 0.5 -> delay doubles
MIN_DELAY_MS = 100                 # first delay when previously unlimited
RESET_AFTER_REQUESTS = 50          # successes that clear the throttle counter


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


class RateLimiter:
    """
    Paces requests to a configured rate and doubles the delay after a burst of
    throttle-coded responses.

    One instance is shared by every strategy of a run and is only touched by
    the single worker thread, so no locking is done here.
    """

    def __init__(self, requests_per_second: int = 0, throttle_status_codes: Iterable[int] = (),
                 auto_throttle: bool = True, max_delay_ms: Optional[int] = None, logger=None,
                 clock: Callable[[], int] = _now_ms, sleep: Callable[[float], None] = time.sleep):
        self.logger = logger
        self.max_delay_ms = max_delay_ms
        self._clock = clock
        self._sleep = sleep

        self.requests_per_second = 0
        self.delay_ms = 0
        self.throttle_status_codes = frozenset()
        self.auto_throttle = auto_throttle
        self.last_request_ms = 0
        self.throttle_count = 0
        self.success_count = 0

        self.configure(requests_per_second, throttle_status_codes, auto_throttle)

    def configure(self, requests_per_second: int, throttle_status_codes: Iterable[int],
                  auto_throttle: bool) -> None:
        self.throttle_status_codes = frozenset(throttle_status_codes)
        self.auto_throttle = auto_throttle
        self.update_rate_limit(requests_per_second)

    def update_rate_limit(self, requests_per_second: int) -> None:
        self.requests_per_second = requests_per_second
        self.delay_ms = self._delay_for(requests_per_second)

    @staticmethod
    def _delay_for(requests_per_second: int) -> int:
        if requests_per_second <= 0:
            return 0
        return 1000 // requests_per_second

    @property
    def current_delay_ms(self) -> int:
        return self.delay_ms

    @property
    def current_requests_per_second(self) -> int:
        return self.requests_per_second

    def wait_before_request(self) -> None:
        if self.delay_ms <= 0:
            return

        elapsed = self._clock() - self.last_request_ms
        if elapsed < self.delay_ms:
            self._sleep((self.delay_ms - elapsed) / 1000.0)

        self.last_request_ms = self._clock()

    def report_response(self, status_code: int) -> None:
        if not self.auto_throttle or not self.throttle_status_codes:
            return

        if status_code in self.throttle_status_codes:
            self.throttle_count += 1
            self.success_count = 0
            if self.throttle_count >= THROTTLE_DETECTION_WINDOW:
                self._apply_backoff()
                self.throttle_count = 0
        else:
            self.success_count += 1
            if self.success_count >= RESET_AFTER_REQUESTS:
                self.throttle_count = 0

    def _apply_backoff(self) -> None:
        if self.delay_ms <= 0:
            delay = MIN_DELAY_MS
        else:
            delay = int(self.delay_ms / THROTTLE_SLOWDOWN_FACTOR)

        # The ceiling caps growth only; back-off never speeds requests up
        if self.max_delay_ms is not None:
            delay = max(self.delay_ms, min(delay, self.max_delay_ms))

        self.delay_ms = delay
        # Display only; the delay stays authoritative.
        self.requests_per_second = max(1, 1000 // delay) if delay > 0 else 0

        codes = ", ".join(str(c) for c in sorted(self.throttle_status_codes))
        safe_log(self.logger, "warn",
                 f"Auto-throttle activated: rate limiting detected (status codes: {codes}). "
                 f"Reducing speed to ~{self.requests_per_second} req/s "
                 f"({self.delay_ms} ms between requests)")
