"""Protocol version tampering (HTTP/2 cleartext upgrade down to HTTP/0.9)."""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Iterator, Optional

import httpx

from bypassfuzzer.attacks.base import AttackStrategy, Attempt, SendFn
from bypassfuzzer.core.models import BaselineRequest

HTTP_VERSIONS = ["HTTP/2", "HTTP/1.1", "HTTP/1.0", "HTTP/0.9"]
REQUEST_TIMEOUT_SECONDS = 5.0
H2C_SETTINGS = "AAMAAABkAARAAAAAAAIAAAAA"


def build_versioned_request(baseline: BaselineRequest, version: str) -> BaselineRequest:
    """Swap the request-line version token and add the headers that version expects."""
    req = baseline.with_http_version(version)
    if version == "HTTP/1.0" and req.header("Connection") is None:
        req = req.with_header("Connection", "close")
    elif version == "HTTP/2" and req.header("Upgrade") is None:
        req = req.with_header("Upgrade", "h2c").with_header("HTTP2-Settings", H2C_SETTINGS)
    return req


class ProtocolAttack(AttackStrategy):
    """
    Downgrade attempts can hang at the transport level, so each one runs in a
    single-use executor under its own hard timeout. A timed-out attempt yields
    no result and the next version is tried.
    """

    tag = "Protocol"

    def __init__(self, timeout: float = REQUEST_TIMEOUT_SECONDS, logger=None):
        super().__init__(logger)
        self.timeout = timeout

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        for version in HTTP_VERSIONS:
            yield Attempt(f"Protocol: {version}", build_versioned_request(baseline, version))

    def send_attempt(self, send: SendFn, attempt: Attempt) -> Optional[httpx.Response]:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="protocol-attempt")
        future = executor.submit(send, attempt.request)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeout:
            future.cancel()
            self._log("warn", f"{attempt.payload} timed out after {self.timeout:g} seconds")
            return None
        finally:
            executor.shutdown(wait=False)
