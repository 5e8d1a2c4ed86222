"""Test configuration and fixtures for BypassFuzzer."""

import threading
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import pytest

from bypassfuzzer.core.models import BaselineRequest
from bypassfuzzer.core.payloads import PayloadLoader


class RecordingLog:
    """Logger double that keeps every (level, message) pair."""

    def __init__(self):
        self.verbose = 1
        self.records: List[tuple] = []
        self._lock = threading.Lock()

    def _record(self, level: str, msg: str) -> None:
        with self._lock:
            self.records.append((level, msg))

    def info(self, msg): self._record("info", msg)
    def warn(self, msg): self._record("warn", msg)
    def error(self, msg): self._record("error", msg)
    def ok(self, msg): self._record("ok", msg)
    def fail(self, msg): self._record("fail", msg)
    def debug(self, msg): self._record("debug", msg)

    def messages(self, level: Optional[str] = None) -> List[str]:
        with self._lock:
            return [m for lvl, m in self.records if level is None or lvl == level]

    def contains(self, text: str, level: Optional[str] = None) -> bool:
        return any(text in m for m in self.messages(level))


class FakeSender:
    """Send capability double: records requests, answers with a fixed response."""

    def __init__(self, status: int = 403, body: bytes = b"denied",
                 content_type: str = "text/html",
                 respond: Optional[Callable[[BaselineRequest], httpx.Response]] = None):
        self.status = status
        self.body = body
        self.content_type = content_type
        self.respond = respond
        self.sent: List[BaselineRequest] = []
        self._lock = threading.Lock()

    def __call__(self, request: BaselineRequest) -> httpx.Response:
        with self._lock:
            self.sent.append(request)
        if self.respond is not None:
            return self.respond(request)
        return httpx.Response(self.status, content=self.body,
                              headers={"Content-Type": self.content_type})


@pytest.fixture
def log() -> RecordingLog:
    return RecordingLog()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def baseline() -> BaselineRequest:
    """A resolved GET /admin against example.com."""
    return BaselineRequest(
        method="GET",
        url="http://example.com/admin",
        headers=(("Host", "example.com"), ("User-Agent", "pytest")),
    )


@pytest.fixture
def payload_dir(tmp_path: Path) -> Path:
    """A payload directory with small, predictable files."""
    d = tmp_path / "payloads"
    d.mkdir()
    (d / "header_payload_templates.txt").write_text(
        "# comment\nX-Forwarded-For: {IP}\n\nX-Original-URL: {PATH_SWAP}\n")
    (d / "ip_payloads.txt").write_text("127.0.0.1\nlocalhost\n10.0.0.1\n")
    (d / "url_payloads.txt").write_text("../\n..;/\n")
    (d / "param_payloads.txt").write_text("debug=true\n")
    (d / "extension_payloads.txt").write_text(".json\n.html\n")
    return d


@pytest.fixture
def loader(payload_dir: Path, log: RecordingLog) -> PayloadLoader:
    return PayloadLoader(logger=log, payload_dir=payload_dir)


def collect(strategy, send, baseline: BaselineRequest, target_url: Optional[str] = None,
            should_continue=lambda: True, rate_limiter=None):
    """Run *strategy* synchronously and return (count, results)."""
    results = []
    count = strategy.execute(send, baseline, target_url or baseline.url, results.append,
                             should_continue, rate_limiter)
    return count, results
