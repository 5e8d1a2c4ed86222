"""Shared data models for the bypass fuzzer."""

import itertools
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import httpx


class FuzzerError(Exception):
    """Base class for fuzzer errors."""


class ConfigurationError(FuzzerError):
    """Raised before any network activity when a run cannot be set up."""


class CapabilityLostError(FuzzerError):
    """The send capability became unusable (client closed, host shutting down)."""


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    COMPLETED = "completed"


@dataclass(frozen=True)
class BaselineRequest:
    """Immutable snapshot of the request being fuzzed.

    Every ``with_*`` helper returns a new request; nothing is modified in place.
    ``url`` may be path-only until the orchestrator resolves it from the Host
    header, in which case ``tls`` decides the scheme.
    """
    method: str
    url: str
    headers: Tuple[Tuple[str, str], ...] = ()
    body: bytes = b""
    http_version: str = "HTTP/1.1"
    tls: bool = False

    # ── read helpers ────────────────────────────────────────────

    def header(self, name: str) -> Optional[str]:
        lower = name.lower()
        for k, v in self.headers:
            if k.lower() == lower:
                return v
        return None

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def query(self) -> str:
        return urlsplit(self.url).query

    @property
    def target(self) -> str:
        """Path and query as written on the request line."""
        parts = urlsplit(self.url)
        path = parts.path or "/"
        return f"{path}?{parts.query}" if parts.query else path

    def is_absolute(self) -> bool:
        parts = urlsplit(self.url)
        return bool(parts.scheme and parts.netloc)

    # ── derivation helpers ──────────────────────────────────────

    def with_method(self, method: str) -> "BaselineRequest":
        return replace(self, method=method)

    def with_url(self, url: str) -> "BaselineRequest":
        return replace(self, url=url)

    def with_path(self, path: str) -> "BaselineRequest":
        """Replace path and query, keeping scheme and authority."""
        parts = urlsplit(self.url)
        if not path.startswith("/"):
            path = "/" + path
        return replace(self, url=f"{parts.scheme}://{parts.netloc}{path}" if parts.netloc else path)

    def with_query(self, query: str) -> "BaselineRequest":
        parts = urlsplit(self.url)
        return replace(self, url=urlunsplit((parts.scheme, parts.netloc, parts.path, query, "")))

    def with_header(self, name: str, value: str) -> "BaselineRequest":
        return replace(self, headers=self.headers + ((name, value),))

    def with_updated_header(self, name: str, value: str) -> "BaselineRequest":
        lower = name.lower()
        if self.header(name) is None:
            return self.with_header(name, value)
        out = []
        replaced = False
        for k, v in self.headers:
            if k.lower() == lower:
                if not replaced:
                    out.append((k, value))
                    replaced = True
                continue
            out.append((k, v))
        return replace(self, headers=tuple(out))

    def with_body(self, body: bytes) -> "BaselineRequest":
        return replace(self, body=body)

    def with_http_version(self, version: str) -> "BaselineRequest":
        return replace(self, http_version=version)

    def to_raw(self) -> bytes:
        """Render the request as it would appear on the wire."""
        lines = [f"{self.method} {self.target} {self.http_version}"]
        if self.header("Host") is None:
            host = urlsplit(self.url).netloc
            if host:
                lines.append(f"Host: {host}")
        for k, v in self.headers:
            if k.lower() == "content-length":
                continue
            lines.append(f"{k}: {v}")
        if self.body:
            lines.append(f"Content-Length: {len(self.body)}")
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("latin-1", errors="replace") + self.body


_result_ids = itertools.count(1)


@dataclass(frozen=True, eq=False)
class AttackResult:
    """The outcome of one send attempt.

    Equality is identity: two attempts with the same status, length and
    content type are still distinct results. ``id`` is the stable key for
    side tables (smart filter retention, highlighting).
    """
    attack_type: str
    payload: str
    request: BaselineRequest
    response: Optional[httpx.Response]
    status_code: int = 0
    content_length: int = 0
    content_type: str = ""
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    id: int = field(default_factory=lambda: next(_result_ids))

    @classmethod
    def from_response(cls, attack_type: str, payload: str, request: BaselineRequest,
                      response: Optional[httpx.Response]) -> "AttackResult":
        if response is None:
            return cls(attack_type, payload, request, None)
        return cls(
            attack_type=attack_type,
            payload=payload,
            request=request,
            response=response,
            status_code=response.status_code,
            content_length=len(response.content),
            content_type=response.headers.get("content-type", ""),
        )

    @property
    def pattern_key(self) -> Tuple[int, int, str]:
        return (self.status_code, self.content_length, self.content_type)

    def __str__(self):
        return f"[{self.attack_type}] {self.payload} -> {self.status_code} ({self.content_length} bytes)"
