import socket
import ssl
from typing import List, Tuple
from urllib.parse import urlsplit

import httpx

from bypassfuzzer.core.models import BaselineRequest, CapabilityLostError
from bypassfuzzer.reporters.console import safe_log

_STOP_HDRS = {"content-length", "transfer-encoding"}
_RAW_DROP_HDRS = _STOP_HDRS | {"content-encoding"}
_RAW_READ_LIMIT = 10 * 1024 * 1024


class Engine:
    """
    Send capability backed by an httpx client.

    Requests keep their exact path (no dot-segment normalization) through the
    ``target`` request extension. Requests whose protocol version is not
    HTTP/1.1 are written byte for byte over a socket.
    """

    def __init__(self, proxy: str | None = None, timeout: float = 10, logger=None,
                 transport: httpx.BaseTransport | None = None):
        self.name = "BypassFuzzer"
        self.version = "1.0.0"
        self.timeout = timeout
        self.logger = logger
        self.client = httpx.Client(
            verify=False, proxy=proxy, follow_redirects=False, timeout=timeout,
            transport=transport)

    def __call__(self, request: BaselineRequest) -> httpx.Response:
        return self.send(request)

    def close(self):
        self.client.close()

    def send(self, request: BaselineRequest) -> httpx.Response:
        if self.client.is_closed:
            raise CapabilityLostError("HTTP client has been closed")

        if request.http_version.upper() != "HTTP/1.1":
            return self._send_raw(request)

        headers = [(k, v) for k, v in request.headers if k.lower() not in _STOP_HDRS]
        if getattr(self.logger, "verbose", 0) >= 2:
            safe_log(self.logger, "debug", f"→ {request.method} {request.url}")
        try:
            return self.client.request(
                method=request.method, url=request.url, headers=headers,
                content=request.body or None,
                extensions={"target": request.target.encode("latin-1", errors="replace")})
        except RuntimeError as exc:
            # httpx raises RuntimeError once the client is closed
            raise CapabilityLostError(str(exc)) from exc

    # ---------- raw protocol path ----------

    def _send_raw(self, request: BaselineRequest) -> httpx.Response:
        parts = urlsplit(request.url)
        if not parts.hostname:
            raise httpx.UnsupportedProtocol(f"Cannot send raw request without host: {request.url}")
        secure = parts.scheme == "https"
        port = parts.port or (443 if secure else 80)

        try:
            with socket.create_connection((parts.hostname, port), timeout=self.timeout) as sock:
                if secure:
                    ctx = ssl.create_default_context()
                    ctx.check_hostname = False
                    ctx.verify_mode = ssl.CERT_NONE
                    with ctx.wrap_socket(sock, server_hostname=parts.hostname) as tls:
                        raw = self._exchange(tls, request.to_raw())
                else:
                    raw = self._exchange(sock, request.to_raw())
        except socket.timeout as exc:
            raise httpx.ReadTimeout(str(exc)) from exc
        except OSError as exc:
            raise httpx.ConnectError(str(exc)) from exc

        return parse_raw_response(raw)

    @staticmethod
    def _exchange(sock, payload: bytes) -> bytes:
        sock.sendall(payload)
        chunks = []
        size = 0
        while size < _RAW_READ_LIMIT:
            data = sock.recv(65536)
            if not data:
                break
            chunks.append(data)
            size += len(data)
        return b"".join(chunks)


def parse_raw_response(raw: bytes) -> httpx.Response:
    """Parse raw response bytes into an httpx.Response.

    A reply without a status line is treated as an HTTP/0.9 simple response.
    """
    if not raw:
        raise httpx.RemoteProtocolError("Empty response")
    if not raw.startswith(b"HTTP/"):
        return httpx.Response(200, content=raw)

    head, sep, body = raw.partition(b"\r\n\r\n")
    if not sep:
        head, _, body = raw.partition(b"\n\n")
    lines = head.decode("latin-1").replace("\r\n", "\n").split("\n")

    status_parts = lines[0].split(None, 2)
    try:
        status = int(status_parts[1])
    except (IndexError, ValueError):
        raise httpx.RemoteProtocolError(f"Malformed status line: {lines[0]!r}")

    headers: List[Tuple[str, str]] = []
    for line in lines[1:]:
        if ":" in line:
            k, v = line.split(":", 1)
            # Framing headers no longer describe the parsed body
            if k.strip().lower() in _RAW_DROP_HDRS:
                continue
            headers.append((k.strip(), v.strip()))

    return httpx.Response(status, headers=headers, content=body)
