from typing import Dict, List, Tuple
from urllib.parse import urlsplit

from bypassfuzzer.core.models import BaselineRequest


class Request:
    def __init__(self, requestFilename: str = "") -> None:
        """
        Raw request as saved from a proxy, e.g.:

        POST /admin/users?id=7 HTTP/1.1
        Host: target.local
        Cookie: session=...

        role=admin
        """

        self.method = ""
        self.path = ""
        self.query = ""
        self.http_version = "HTTP/1.1"
        self.headers: List[Tuple[str, str]] = []
        self.body = b""
        self.host = ""
        self.url = ""

        self.requestFilename = requestFilename

    @classmethod
    def from_url(cls, url: str, method: str = "GET") -> "Request":
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Absolute URL required: {url!r}")
        req = cls()
        req.method = method.upper()
        req.url = url
        req.path = parts.path or "/"
        req.query = parts.query
        req.host = parts.netloc
        req.headers = [("Host", parts.netloc)]
        return req

    def parse(self) -> Dict:

        with open(self.requestFilename, 'rb') as f:
            raw = f.read()
        return self.parse_bytes(raw)

    def parse_text(self, raw: str) -> Dict:
        return self.parse_bytes(raw.encode("utf-8"))

    @staticmethod
    def split_message(raw: bytes) -> Tuple[bytes, bytes]:
        """Split at the first blank line, CRLF or bare LF, whichever comes first."""
        best = None
        for sep in (b"\r\n\r\n", b"\n\n"):
            i = raw.find(sep)
            if i >= 0 and (best is None or i < best[0]):
                best = (i, len(sep))
        if best is None:
            return raw, b""
        i, n = best
        return raw[:i], raw[i + n:]

    def parse_bytes(self, raw: bytes) -> Dict:
        head_raw, body = self.split_message(raw)
        head = head_raw.decode("utf-8", errors="replace").replace("\r\n", "\n")
        if not head.strip():
            raise ValueError("Request file is empty.")

        lines = [l for l in head.split("\n") if l.strip()]

        # Request line: METHOD SP TARGET [SP HTTP/x.y]
        parts0 = lines[0].split()
        if len(parts0) < 2:
            raise ValueError(f"Invalid request line: {lines[0]!r}")
        self.method = parts0[0]
        raw_path = parts0[1]
        if len(parts0) > 2:
            self.http_version = parts0[2]

        url_parts = urlsplit(raw_path)
        self.path = url_parts.path or "/"
        self.query = url_parts.query

        # Headers, order and duplicates kept
        self.headers = []
        declared_length = None
        for line in lines[1:]:
            if ':' in line:
                k, v = line.split(':', 1)
                if k.strip().lower() == "content-length":
                    declared_length = v.strip()
                    continue
                self.headers.append((k.strip(), v.strip()))

        # Body bytes are kept as saved, cut only to a shorter declared length
        if declared_length and declared_length.isdigit() and int(declared_length) < len(body):
            body = body[:int(declared_length)]
        self.body = body

        self.host = next((v for k, v in self.headers if k.lower() == "host"), "")
        # Proxy-style absolute targets are kept as-is
        if url_parts.scheme and url_parts.netloc:
            self.url = raw_path
        else:
            self.url = f"{self.path}?{self.query}" if self.query else self.path

        return {
            'host': self.host,
            'method': self.method,
            'path': self.path,
            'query': self.query,
            'headers': self.headers,
            'body': self.body
        }

    def to_baseline(self, tls: bool = False) -> BaselineRequest:
        # The baseline always goes out as HTTP/1.1; only the Protocol attack changes it
        return BaselineRequest(
            method=self.method,
            url=self.url,
            headers=tuple(self.headers),
            body=self.body,
            tls=tls,
        )

    def __str__(self) -> str:
        return f"Method: {self.method}\nPath: {self.path}\nHost: {self.host}\nQuery: {self.query}\nHeaders: {self.headers}\nBody: {self.body!r}"
