"""Parameter extraction and rendering for query strings and request bodies.

Parameters are kept as ordered ``(name, value)`` pairs. Each supported body
format can be read into pairs and written back out, which is all the
content-type conversion and encoding strategies need.
"""

import json
import re
import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple
from urllib.parse import unquote_plus, urlencode

import httpx

from bypassfuzzer.core.models import BaselineRequest

FORM = "application/x-www-form-urlencoded"
JSON = "application/json"
XML = "application/xml"
MULTIPART = "multipart/form-data"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

Pairs = List[Tuple[str, str]]

_BOUNDARY_RE = re.compile(r'boundary="?([^";]+)"?', re.IGNORECASE)
_PART_NAME_RE = re.compile(r'name="([^"]*)"')


def body_kind(content_type: Optional[str]) -> Optional[str]:
    """Map a Content-Type header value onto one of the supported formats."""
    ct = (content_type or "").lower()
    if FORM in ct:
        return FORM
    if JSON in ct:
        return JSON
    if XML in ct or "text/xml" in ct:
        return XML
    if MULTIPART in ct:
        return MULTIPART
    return None


# ── query strings / form bodies ────────────────────────────────

def split_query(text: str, decode: bool = False) -> Pairs:
    """``a=1&b=2`` -> pairs. Pieces without a name are ignored."""
    pairs = []
    for piece in text.split("&"):
        name, sep, value = piece.partition("=")
        if not name or not sep:
            continue
        if decode:
            name, value = unquote_plus(name), unquote_plus(value)
        pairs.append((name, value))
    return pairs


def join_query(pairs: Pairs) -> str:
    """Join pairs without re-encoding them."""
    return "&".join(f"{k}={v}" for k, v in pairs)


# ── JSON ───────────────────────────────────────────────────────

def parse_json(text: str) -> Pairs:
    """Top-level members of a JSON object; nested values stay serialized."""
    try:
        data = json.loads(text)
    except ValueError:
        return []
    if not isinstance(data, dict):
        return []
    return [(str(k), v if isinstance(v, str) else json.dumps(v)) for k, v in data.items()]


def render_json(pairs: Pairs) -> str:
    return json.dumps(dict(pairs))


# ── XML ────────────────────────────────────────────────────────

def parse_xml(text: str) -> Pairs:
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return []
    return [(el.tag, el.text.strip()) for el in root.iter()
            if len(el) == 0 and el.text and el.text.strip()]


def render_xml(pairs: Pairs) -> str:
    root = ET.Element("root")
    for name, value in pairs:
        ET.SubElement(root, name).text = value
    ET.indent(root)
    return f"{XML_DECLARATION}\n{ET.tostring(root, encoding='unicode')}"


# ── multipart ──────────────────────────────────────────────────

def multipart_boundary(content_type: Optional[str]) -> Optional[str]:
    m = _BOUNDARY_RE.search(content_type or "")
    return m.group(1) if m else None


def parse_multipart(text: str, content_type: Optional[str]) -> Pairs:
    boundary = multipart_boundary(content_type)
    if not boundary:
        return []
    pairs = []
    for part in text.split(f"--{boundary}"):
        head, sep, value = part.partition("\r\n\r\n")
        if not sep:
            head, sep, value = part.partition("\n\n")
        m = _PART_NAME_RE.search(head)
        if sep and m and "content-disposition" in head.lower():
            pairs.append((m.group(1), value.strip("\r\n")))
    return pairs


def render_multipart(pairs: Pairs) -> Tuple[bytes, str]:
    """Encode pairs as plain form fields; returns (body, Content-Type)."""
    request = httpx.Request("POST", "http://localhost/",
                            files=[(name, (None, value)) for name, value in pairs])
    return request.read(), request.headers["Content-Type"]


# ── request level ──────────────────────────────────────────────

def body_params(request: BaselineRequest, decode: bool = True) -> Tuple[Optional[str], Pairs]:
    """(format, pairs) for the request body; pairs is empty if nothing parses."""
    kind = body_kind(request.header("Content-Type"))
    if kind is None or not request.body:
        return kind, []
    text = request.body.decode("utf-8", errors="replace")
    if kind == FORM:
        return kind, split_query(text, decode=decode)
    if kind == JSON:
        return kind, parse_json(text)
    if kind == XML:
        return kind, parse_xml(text)
    return kind, parse_multipart(text, request.header("Content-Type"))


def render_body(kind: str, pairs: Pairs, encode_form: bool = True) -> Tuple[bytes, str]:
    """(body, Content-Type) for pairs in the given format.

    ``encode_form=False`` writes form pairs as-is, for values that already
    carry their own percent-encoding.
    """
    if kind == FORM:
        text = urlencode(pairs) if encode_form else join_query(pairs)
        return text.encode("utf-8"), FORM
    if kind == JSON:
        return render_json(pairs).encode("utf-8"), JSON
    if kind == XML:
        return render_xml(pairs).encode("utf-8"), XML
    if kind == MULTIPART:
        return render_multipart(pairs)
    raise ValueError(f"unsupported body format: {kind}")
