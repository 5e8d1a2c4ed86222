"""Payload file loading with built-in fallbacks."""

from pathlib import Path
from typing import Dict, List, Optional

from bypassfuzzer.reporters.console import safe_log

PAYLOAD_DIR = Path(__file__).resolve().parent.parent / "payloads"

HEADER_TEMPLATES = "header_payload_templates.txt"
IP_PAYLOADS = "ip_payloads.txt"
URL_PAYLOADS = "url_payloads.txt"
PARAM_PAYLOADS = "param_payloads.txt"
EXTENSION_PAYLOADS = "extension_payloads.txt"

# Used when a payload file is missing or unreadable
DEFAULTS: Dict[str, List[str]] = {
    HEADER_TEMPLATES: [
        "X-Forwarded-For: {IP}",
        "X-Real-IP: {IP}",
        "X-Original-URL: {PATH_SWAP}",
        "X-Rewrite-URL: {PATH_SWAP}",
    ],
    IP_PAYLOADS: ["127.0.0.1", "localhost", "0.0.0.0", "10.0.0.1"],
    URL_PAYLOADS: ["../", "..;/", "%2e/", "//", ";/", ".;/", "%20", "%09", "%00"],
    PARAM_PAYLOADS: ["debug=true", "debug=1", "admin=true", "admin=1"],
    EXTENSION_PAYLOADS: [".json", ".html", ".php", ".xml", ".txt"],
}


def read_payload_file(path) -> List[str]:
    """Read one payload per line, skipping blanks and ``#`` comments."""
    with open(path, "r", encoding="utf-8", errors="ignore") as f:
        lines = [l.rstrip("\r\n") for l in f]
    return [l for l in lines if l.strip() and not l.strip().startswith("#")]


class PayloadLoader:
    """
    Resolves payload names to lines.

    ``overrides`` maps a payload file name (e.g. ``ip_payloads.txt``) to a
    custom path that replaces the packaged file.
    """

    def __init__(self, overrides: Optional[Dict[str, str]] = None, logger=None,
                 payload_dir: Path = PAYLOAD_DIR):
        self.overrides = dict(overrides or {})
        self.logger = logger
        self.payload_dir = Path(payload_dir)

    def load_lines(self, name: str) -> List[str]:
        path = self.overrides.get(name) or self.payload_dir / name
        try:
            lines = read_payload_file(path)
        except OSError as exc:
            safe_log(self.logger, "warn",
                     f"Payload file {name} unavailable ({exc}); using built-in defaults")
            return list(DEFAULTS.get(name, []))
        return lines

    @staticmethod
    def validate(path) -> bool:
        try:
            return bool(read_payload_file(path))
        except OSError:
            return False
