"""Single-shot trailing character variants: ``Host: example.com.`` and ``/admin/``."""

from typing import Iterator
from urllib.parse import urlsplit

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.core.models import BaselineRequest


class TrailingDotAttack(AttackStrategy):

    tag = "TrailingDot"

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        host = urlsplit(target_url).hostname
        if not host:
            return
        dotted = host + "."
        yield Attempt(f"Host: {dotted}", baseline.with_updated_header("Host", dotted))


class TrailingSlashAttack(AttackStrategy):

    tag = "TrailingSlash"
    skip_root = True

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        parts = urlsplit(target_url)
        path = parts.path
        query = f"?{parts.query}" if parts.query else ""

        if path.endswith("/"):
            stripped = path[:-1]
            if stripped:
                yield Attempt(stripped + query, baseline.with_path(stripped + query))
        elif path:
            yield Attempt(path + "/" + query, baseline.with_path(path + "/" + query))
