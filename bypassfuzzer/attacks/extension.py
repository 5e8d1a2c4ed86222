from typing import Iterator
from urllib.parse import urlsplit

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.core.models import BaselineRequest
from bypassfuzzer.core.payloads import EXTENSION_PAYLOADS, PayloadLoader


class ExtensionAttack(AttackStrategy):
    """Appends file extensions to the path: ``/admin`` -> ``/admin.json``."""

    tag = "Extension"
    progress_every = 20
    skip_root = True

    def __init__(self, loader: PayloadLoader, logger=None):
        super().__init__(logger)
        self.loader = loader

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        parts = urlsplit(target_url)
        query = f"?{parts.query}" if parts.query else ""
        for ext in self.loader.load_lines(EXTENSION_PAYLOADS):
            yield Attempt(parts.path + ext, baseline.with_path(parts.path + ext + query))
