import random
from typing import Iterator, Optional

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.core.models import BaselineRequest
from bypassfuzzer.core.payloads import URL_PAYLOADS, PayloadLoader
from bypassfuzzer.core.templates import UrlPermutator


class PathAttack(AttackStrategy):
    """Segment-wise path manipulation (``../admin``, ``admin..;/``, ``admin.json``...)."""

    tag = "Path"
    progress_every = 50
    skip_root = True

    def __init__(self, loader: PayloadLoader, rng: Optional[random.Random] = None, logger=None):
        super().__init__(logger)
        self.loader = loader
        self.rng = rng

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        permutator = UrlPermutator(target_url, rng=self.rng)
        for url in permutator.generate_urls(self.loader.load_lines(URL_PAYLOADS)):
            yield Attempt(url, baseline.with_url(url))
