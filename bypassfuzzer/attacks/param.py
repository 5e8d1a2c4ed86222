import random
from typing import Iterator, Optional

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.core.models import BaselineRequest
from bypassfuzzer.core.payloads import PARAM_PAYLOADS, PayloadLoader
from bypassfuzzer.core.templates import random_case

CASE_CLONES = 3


def append_parameter(url: str, param: str) -> str:
    return f"{url}&{param}" if "?" in url else f"{url}?{param}"


class ParamAttack(AttackStrategy):
    """Appends debug/admin parameters (``?debug=true``, ``&admin=1``...)."""

    tag = "Param"

    def __init__(self, loader: PayloadLoader, rng: Optional[random.Random] = None, logger=None):
        super().__init__(logger)
        self.loader = loader
        self.rng = rng or random.Random()

    def payloads(self):
        base = self.loader.load_lines(PARAM_PAYLOADS)
        out = list(base)
        for p in base:
            out.extend(random_case(p, self.rng) for _ in range(CASE_CLONES))
        return out

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        for param in self.payloads():
            yield Attempt(param, baseline.with_url(append_parameter(target_url, param)))
