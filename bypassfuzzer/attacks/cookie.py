"""Debug/admin flags smuggled in the Cookie header."""

import random
from typing import Dict, Iterator, List, Optional

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.core.models import BaselineRequest
from bypassfuzzer.core.payloads import PARAM_PAYLOADS, PayloadLoader
from bypassfuzzer.core.templates import random_case, unique

CASE_CLONES = 3

# Values tried in place of each cookie the request already carries
FUZZ_VALUES = ["true", "1", "yes", "on", "admin", "root", "false", "0", "no", "off"]

EXISTING_TAG = "Cookie (Existing)"


def parse_cookies(header: Optional[str]) -> Dict[str, str]:
    cookies: Dict[str, str] = {}
    for piece in (header or "").split(";"):
        name, sep, value = piece.partition("=")
        if sep and name.strip():
            cookies[name.strip()] = value.strip()
    return cookies


def format_cookies(cookies: Dict[str, str]) -> str:
    return "; ".join(f"{k}={v}" for k, v in cookies.items())


class CookieAttack(AttackStrategy):
    """
    Two passes. Existing cookies get each FUZZ_VALUES value in turn (reported
    as ``Cookie (Existing)``), then the param payloads are appended as new
    cookies (``debug=true``, ``Admin=1``...).
    """

    tag = "Cookie"

    def __init__(self, loader: PayloadLoader, fuzz_existing: bool = True,
                 rng: Optional[random.Random] = None, logger=None):
        super().__init__(logger)
        self.loader = loader
        self.fuzz_existing = fuzz_existing
        self.rng = rng or random.Random()

    def payloads(self) -> List[str]:
        base = self.loader.load_lines(PARAM_PAYLOADS)
        out = list(base)
        for p in base:
            name, sep, value = p.partition("=")
            out.append(name.capitalize() + sep + value)
            out.append(name.upper() + sep + value)
            out.extend(random_case(name, self.rng) + sep + value for _ in range(CASE_CLONES))
        return unique(out)

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        existing = baseline.header("Cookie")

        if self.fuzz_existing:
            cookies = parse_cookies(existing)
            for name in cookies:
                for value in FUZZ_VALUES:
                    header = format_cookies({**cookies, name: value})
                    yield Attempt(f"{name}={value}",
                                  baseline.with_updated_header("Cookie", header), EXISTING_TAG)

        for param in self.payloads():
            if existing:
                req = baseline.with_updated_header("Cookie", f"{existing}; {param}")
            else:
                req = baseline.with_header("Cookie", param)
            yield Attempt(param, req)
