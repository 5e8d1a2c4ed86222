"""Random capitalization of the path and query string.

Variant counts shrink as the URL grows so long URLs do not explode into
dozens of requests:

    path+query length   variants per component
    <= 50               CASE_VARIATIONS (5)
    51..100             CASE_VARIATIONS_LONG (3)
    > 100               CASE_VARIATIONS_VERY_LONG (2)

Path x query combinations are capped at MAX_CASE_COMBINATIONS.
"""

import random
from typing import Iterator, List, Optional, Tuple
from urllib.parse import urlsplit

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.core.models import BaselineRequest
from bypassfuzzer.core.templates import random_case

CASE_VARIATIONS = 5
CASE_VARIATIONS_LONG = 3
CASE_VARIATIONS_VERY_LONG = 2
LONG_URL_LENGTH = 50
VERY_LONG_URL_LENGTH = 100
MAX_CASE_COMBINATIONS = 15


def variation_counts(total_length: int) -> Tuple[int, int]:
    """(path variants, query variants) for a combined path+query length."""
    if total_length > VERY_LONG_URL_LENGTH:
        return CASE_VARIATIONS_VERY_LONG, CASE_VARIATIONS_VERY_LONG
    if total_length > LONG_URL_LENGTH:
        return CASE_VARIATIONS_LONG, CASE_VARIATIONS_LONG
    return CASE_VARIATIONS, CASE_VARIATIONS


def case_variations(text: str, count: int, rng=random) -> List[str]:
    """The original followed by *count* randomized copies."""
    return [text] + [random_case(text, rng) for _ in range(count)]


def build_case_variations(url: str, rng=random) -> List[str]:
    parts = urlsplit(url)
    path, query = parts.path, parts.query
    path_count, query_count = variation_counts(len(path) + len(query))

    if path:
        path_vars = case_variations(path, path_count, rng)
        if not query:
            return path_vars
        query_vars = case_variations(query, query_count, rng)
        combos = [f"{p}?{q}" for p in path_vars for q in query_vars]
        return combos[:MAX_CASE_COMBINATIONS]

    if query:
        return [f"/?{q}" for q in case_variations(query, query_count, rng)]

    return []


class CaseAttack(AttackStrategy):

    tag = "Case"

    def __init__(self, rng: Optional[random.Random] = None, logger=None):
        super().__init__(logger)
        self.rng = rng or random.Random()

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        for variation in build_case_variations(target_url, self.rng):
            yield Attempt(variation, baseline.with_path(variation))
