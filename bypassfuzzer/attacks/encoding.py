"""Character encoding of the path and of parameter names and values."""

import random
from typing import Callable, Dict, Iterator, List, Optional

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.core.models import BaselineRequest
from bypassfuzzer.core.params import (
    MULTIPART, Pairs, body_params, join_query, render_body, split_query,
)

MAX_PATH_LENGTH = 50
MAX_PARAM_LENGTH = 100
VARIATIONS_PER_STRING = 5

ENCODERS: Dict[str, Callable[[str], str]] = {
    "url":              lambda c: f"%{ord(c):02X}",
    "double-url":       lambda c: f"%25{ord(c):02X}",
    "triple-url":       lambda c: f"%2525{ord(c):02X}",
    "unicode":          lambda c: f"%u{ord(c):04x}",
    "unicode-long":     lambda c: f"\\u{ord(c):04x}",
    # 0x4e61 truncates to 0x61 ('a') when narrowed to a single byte
    "unicode-overflow": lambda c: f"%u{ord(c) + 0x4e00:04x}",
}

ENCODING_TYPES = list(ENCODERS)


def is_encodable(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c in "-_.")


def encode_random_chars(text: str, kind: str, rng=random) -> str:
    """Encode a random third (at least one) of the positions in ``text``.

    Only letters, digits and ``-_.`` are touched, so slashes and separators
    keep their meaning.
    """
    if not text:
        return text
    positions = set(rng.sample(range(len(text)), max(1, len(text) // 3)))
    encode = ENCODERS[kind]
    return "".join(encode(c) if i in positions and is_encodable(c) else c
                   for i, c in enumerate(text))


class EncodingAttack(AttackStrategy):
    """
    Percent, double, triple, ``%uXXXX`` and overflow encodings of random
    characters. Paths longer than MAX_PATH_LENGTH are not attempted at all;
    parameters with a name or value over MAX_PARAM_LENGTH are skipped.
    """

    tag = "Encoding"
    skip_root = True

    def __init__(self, rng: Optional[random.Random] = None, logger=None):
        super().__init__(logger)
        self.rng = rng or random.Random()

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        target = baseline.with_url(target_url)
        path = target.path
        if len(path) > MAX_PATH_LENGTH:
            self._log("info", f"Encoding Attack: skipped, path too long "
                              f"({len(path)} chars, max {MAX_PATH_LENGTH})")
            return

        query = target.query
        for kind in ENCODING_TYPES:
            for n in range(VARIATIONS_PER_STRING):
                encoded = encode_random_chars(path, kind, self.rng)
                full = f"{encoded}?{query}" if query else encoded
                yield Attempt(f"Path {kind} #{n + 1}: {encoded}", target.with_path(full))

        query_pairs = split_query(query)
        body_kind, body_pairs = body_params(target, decode=False)
        self._log("debug", f"Encoding Attack: {len(query_pairs)} query and "
                           f"{len(body_pairs)} body parameters")

        for kind in ENCODING_TYPES:
            yield from self._param_attempts(target, kind, "query", query_pairs,
                                            lambda pairs: target.with_query(join_query(pairs)))
            if body_pairs:
                yield from self._param_attempts(target, kind, "body", body_pairs,
                                                lambda pairs: self._with_body(target, body_kind, pairs))

    def _param_attempts(self, target: BaselineRequest, kind: str, location: str, pairs: Pairs,
                        rebuild: Callable[[Pairs], BaselineRequest]) -> Iterator[Attempt]:
        for i, (name, value) in enumerate(pairs):
            if len(name) > MAX_PARAM_LENGTH or len(value) > MAX_PARAM_LENGTH:
                self._log("debug", f"Encoding Attack: skipping param '{name}', too long")
                continue

            encoded_name = encode_random_chars(name, kind, self.rng)
            yield Attempt(f"Param name {kind} ({location}): {name} -> {encoded_name}",
                          rebuild(_replace(pairs, i, encoded_name, value)))

            encoded_value = encode_random_chars(value, kind, self.rng)
            yield Attempt(f"Param value {kind} ({location}): {name}={encoded_value}",
                          rebuild(_replace(pairs, i, name, encoded_value)))

    @staticmethod
    def _with_body(target: BaselineRequest, kind: str, pairs: Pairs) -> BaselineRequest:
        body, content_type = render_body(kind, pairs, encode_form=False)
        if kind == MULTIPART:
            # new boundary
            target = target.with_updated_header("Content-Type", content_type)
        return target.with_body(body)


def _replace(pairs: Pairs, index: int, name: str, value: str) -> List:
    out = list(pairs)
    out[index] = (name, value)
    return out
