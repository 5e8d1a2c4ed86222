"""Content-Type confusion: resend the same parameters in other body formats."""

from typing import Iterator

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.attacks.verb import BODY_METHODS
from bypassfuzzer.core.models import BaselineRequest
from bypassfuzzer.core.params import (
    FORM, JSON, MULTIPART, XML, Pairs, body_kind, body_params, render_body, split_query,
)

CONVERSIONS = [
    (FORM, "URL-encoded"),
    (JSON, "JSON"),
    (XML, "XML"),
    (MULTIPART, "multipart/form-data"),
]


def extract_params(baseline: BaselineRequest) -> Pairs:
    """Body parameters when the body parses, otherwise the query string."""
    _, pairs = body_params(baseline)
    if pairs:
        return pairs
    return split_query(baseline.query, decode=True)


class ContentTypeAttack(AttackStrategy):
    """
    Converts the request parameters to every other supported body format.
    Parsers that pick the format from Content-Type often skip the checks
    the front-end applied to the original encoding.
    """

    tag = "ContentType"

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        params = extract_params(baseline)
        if not params:
            self._log("info", "Content-Type Attack: skipped, no parameters found to convert")
            return

        req = baseline
        if baseline.method.upper() not in BODY_METHODS:
            req = baseline.with_method("POST")

        current = body_kind(baseline.header("Content-Type"))
        for kind, label in CONVERSIONS:
            if kind == current:
                continue
            body, content_type = render_body(kind, params)
            yield Attempt(f"Content-Type: {label}",
                          req.with_updated_header("Content-Type", content_type).with_body(body))
