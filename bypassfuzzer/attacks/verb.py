"""Verb tampering: method substitution, override headers, parameter relocation."""

from typing import Iterator

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.core.models import BaselineRequest

HTTP_METHODS = [
    "GET", "HEAD", "POST", "PUT", "DELETE", "CONNECT", "OPTIONS", "TRACE",
    "PATCH", "INVENTED", "HACK",
]

OVERRIDE_HEADERS = [
    "X-HTTP-Method-Override",
    "X-HTTP-Method",
    "X-Method-Override",
]

BODY_METHODS = ["POST", "PUT", "PATCH"]

# Body-carrying method sent with an override header asking for another verb
OVERRIDE_BASE_METHODS = ["POST", "PUT"]
OVERRIDE_TARGET_METHODS = ["GET", "DELETE", "PATCH"]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class VerbAttack(AttackStrategy):

    tag = "Verb"

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        for method in HTTP_METHODS:
            yield Attempt(f"Method: {method}", baseline.with_method(method))

        for header in OVERRIDE_HEADERS:
            for method in HTTP_METHODS:
                yield Attempt(f"{header}: {method}", baseline.with_header(header, method))

        for base in OVERRIDE_BASE_METHODS:
            req = baseline.with_method(base)
            for header in OVERRIDE_HEADERS:
                for method in OVERRIDE_TARGET_METHODS:
                    yield Attempt(f"{base} + {header}: {method}", req.with_header(header, method))

        yield from self._relocations(baseline)

    @staticmethod
    def _relocations(baseline: BaselineRequest) -> Iterator[Attempt]:
        """Move the existing parameter string between query and body, verbatim."""
        query = baseline.query
        body = baseline.body.decode("latin-1")
        params = query or body

        for method in BODY_METHODS:
            req = baseline.with_method(method)
            if query:
                yield Attempt(
                    f"{method}: query -> body",
                    req.with_query("").with_body(query.encode("latin-1"))
                       .with_updated_header("Content-Type", FORM_CONTENT_TYPE))
            if body:
                yield Attempt(
                    f"{method}: body -> query",
                    req.with_query(body).with_body(b""))
            if params:
                yield Attempt(
                    f"{method}: query + body",
                    req.with_query(params).with_body(params.encode("latin-1"))
                       .with_updated_header("Content-Type", FORM_CONTENT_TYPE))
