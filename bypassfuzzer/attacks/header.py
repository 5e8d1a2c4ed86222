"""Header injection: spoofed client IPs, URL rewrite headers, OOB callbacks."""

from typing import Callable, Iterator, Optional

from bypassfuzzer.attacks.base import AttackStrategy, Attempt
from bypassfuzzer.core.models import BaselineRequest
from bypassfuzzer.core.payloads import HEADER_TEMPLATES, IP_PAYLOADS, PayloadLoader
from bypassfuzzer.core.templates import expand_header_templates


class HeaderAttack(AttackStrategy):

    tag = "Header"

    def __init__(self, loader: PayloadLoader, oob_payload: Optional[str] = None,
                 oob_provider: Optional[Callable[[], Optional[str]]] = None, logger=None):
        super().__init__(logger)
        self.loader = loader
        self.oob_payload = oob_payload
        self.oob_provider = oob_provider

    def attempts(self, baseline: BaselineRequest, target_url: str) -> Iterator[Attempt]:
        payloads = expand_header_templates(
            self.loader.load_lines(HEADER_TEMPLATES),
            self.loader.load_lines(IP_PAYLOADS),
            target_url,
            oob_payload=self.oob_payload,
            oob_provider=self.oob_provider,
        )
        for hp in payloads:
            # X-Original-URL style headers only work when the request line points elsewhere
            req = baseline.with_path("/") if hp.path_swap else baseline
            yield Attempt(hp.description, req.with_header(hp.name, hp.value))
