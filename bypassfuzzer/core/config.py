"""Runtime configuration for a fuzzing session."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

ATTACK_TYPES = [
    "header", "path", "verb", "param", "trailingdot",
    "trailingslash", "protocol", "case", "extension",
    "contenttype", "encoding", "cookie",
]


@dataclass
class FuzzerConfig:
    attack_types: List[str] = field(default_factory=lambda: list(ATTACK_TYPES))

    # Rate limiting (0 = unlimited)
    requests_per_second: int = 0
    throttle_status_codes: Set[int] = field(default_factory=lambda: {429, 503})
    auto_throttle: bool = True
    max_delay_ms: Optional[int] = None

    # Filtering
    smart_filter: bool = True
    smart_filter_repeats: int = 10
    hidden_status_codes: Set[int] = field(default_factory=lambda: {401, 403, 404})
    shown_status_codes: Set[int] = field(default_factory=set)
    hidden_lengths: Set[int] = field(default_factory=set)

    # Payloads
    oob_payload: Optional[str] = None
    payload_files: Dict[str, str] = field(default_factory=dict)
    fuzz_existing_cookies: bool = True

    def enabled_attacks(self) -> Set[str]:
        return {a.strip().lower() for a in self.attack_types if a.strip()}
