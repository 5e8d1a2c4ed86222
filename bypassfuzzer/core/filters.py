"""Result filters: smart pattern de-duplication and user-defined rules."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from bypassfuzzer.core.models import AttackResult

PatternKey = Tuple[int, int, str]


class ResponseFilter(ABC):

    name: str = "Unnamed Filter"

    @abstractmethod
    def should_show(self, result: AttackResult) -> bool:
        """Return True if *result* passes the filter."""
        ...


@dataclass
class PatternRecord:
    occurrences: int = 0
    retained: List[int] = field(default_factory=list)   # result ids, first K only


class SmartFilter(ResponseFilter):
    """
    Mutes responses whose (status, length, content-type) pattern has already
    been seen K times.

    Every result is tracked whether or not the filter is enabled, so toggling
    it later reflects the whole run. Retention is keyed on result ids, never
    on result values.
    """

    name = "Smart Filter"

    def __init__(self, max_repeats: int = 10, enabled: bool = True):
        self.max_repeats = max_repeats
        self.enabled = enabled
        self._patterns: Dict[PatternKey, PatternRecord] = {}

    @staticmethod
    def key_for(result: AttackResult) -> PatternKey:
        return (result.status_code, result.content_length, result.content_type or "")

    def track(self, result: AttackResult) -> None:
        record = self._patterns.setdefault(self.key_for(result), PatternRecord())
        record.occurrences += 1
        if len(record.retained) < self.max_repeats:
            record.retained.append(result.id)

    def should_show(self, result: AttackResult) -> bool:
        if not self.enabled:
            return True
        record = self._patterns.get(self.key_for(result))
        return record is not None and result.id in record.retained

    def pattern_count(self, key: PatternKey) -> int:
        record = self._patterns.get(key)
        return record.occurrences if record else 0

    def reset(self) -> None:
        self._patterns.clear()

    def statistics(self) -> str:
        if not self._patterns:
            return "No patterns tracked"
        return (f"{len(self._patterns)} unique patterns tracked "
                f"(showing first {self.max_repeats} of each)")


@dataclass
class FilterConfig:
    enabled: bool = False
    hidden_status_codes: Set[int] = field(default_factory=set)
    shown_status_codes: Set[int] = field(default_factory=set)
    min_content_length: Optional[int] = None
    max_content_length: Optional[int] = None
    hidden_lengths: Set[int] = field(default_factory=set)
    shown_lengths: Set[int] = field(default_factory=set)
    content_type: Optional[str] = None
    payload_contains: Optional[str] = None


class ManualFilter(ResponseFilter):

    name = "Manual Filter"

    def __init__(self, config: FilterConfig):
        self.config = config

    def should_show(self, result: AttackResult) -> bool:
        c = self.config
        if not c.enabled:
            return True

        if c.hidden_status_codes and result.status_code in c.hidden_status_codes:
            return False
        if c.shown_status_codes and result.status_code not in c.shown_status_codes:
            return False

        if c.min_content_length is not None and result.content_length < c.min_content_length:
            return False
        if c.max_content_length is not None and result.content_length > c.max_content_length:
            return False
        if c.hidden_lengths and result.content_length in c.hidden_lengths:
            return False
        if c.shown_lengths and result.content_length not in c.shown_lengths:
            return False

        if c.content_type and c.content_type.strip():
            if c.content_type.lower() not in (result.content_type or "").lower():
                return False

        if c.payload_contains and c.payload_contains.strip():
            if c.payload_contains.lower() not in (result.payload or "").lower():
                return False

        return True
