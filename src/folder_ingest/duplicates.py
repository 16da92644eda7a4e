"""
Duplicate detection: composite keys, in-file tracking and store lookups.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from folder_ingest.casting import cast_value
from folder_ingest.models import FieldRule

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "|"


def build_duplicate_key(fields: Sequence[str], record: Mapping[str, Optional[str]]) -> str:
    """Join the duplicate-check values in configured order; missing values count as ''."""
    return KEY_SEPARATOR.join(
        '' if record.get(name) is None else record.get(name)
        for name in fields
    )


class InFileDuplicateChecker:
    """Remembers keys seen in one file; the first occurrence is never a duplicate."""

    def __init__(self):
        self._seen: Set[str] = set()

    def is_duplicate(self, key: str) -> bool:
        if key in self._seen:
            return True
        self._seen.add(key)
        return False

    def __len__(self) -> int:
        return len(self._seen)


class DbDuplicateChecker:
    """Checks whether a record with the same duplicate-check values is already stored.

    Values are converted with their field rule's type (blank -> None); a field
    without a rule is compared as its raw string.
    """

    def __init__(self, handler, rules: Sequence[FieldRule]):
        self.handler = handler
        self._rules: Dict[str, FieldRule] = {}
        for rule in rules:
            self._rules.setdefault(rule.name, rule)

    def criteria(self, record: Mapping[str, Optional[str]], fields: List[str]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name in fields:
            raw = record.get(name)
            rule = self._rules.get(name)
            if rule is None:
                values[name] = raw
            elif raw is None or not raw.strip():
                values[name] = None
            else:
                values[name] = cast_value(raw.strip(), rule.type)
        return values

    def exists(self, record: Mapping[str, Optional[str]], fields: List[str]) -> bool:
        if not fields:
            return False
        return self.handler.exists_by_fields(self.criteria(record, fields))
