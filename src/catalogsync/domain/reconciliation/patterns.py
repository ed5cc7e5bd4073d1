"""Derive a matcher for the key family a project owns.

Keys such as ``STR-123`` and ``STR-124-BLK`` share the prefix ``STR``. Any
remote key with a known prefix is assumed to belong to this project, which
lets a scan catch leftovers of earlier interrupted runs that were never
recorded locally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from catalogsync.domain.model import NaturalKey

DEFAULT_SEPARATOR = "-"


@dataclass(frozen=True, slots=True)
class KeyMatcher:
    prefixes: tuple[str, ...]
    separator: str = DEFAULT_SEPARATOR

    @property
    def pattern(self) -> re.Pattern[str]:
        alternatives = "|".join(re.escape(prefix) for prefix in self.prefixes)
        return re.compile(f"^({alternatives}){re.escape(self.separator)}")

    @property
    def expression(self) -> str:
        """Regex source handed to the remote scan."""

        return self.pattern.pattern

    def matches(self, key: NaturalKey) -> bool:
        return self.pattern.match(key) is not None

    def filter(self, keys: Iterable[NaturalKey]) -> list[NaturalKey]:
        compiled = self.pattern
        return [key for key in keys if compiled.match(key)]


def extract_prefixes(
    keys: Iterable[NaturalKey], separator: str = DEFAULT_SEPARATOR
) -> tuple[str, ...]:
    """Unique prefixes before the first ``separator``, in first-seen order."""

    seen: dict[str, None] = {}
    for key in keys:
        prefix, found, _ = key.partition(separator)
        if found and prefix:
            seen.setdefault(prefix, None)
    return tuple(seen)


def derive_pattern(
    keys: Iterable[NaturalKey], separator: str = DEFAULT_SEPARATOR
) -> KeyMatcher | None:
    """Build a matcher from ``keys``; ``None`` when no key carries a prefix."""

    if not separator:
        raise ValueError("separator must not be empty")
    prefixes = extract_prefixes(keys, separator)
    if not prefixes:
        return None
    return KeyMatcher(prefixes=prefixes, separator=separator)
