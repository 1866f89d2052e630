"""Property lookup across all loaded configuration roots."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from guide_site.config_reference.model import ConfigProperty, ConfigRoot

_SEGMENT_RE = re.compile(r'"[^"]*"|[^.]+')


@dataclass(frozen=True)
class IndexedProperty:
    root: ConfigRoot
    prop: ConfigProperty

    @property
    def anchor(self) -> str:
        return f"{self.root.extension}_{self.prop.anchor}"


def _key_pattern(key: str) -> re.Pattern[str]:
    """Regex for a key whose quoted segments (``"name"``, ``"*"``) are map keys."""
    parts = []
    for segment in _SEGMENT_RE.findall(key):
        if segment.startswith('"'):
            parts.append(r'(?:"[^"]*"|[^.]+)')
        else:
            parts.append(re.escape(segment))
    return re.compile(r"^" + r"\.".join(parts) + r"$")


class ConfigIndex:
    """Look properties up by exact key, map-key pattern or free text.

    Examples:
        >>> index = ConfigIndex(roots)
        >>> index.lookup('quarkus.log.category."io.grpc".level').prop.key
        'quarkus.log.category."categories".level'
    """

    def __init__(self, roots: Iterable[ConfigRoot]):
        self._entries: list[IndexedProperty] = []
        self._by_key: dict[str, IndexedProperty] = {}
        self._patterns: list[tuple[re.Pattern[str], IndexedProperty]] = []
        for root in roots:
            for prop in root.all_properties():
                entry = IndexedProperty(root, prop)
                self._entries.append(entry)
                self._by_key.setdefault(prop.key, entry)
                if '"' in prop.key:
                    self._patterns.append((_key_pattern(prop.key), entry))
        self._entries.sort(key=lambda e: e.prop.key)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def lookup(self, key: str) -> IndexedProperty | None:
        key = key.strip()
        found = self._by_key.get(key)
        if found is not None:
            return found
        for pattern, entry in self._patterns:
            if pattern.match(key):
                return entry
        return None

    def search(self, text: str) -> list[IndexedProperty]:
        """Case-insensitive match on key, environment variable or description.

        Key matches come before description matches.
        """
        needle = text.strip().lower()
        if not needle:
            return []
        by_key = [
            e for e in self._entries
            if needle in e.prop.key.lower() or needle in e.prop.env_var.lower()
        ]
        by_description = [
            e for e in self._entries
            if e not in by_key and needle in e.prop.description.lower()
        ]
        return by_key + by_description
