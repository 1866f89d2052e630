"""
Document attributes: entries, locking and ``{name}`` substitution.

Attributes come from three places, in increasing order of authority:

1. built-ins (``{sp}``, ``{nbsp}``, ``{startsb}``, ...)
2. attribute entries in the document (``:name: value``)
3. attributes passed by the caller (site settings)

Caller attributes are locked unless their value ends with ``@`` (a soft
default), so a guide cannot override e.g. the framework version the
site is built for.

Examples:
    >>> store = AttributeStore({"quarkus-version": "3.2.0"})
    >>> store.substitute("Use {quarkus-version}.")
    'Use 3.2.0.'
    >>> store.apply_entry(AttributeEntry("quarkus-version", "1.0"))
    False
    >>> store.substitute(r"literal \\{quarkus-version}")
    'literal {quarkus-version}'
"""

from __future__ import annotations

import re
import string
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from guide_site.diagnostics import DiagnosticLog
from guide_site.errors import Location

BUILTIN_ATTRIBUTES: dict[str, str] = {
    "empty": "",
    "sp": " ",
    "nbsp": "&#160;",
    "zwsp": "&#8203;",
    "wj": "&#8288;",
    "amp": "&amp;",
    "lt": "&lt;",
    "gt": "&gt;",
    "startsb": "[",
    "endsb": "]",
    "vbar": "|",
    "caret": "^",
    "asterisk": "*",
    "tilde": "~",
    "plus": "&#43;",
    "backslash": "\\",
    "backtick": "`",
    "apos": "&#39;",
    "quot": "&#34;",
    "brvbar": "&#166;",
    "two-colons": "::",
    "two-semicolons": ";;",
    "cpp": "C++",
    "sectids": "",
    "toclevels": "2",
    "idprefix": "_",
    "idseparator": "_",
    "attribute-missing": "skip",
    "backend": "html5",
    "basebackend": "html",
    "doctype": "article",
}

MISSING_POLICIES = ("skip", "drop", "warn")

ENTRY_RE = re.compile(r"^:(?P<pre>!)?(?P<name>\w[\w-]*)(?P<post>!)?:(?:[ \t]+(?P<value>.*))?$")
REFERENCE_RE = re.compile(r"(\\)?\{(counter2?:[\w-]+(?::[^}\s]*)?|\w[\w-]*)\}")
COUNTER_RE = re.compile(r"(\\)?\{(counter2?:[\w-]+(?::[^}\s]*)?)\}")


@dataclass(frozen=True)
class AttributeEntry:
    """A parsed ``:name: value`` or ``:name!:`` line."""

    name: str
    value: str = ""
    unset: bool = False


def is_attribute_entry(line: str) -> bool:
    return ENTRY_RE.match(line) is not None


def parse_attribute_entry(lines: Sequence[str]) -> tuple[AttributeEntry, int] | None:
    """Parse an attribute entry starting at ``lines[0]``.

    A value ending in `` \\`` continues on the next line; the pieces are
    joined with a single space.

    Returns:
        The entry and the number of lines consumed, or None when
        ``lines[0]`` is not an attribute entry.
    """
    if not lines:
        return None
    match = ENTRY_RE.match(lines[0])
    if match is None:
        return None

    name = match.group("name").lower()
    unset = bool(match.group("pre") or match.group("post"))
    value = (match.group("value") or "").strip()
    consumed = 1

    while value.endswith(" \\") and consumed < len(lines):
        value = value[:-2].rstrip() + " " + lines[consumed].strip()
        consumed += 1
    if value.endswith(" \\"):
        value = value[:-2].rstrip()

    return AttributeEntry(name, "" if unset else value, unset), consumed


class AttributeStore:
    """Ordered, case-insensitive attribute map with locking and counters.

    Args:
        initial: Caller attributes. A key ending in ``!`` (or a value of
            None) locks the attribute as unset; a value ending in ``@``
            is a soft default the document may override.
        missing: Policy for references to undefined attributes
            (``skip``, ``drop`` or ``warn``).
        diagnostics: Sink for ``missing-attribute`` warnings.
    """

    def __init__(
        self,
        initial: Mapping[str, str | None] | None = None,
        *,
        missing: str = "skip",
        diagnostics: DiagnosticLog | None = None,
    ):
        if missing not in MISSING_POLICIES:
            raise ValueError(f"attribute-missing must be one of {MISSING_POLICIES}, got {missing!r}")
        self._values: dict[str, str] = dict(BUILTIN_ATTRIBUTES)
        self._locked: set[str] = set()
        self._values["attribute-missing"] = missing
        self.diagnostics = diagnostics

        for raw_name, raw_value in (initial or {}).items():
            name = raw_name.lower()
            if name.endswith("!") or raw_value is None:
                name = name.rstrip("!")
                self._values.pop(name, None)
                self._locked.add(name)
                continue
            value = str(raw_value)
            if value.endswith("@"):
                self._values[name] = value[:-1]
            else:
                self._values[name] = value
                self._locked.add(name)

    # ── Mapping-ish access ───────────────────────────────────────

    def get(self, name: str, default: str | None = None) -> str | None:
        return self._values.get(name.lower(), default)

    def is_set(self, name: str) -> bool:
        return name.lower() in self._values

    def is_locked(self, name: str) -> bool:
        return name.lower() in self._locked

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_set(name)

    def __getitem__(self, name: str) -> str:
        return self._values[name.lower()]

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    def copy(self) -> AttributeStore:
        clone = AttributeStore.__new__(AttributeStore)
        clone._values = dict(self._values)
        clone._locked = set(self._locked)
        clone.diagnostics = self.diagnostics
        return clone

    @property
    def missing_policy(self) -> str:
        return self._values.get("attribute-missing", "skip")

    # ── Mutation ─────────────────────────────────────────────────

    def set(self, name: str, value: str) -> bool:
        """Set an attribute unless it is locked. Returns True if set."""
        name = name.lower()
        if name in self._locked:
            return False
        if name == "attribute-missing" and value not in MISSING_POLICIES:
            return False
        self._values[name] = value
        return True

    def unset(self, name: str) -> bool:
        name = name.lower()
        if name in self._locked:
            return False
        self._values.pop(name, None)
        return True

    def apply_entry(self, entry: AttributeEntry, location: Location | None = None) -> bool:
        """Apply a document attribute entry; the value is substituted first."""
        if entry.unset:
            return self.unset(entry.name)
        value = self.substitute(entry.value, location)
        if entry.name == "leveloffset" and value[:1] in ("+", "-") and value[1:].isdigit():
            current = self._values.get("leveloffset", "0")
            base = int(current) if current.lstrip("-").isdigit() else 0
            value = str(base + int(value))
        return self.set(entry.name, value)

    def leveloffset(self) -> int:
        value = self._values.get("leveloffset", "0")
        return int(value) if value.lstrip("+-").isdigit() else 0

    # ── Substitution ─────────────────────────────────────────────

    def substitute(self, text: str, location: Location | None = None) -> str:
        """Replace ``{name}`` references in ``text``.

        ``\\{name}`` is an escaped reference and yields ``{name}``.
        """
        if "{" not in text:
            return text

        def replace(match: re.Match[str]) -> str:
            escaped, ref = match.group(1), match.group(2)
            if escaped:
                return "{" + ref + "}"
            if ref.startswith("counter"):
                return self._counter(ref)
            value = self._values.get(ref.lower())
            if value is not None:
                return value
            return self._missing(match.group(0), ref, location)

        return REFERENCE_RE.sub(replace, text)

    def resolve_counters(self, text: str) -> str:
        """Replace only ``{counter:name}`` references, leaving the rest for later."""
        if "{counter" not in text:
            return text
        return COUNTER_RE.sub(lambda m: m.group(0) if m.group(1) else self._counter(m.group(2)), text)

    def _missing(self, original: str, name: str, location: Location | None) -> str:
        policy = self.missing_policy
        if policy == "drop":
            return ""
        if policy == "warn" and self.diagnostics is not None:
            self.diagnostics.warning(
                "missing-attribute",
                f"skipping reference to missing attribute: {name}",
                location,
            )
        return original

    def _counter(self, ref: str) -> str:
        kind, _, rest = ref.partition(":")
        name, _, seed = rest.partition(":")
        key = name.lower()
        current = self._values.get(key)

        if current is None:
            value = seed or "1"
        elif current.isdigit():
            value = str(int(current) + 1)
        elif len(current) == 1 and current in string.ascii_letters:
            value = chr(ord(current) + 1)
        else:
            value = "1"

        self._values[key] = value
        return "" if kind == "counter2" else value
