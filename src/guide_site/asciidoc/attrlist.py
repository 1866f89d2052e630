"""
Parsing of bracketed attribute lists.

Used by block attribute lines (``[source,java,indent=0]``), the
``include::`` directive and inline macros (``link:url[text,window=_blank]``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

SHORTHAND_RE = re.compile(r"([#.%])([^#.%]+)")


@dataclass
class AttributeList:
    """Positional and named attributes from ``[...]``.

    The first positional attribute may carry shorthand: ``style#id.role%option``.
    """

    positional: list[str] = field(default_factory=list)
    named: dict[str, str] = field(default_factory=dict)
    style: str | None = None
    id: str | None = None
    roles: list[str] = field(default_factory=list)
    options: set[str] = field(default_factory=set)

    def get(self, key: str | int, default: str | None = None) -> str | None:
        """Named lookup by key, or positional lookup by 1-based index."""
        if isinstance(key, int):
            return self.positional[key - 1] if 0 < key <= len(self.positional) else default
        return self.named.get(key, default)

    def has_option(self, name: str) -> bool:
        return name in self.options

    def __bool__(self) -> bool:
        return bool(self.positional or self.named)


def _split(text: str) -> list[str]:
    """Split on commas that are not inside double or single quotes."""
    parts: list[str] = []
    buf: list[str] = []
    quote: str | None = None
    for ch in text:
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
            buf.append(ch)
        elif ch == ",":
            parts.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    parts.append("".join(buf))
    return parts


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_attrlist(text: str, *, shorthand: bool = True) -> AttributeList:
    """Parse the inside of an attribute list (without the brackets).

    Examples:
        >>> attrs = parse_attrlist('source,java,indent=0')
        >>> attrs.style, attrs.get(2), attrs.get("indent")
        ('source', 'java', '0')
        >>> parse_attrlist("#intro.lead").id
        'intro'
        >>> parse_attrlist('cols="1,2",options="header"').named["cols"]
        '1,2'
    """
    result = AttributeList()
    text = text.strip()
    if not text:
        return result

    for index, raw in enumerate(_split(text)):
        raw = raw.strip()
        if not raw and index > 0:
            continue
        key, sep, value = raw.partition("=")
        if sep and re.fullmatch(r"[\w-]+", key.strip()):
            name = key.strip()
            value = _unquote(value)
            result.named[name] = value
            if name == "id":
                result.id = value
            elif name == "role":
                result.roles.extend(value.split())
            elif name in ("opts", "options"):
                result.options.update(o.strip() for o in value.split(",") if o.strip())
            continue

        value = _unquote(raw)
        if index == 0 and shorthand and not raw.startswith(("\"", "'")):
            value = _apply_shorthand(result, value)
        result.positional.append(value)

    if result.positional and result.style is None and shorthand:
        first = result.positional[0]
        if first and re.fullmatch(r"[\w-]+", first):
            result.style = first
    return result


def _apply_shorthand(result: AttributeList, value: str) -> str:
    head = re.split(r"[#.%]", value, maxsplit=1)[0]
    rest = value[len(head):]
    if not rest:
        return value
    for marker, token in SHORTHAND_RE.findall(rest):
        if marker == "#":
            result.id = token
        elif marker == ".":
            result.roles.append(token)
        else:
            result.options.add(token)
    return head
