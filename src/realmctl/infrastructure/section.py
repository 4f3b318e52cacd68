"""Section-file grammar: raw text <-> typed records.

A section is a header line ``<type>: <id>`` followed by indented
``<key> <value>`` lines and ends at a blank line or EOF. Lines starting
with ``#``, inside a section or between sections, are comments. This module knows nothing about
realm semantics; it only splits and renders.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_HEADER_RE = re.compile(r"^(\S+):\s*(\S+)\s*$")
_PROPERTY_RE = re.compile(r"^\s+(\S+)(?:\s+(.*\S))?\s*$")


@dataclass
class RawSection:
    """One section as read from or written to disk."""

    type: str
    id: str
    fields: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    line: int = 0


class SectionSerializer:
    """Split config text into :class:`RawSection` records and render them back."""

    def parse(self, raw: str) -> list[RawSection]:
        sections: list[RawSection] = []
        current: RawSection | None = None

        for lineno, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                current = None
                continue

            if line.lstrip().startswith("#"):
                continue

            if current is None:
                match = _HEADER_RE.match(line)
                if match is None:
                    logger.warning("Ignoring config line %d: %r", lineno, line)
                    continue
                current = RawSection(type=match.group(1).lower(), id=match.group(2), line=lineno)
                sections.append(current)
                continue

            match = _PROPERTY_RE.match(line)
            if match is None:
                current.errors.append(f"line {lineno}: unable to parse {line!r}")
                continue
            key, value = match.group(1), match.group(2) or ""
            if key in current.fields:
                current.errors.append(f"line {lineno}: duplicate attribute {key!r}")
                continue
            current.fields[key] = value

        return sections

    def render(self, sections: list[RawSection]) -> str:
        """Render *sections*; each is followed by a blank line."""
        parts: list[str] = []
        for section in sections:
            parts.append(f"{section.type}: {section.id}\n")
            for key, value in section.fields.items():
                if "\n" in value or "\r" in value:
                    msg = f"value of {key!r} in section {section.id!r} contains a newline"
                    raise ValueError(msg)
                parts.append(f"\t{key} {value}\n")
            parts.append("\n")
        return "".join(parts)
