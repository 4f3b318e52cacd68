"""Comment text encoding for single-line config values.

Printable ASCII is stored as-is. Control characters, non-ASCII (as UTF-8
bytes), ``:`` and ``%`` are percent-escaped, as are leading and trailing
spaces, so that ``decode_text(encode_text(s)) == s`` for every string.
"""

from __future__ import annotations

from urllib.parse import quote, unquote

_SAFE = "".join(chr(c) for c in range(0x20, 0x7F) if chr(c) not in ":%")


def encode_text(text: str) -> str:
    encoded = quote(text, safe=_SAFE, encoding="utf-8", errors="strict")
    core = encoded.strip(" ")
    if not core:
        return "%20" * len(encoded)
    lead = len(encoded) - len(encoded.lstrip(" "))
    trail = len(encoded) - len(encoded.rstrip(" "))
    return "%20" * lead + core + "%20" * trail


def decode_text(data: str) -> str:
    return unquote(data, encoding="utf-8", errors="replace")
