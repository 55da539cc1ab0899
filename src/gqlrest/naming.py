"""Name normalisation shared by model detection and path generation."""

from __future__ import annotations

import re

# lower/digit -> Upper boundary ("userId" -> "user Id")
_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")
# UPPER run -> Capitalised word ("HTTPServer" -> "HTTP Server")
_UPPER_WORD = re.compile(r"([A-Z])([A-Z][a-z])")
_SEPARATORS = re.compile(r"[^A-Za-z0-9]+")


def convert_name(name: str) -> str:
    """Kebab-case a schema name: ``userProfiles`` -> ``user-profiles``.

    Word boundaries are camel-case humps and any run of non-alphanumeric
    characters; the result is lower-cased and joined with ``-``.
    """
    split = _UPPER_WORD.sub(r"\1 \2", _LOWER_UPPER.sub(r"\1 \2", name))
    words = [w for w in _SEPARATORS.split(split) if w]
    return "-".join(w.lower() for w in words)


def is_name_equal(a: str, b: str) -> bool:
    return convert_name(a) == convert_name(b)


def get_path(field_name: str, has_id: bool = False) -> str:
    """Route path for a root field, optionally addressed by ``:id``."""
    return f"/{convert_name(field_name)}{'/:id' if has_id else ''}"
