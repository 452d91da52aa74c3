"""
Invalidation pattern helpers.

Patterns are glob-style strings where ``*`` is the only wildcard, e.g.
``organization:42:*``. Every other character matches itself, so key
components containing regex or glob metacharacters (``.``, ``?``, ``[``)
are never misinterpreted.
"""

import re
from typing import Pattern

WILDCARD = "*"

# Characters the remote store treats as glob syntax besides "*"
_STORE_GLOB_SPECIALS = ("\\", "?", "[", "]")


def compile_pattern(pattern: str) -> Pattern[str]:
    """Compile a glob pattern into an anchored regular expression.

    Args:
        pattern: Glob pattern using ``*`` as wildcard

    Returns:
        Compiled regex matching whole keys
    """
    parts = [re.escape(part) for part in pattern.split(WILDCARD)]
    return re.compile("^" + ".*".join(parts) + "$", re.DOTALL)


def matches_pattern(key: str, pattern: str) -> bool:
    """Check whether a key matches a glob pattern."""
    return compile_pattern(pattern).match(key) is not None


def to_store_glob(pattern: str) -> str:
    """Escape a pattern for a Redis-style ``KEYS`` command.

    Only ``*`` keeps its wildcard meaning; ``?``, ``[``, ``]`` and ``\\``
    are backslash-escaped so both providers agree on what a pattern matches.
    """
    escaped = []
    for char in pattern:
        if char in _STORE_GLOB_SPECIALS:
            escaped.append("\\" + char)
        else:
            escaped.append(char)
    return "".join(escaped)
