"""Bind variable detection and substitution for raw SQL text.

Oracle-style ``:name`` markers are replaced with quoted literals before the
SQL is handed to BI Publisher, since the RunSQL report takes the statement
as a single string parameter and has no bind API of its own.
"""

import logging
import re

log = logging.getLogger(__name__)

# Whichever of comment, literal or marker starts first wins, so a quote in a
# comment or a ``--`` in a literal never hides what follows it.
_TOKEN = re.compile(
    r"(?P<line>--[^\n]*)"
    r"|(?P<block>/\*.*?\*/)"
    r"|(?P<literal>'(?:[^']|'')*')"
    r"|:(?P<name>[A-Za-z0-9_]+)\b",
    re.DOTALL,
)


def strip_comments(sql: str) -> str:
    """Remove ``/* ... */`` blocks and ``-- ...`` line comments."""

    def _sub(m: re.Match) -> str:
        if m.group("block"):
            return " "
        if m.group("line"):
            return ""
        return m.group(0)

    return _TOKEN.sub(_sub, sql)


def find_bind_variables(sql: str) -> list[str]:
    """Return bind variable names used in ``sql``, in order of first use.

    Markers inside comments or single-quoted literals (``'HH24:MI'``) are
    not reported.
    """
    names: list[str] = []
    for m in _TOKEN.finditer(sql):
        name = m.group("name")
        if name is not None and name not in names:
            names.append(name)
    return names


def missing_bind_variables(sql: str, values: dict[str, str] | None) -> list[str]:
    values = values or {}
    return [name for name in find_bind_variables(sql) if name not in values]


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def resolve_bind_variables(sql: str, values: dict[str, str] | None) -> str:
    """Replace every ``:name`` that has a value with a quoted literal.

    Done in a single pass that skips comments and existing string literals,
    so a substituted value is never itself scanned for markers and resolving
    twice gives the same text. Names without a value are left untouched.
    """
    if not values:
        return sql

    def _sub(m: re.Match) -> str:
        name = m.group("name")
        if name is not None and name in values:
            return _quote(values[name])
        return m.group(0)

    resolved = _TOKEN.sub(_sub, sql)
    log.debug("Resolved %d bind variable(s)", len(values))
    return resolved
