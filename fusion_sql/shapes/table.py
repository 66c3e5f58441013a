import json
import logging
from typing import Any

from fusion_sql.models import ResultTable

log = logging.getLogger(__name__)

_TRUE = ("true", "1")


def is_nil(value: Any) -> bool:
    """True for Oracle's ``<COL xsi:nil="true"/>`` cells."""
    if not isinstance(value, dict):
        return False
    for key, flag in value.items():
        if key.startswith("@_") and (key.endswith(":nil") or key == "@_nil"):
            if flag is True or str(flag).strip().lower() in _TRUE:
                return True
    return False


def normalize_cell(value: Any) -> str | None:
    """Reduce a decoded cell to a string or None."""
    if value is None or is_nil(value):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        if "#text" in value:
            return normalize_cell(value["#text"])
        if all(k.startswith("@_") for k in value):
            return ""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def build_table(records: list[Any]) -> ResultTable:
    """Turn decoded records into a ResultTable with one shared column set.

    Columns follow the first row's key order; keys that only appear in later
    rows are appended in first-seen order and missing cells are None.
    Attribute keys (``@_...``) are row metadata and are dropped.
    """
    columns: list[str] = []
    normalized: list[dict[str, str | None]] = []
    for rec in records:
        if not isinstance(rec, dict):
            rec = {"VALUE": rec}
        row = {k: normalize_cell(v) for k, v in rec.items() if not k.startswith("@_")}
        for key in row:
            if key not in columns:
                columns.append(key)
        normalized.append(row)

    if any(len(row) != len(columns) for row in normalized):
        log.warning("Rows have differing columns; padding %d column(s) with nulls", len(columns))

    rows = [{col: row.get(col) for col in columns} for row in normalized]
    return ResultTable(rows=rows, columns=columns)
