"""DATA_DS payloads: the default XML output of a BI Publisher data model."""

import logging
import xml.etree.ElementTree as ET
from typing import Any

from fusion_sql.errors import PayloadDecodeError
from fusion_sql.models import DecodedReport
from fusion_sql.shapes import EMBEDDED_KEYS, PayloadShape, register
from fusion_sql.shapes.rowset import rowset_records
from fusion_sql.shapes.table import build_table
from fusion_sql.xmltree import parse_document

log = logging.getLogger(__name__)


def _g_data_groups(doc: dict[str, Any]) -> list[dict[str, Any]]:
    data_ds = doc.get("DATA_DS")
    if not isinstance(data_ds, dict):
        return []
    g_data = data_ds.get("G_DATA", "")
    groups = g_data if isinstance(g_data, list) else [g_data]
    return [g for g in groups if isinstance(g, dict)]


def _embedded_records(value: Any) -> list[Any]:
    """Rows from a RESULT cell, which holds a whole ROWSET document."""
    if isinstance(value, dict):
        return rowset_records(value.get("ROWSET"))
    if not isinstance(value, str) or not value.strip():
        return []
    try:
        inner = parse_document(value)
    except ET.ParseError as exc:
        raise PayloadDecodeError(f"Could not parse embedded ROWSET XML: {exc}") from exc
    return rowset_records(inner.get("ROWSET"))


@register(PayloadShape.EMBEDDED_ROWSET)
def extract_embedded_rowset(doc: dict[str, Any]) -> DecodedReport:
    records: list[Any] = []
    for group in _g_data_groups(doc):
        key = next((k for k in EMBEDDED_KEYS if k in group), None)
        if key is not None:
            records.extend(_embedded_records(group[key]))
    log.info("Embedded ROWSET payload: %d row(s)", len(records))
    return DecodedReport(shape=PayloadShape.EMBEDDED_ROWSET.value, table=build_table(records))


def zip_columns(group: dict[str, Any]) -> list[dict[str, Any]]:
    """One G_DATA group -> row records.

    Each key is a column. Scalar values make a single row; list values are
    parallel arrays zipped by index. A scalar next to lists repeats on every
    row and a short list is padded with None.
    """
    keys = [k for k in group if not k.startswith("@_") and k not in EMBEDDED_KEYS]
    if not keys:
        return []
    n_rows = max(len(group[k]) if isinstance(group[k], list) else 1 for k in keys)
    records = []
    for i in range(n_rows):
        row: dict[str, Any] = {}
        for key in keys:
            values = group[key]
            if isinstance(values, list):
                row[key] = values[i] if i < len(values) else None
            else:
                row[key] = values
        records.append(row)
    return records


@register(PayloadShape.COLUMNAR)
def extract_columnar(doc: dict[str, Any]) -> DecodedReport:
    records: list[dict[str, Any]] = []
    for group in _g_data_groups(doc):
        records.extend(zip_columns(group))
    log.info("G_DATA payload: %d row(s)", len(records))
    return DecodedReport(shape=PayloadShape.COLUMNAR.value, table=build_table(records))
