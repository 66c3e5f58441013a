import logging
from typing import Any

from fusion_sql.models import DecodedReport
from fusion_sql.shapes import PayloadShape, register
from fusion_sql.shapes.table import build_table

log = logging.getLogger(__name__)


def rowset_records(rowset: Any) -> list[Any]:
    """``ROWSET`` value -> list of ROW records (one ROW is not a list)."""
    if not isinstance(rowset, dict):
        return []
    rows = rowset.get("ROW")
    if rows is None or rows == "":
        return []
    return rows if isinstance(rows, list) else [rows]


@register(PayloadShape.ROWSET)
def extract_rowset(doc: dict[str, Any]) -> DecodedReport:
    records = rowset_records(doc["ROWSET"])
    log.info("ROWSET payload: %d row(s)", len(records))
    return DecodedReport(shape=PayloadShape.ROWSET.value, table=build_table(records))
