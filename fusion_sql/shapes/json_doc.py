import json
import logging
from typing import Any

from fusion_sql.models import DecodedReport
from fusion_sql.shapes import PayloadShape, register
from fusion_sql.shapes.table import build_table

log = logging.getLogger(__name__)


def _is_cell(value: Any) -> bool:
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    return isinstance(value, dict) and all(k.startswith("@_") or k == "#text" for k in value)


def _records(value: Any) -> list[Any] | None:
    """Rows from a JSON value, or None if it is not table-shaped."""
    if isinstance(value, list) and all(isinstance(v, dict) for v in value):
        return value
    if isinstance(value, dict) and all(_is_cell(v) for v in value.values()):
        return [value]
    return None


@register(PayloadShape.JSON_DOC)
def extract_json_doc(doc: dict[str, Any]) -> DecodedReport:
    value = doc["json_doc"]
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            log.warning("json_doc is not valid JSON, returning it as raw text")
            return DecodedReport(shape=PayloadShape.JSON_DOC.value, table=None, raw={"raw": doc["json_doc"]})

    records = _records(value)
    if records is None:
        return DecodedReport(shape=PayloadShape.JSON_DOC.value, table=None, raw=value)
    return DecodedReport(shape=PayloadShape.JSON_DOC.value, table=build_table(records))
