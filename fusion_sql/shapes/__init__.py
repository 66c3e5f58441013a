import importlib
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from fusion_sql.models import DecodedReport

log = logging.getLogger(__name__)


class PayloadShape(str, Enum):
    """Layouts the RunSQL report output has been seen in, in probe order."""

    JSON_DOC = "json_doc"
    EMBEDDED_ROWSET = "embedded_rowset"  # DATA_DS/G_DATA/RESULT holding ROWSET XML
    COLUMNAR = "columnar"  # DATA_DS/G_DATA with one key per column
    ROWSET = "rowset"
    RAW = "raw"


EMBEDDED_KEYS = ("RESULT", "r")

_REGISTRY: dict[PayloadShape, Callable[[dict[str, Any]], DecodedReport]] = {}

# Extractor modules, imported at bottom to auto-register
_MODULES = [
    "fusion_sql.shapes.json_doc",
    "fusion_sql.shapes.data_ds",
    "fusion_sql.shapes.rowset",
]


def register(shape: PayloadShape):
    """Decorator to register the extractor for a payload shape."""

    def decorator(fn):
        _REGISTRY[shape] = fn
        return fn

    return decorator


def _groups(g_data: Any) -> list[Any]:
    return g_data if isinstance(g_data, list) else [g_data]


def detect_shape(doc: dict[str, Any]) -> PayloadShape:
    """Classify a parsed report document. Never fails; RAW is the fallback."""
    if "json_doc" in doc:
        return PayloadShape.JSON_DOC

    if "DATA_DS" in doc:
        data_ds = doc["DATA_DS"]
        if data_ds == "":
            return PayloadShape.COLUMNAR
        if isinstance(data_ds, dict):
            g_data = data_ds.get("G_DATA", "")
            groups = _groups(g_data)
            if any(isinstance(g, dict) and any(k in g for k in EMBEDDED_KEYS) for g in groups):
                return PayloadShape.EMBEDDED_ROWSET
            if all(isinstance(g, dict) or g == "" for g in groups):
                return PayloadShape.COLUMNAR

    rowset = doc.get("ROWSET")
    if isinstance(rowset, dict) or rowset == "":
        return PayloadShape.ROWSET

    return PayloadShape.RAW


def extract(doc: dict[str, Any]) -> DecodedReport:
    """Dispatch a parsed report document to the extractor for its shape."""
    shape = detect_shape(doc)
    log.info("Report payload shape: %s", shape.value)
    return _REGISTRY[shape](doc)


@register(PayloadShape.RAW)
def _raw(doc: dict[str, Any]) -> DecodedReport:
    log.warning("No recognizable data structure found, returning parsed document as-is")
    return DecodedReport(shape=PayloadShape.RAW.value, table=None, raw=doc)


# Auto-import modules to trigger @register decorators
for _mod in _MODULES:
    importlib.import_module(_mod)
