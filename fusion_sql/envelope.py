"""SOAP 1.2 envelope for BI Publisher's ``runReport`` operation."""

import re
from xml.sax.saxutils import escape

from fusion_sql.config import settings

SOAP12_NS = "http://www.w3.org/2003/05/soap-envelope"
REPORT_SERVICE_NS = "http://xmlns.oracle.com/oxp/service/PublicReportService"

_TRAILING_TERMINATORS = re.compile(r"[;\s]+$")


def clean_sql(sql: str) -> str:
    """Strip surrounding whitespace and trailing ``;`` terminators."""
    return _TRAILING_TERMINATORS.sub("", sql.strip())


def _cdata(text: str) -> str:
    # "]]>" cannot appear inside a CDATA section; split it across two.
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def build_envelope(sql: str, rows: int, report_path: str | None = None) -> str:
    """Render the runReport request for ``sql`` limited to ``rows`` rows.

    Credentials are deliberately absent: they travel in the HTTP
    Authorization header only.
    """
    path = escape(report_path or settings.fusion.report_path)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<soap:Envelope xmlns:soap="{SOAP12_NS}" xmlns:pub="{REPORT_SERVICE_NS}">
  <soap:Header/>
  <soap:Body>
    <pub:runReport>
      <pub:reportRequest>
        <pub:attributeFormat>xml</pub:attributeFormat>
        <pub:parameterNameValues>
          <pub:item>
            <pub:name>p_sql</pub:name>
            <pub:values>
              <pub:item>{_cdata(clean_sql(sql))}</pub:item>
            </pub:values>
          </pub:item>
          <pub:item>
            <pub:name>p_rows</pub:name>
            <pub:values>
              <pub:item>{int(rows)}</pub:item>
            </pub:values>
          </pub:item>
        </pub:parameterNameValues>
        <pub:reportAbsolutePath>{path}</pub:reportAbsolutePath>
        <pub:sizeOfDataChunkDownload>-1</pub:sizeOfDataChunkDownload>
      </pub:reportRequest>
    </pub:runReport>
  </soap:Body>
</soap:Envelope>"""
