"""Decode a runReport SOAP response into a ResultTable.

The response nests two documents: the outer SOAP envelope carries a base64
``reportBytes`` element, and that decodes to the report's own XML, whose
layout depends on how the RunSQL data model was built (see
:mod:`fusion_sql.shapes`).
"""

import base64
import binascii
import logging
import xml.etree.ElementTree as ET

from fusion_sql import shapes
from fusion_sql.errors import EmptyReportError, PayloadDecodeError, SoapFaultError
from fusion_sql.models import DecodedReport
from fusion_sql.xmltree import local_name, parse_document

log = logging.getLogger(__name__)


def find_element(elem: ET.Element, name: str) -> ET.Element | None:
    """First descendant with the given local name, any namespace prefix."""
    for child in elem.iter():
        if child is not elem and local_name(child.tag) == name:
            return child
    return None


def _body(root: ET.Element) -> ET.Element:
    body = find_element(root, "Body")
    return body if body is not None else root


def fault_text(fault: ET.Element) -> str:
    """Text of a SOAP fault: 1.2 ``Reason/Text``, 1.1 ``faultstring``, else ``detail``."""
    for path in (("Reason", "Text"), ("faultstring",), ("Reason",), ("detail",), ("Detail",)):
        node: ET.Element | None = fault
        for name in path:
            node = find_element(node, name) if node is not None else None
        if node is not None:
            text = "".join(node.itertext()).strip()
            if text:
                return text
    return ""


def parse_envelope(body: str) -> ET.Element:
    try:
        return ET.fromstring(body)
    except ET.ParseError as exc:
        raise PayloadDecodeError(f"Failed to parse response from Oracle BI Publisher: {exc}") from exc


def extract_report_bytes(body: str) -> str:
    """Return the base64 reportBytes text of a SOAP response.

    Raises SoapFaultError when the body holds a fault, EmptyReportError when
    it holds neither.
    """
    soap_body = _body(parse_envelope(body))
    report_bytes = find_element(soap_body, "reportBytes")
    if report_bytes is not None and (report_bytes.text or "").strip():
        return report_bytes.text.strip()

    fault = find_element(soap_body, "Fault")
    if fault is not None:
        text = fault_text(fault)
        log.info("SOAP fault in response: %s", text.splitlines()[0] if text else "<empty>")
        raise SoapFaultError(text)

    raise EmptyReportError()


def decode_report_bytes(report_bytes: str) -> str:
    try:
        raw = base64.b64decode("".join(report_bytes.split()), validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise PayloadDecodeError(f"reportBytes is not valid base64 UTF-8 data: {exc}") from exc


def decode_payload(xml_text: str) -> DecodedReport:
    """Parse the inner report XML and normalize it by shape."""
    if not xml_text.strip():
        raise EmptyReportError()
    try:
        doc = parse_document(xml_text)
    except ET.ParseError as exc:
        raise PayloadDecodeError(f"Report output is not valid XML: {exc}") from exc
    return shapes.extract(doc)


def decode_response(body: str) -> DecodedReport:
    """Full decode of a 2xx runReport response body."""
    inner = decode_report_bytes(extract_report_bytes(body))
    log.debug("Decoded report XML: %s", inner[:2000])
    return decode_payload(inner)
