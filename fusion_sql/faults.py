"""Map failures from every layer of a query run to an ErrorOutcome.

Priority, highest first: maintenance page, auth status, missing service,
SOAP fault (Oracle ``ORA-``/``PLS-`` codes kept verbatim), other HTTP status.
Network exceptions and local pipeline errors are classified separately.
Nothing in this module raises.
"""

import logging
import re
import socket
import ssl
import xml.etree.ElementTree as ET

import httpx

from fusion_sql.config import settings
from fusion_sql.decoder import fault_text, find_element
from fusion_sql.errors import (
    BindVariableError,
    EmptyReportError,
    PayloadDecodeError,
    QueryCancelledError,
    RemoteHTTPError,
    SoapFaultError,
)
from fusion_sql.models import ErrorCategory, ErrorOutcome

log = logging.getLogger(__name__)

MAINTENANCE_MESSAGE = (
    "Oracle Cloud Service Maintenance\n\n"
    "The Oracle Fusion Cloud service is currently undergoing scheduled maintenance. "
    "Please try again once maintenance is complete."
)

HTTP_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION_ERROR: 400,
    ErrorCategory.HOST_UNREACHABLE: 502,
    ErrorCategory.CONNECTION_REFUSED: 502,
    ErrorCategory.TIMEOUT: 504,
    ErrorCategory.TRANSPORT_ERROR: 502,
    ErrorCategory.AUTH_FAILED: 401,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.HTTP_ERROR: 502,
    ErrorCategory.MAINTENANCE_MODE: 503,
    ErrorCategory.SOAP_FAULT: 400,
    ErrorCategory.SQL_ERROR: 400,
    ErrorCategory.DECODE_ERROR: 502,
    ErrorCategory.CANCELLED: 499,
    ErrorCategory.UNKNOWN: 500,
}

_ORACLE_CODE = re.compile(r"\b(?:ORA|PLS)-\d+")
_ORACLE_LINE = re.compile(r"\b(?:ORA|PLS)-\d+|\bline \d+", re.IGNORECASE)
_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "no address associated",
    "temporary failure in name resolution",
    "name resolution",
)


def outcome(
    category: ErrorCategory,
    message: str,
    details: str | None = None,
) -> ErrorOutcome:
    return ErrorOutcome(
        category=category,
        message=message,
        http_status=HTTP_STATUS[category],
        is_maintenance_mode=category is ErrorCategory.MAINTENANCE_MODE,
        details=details,
    )


def is_maintenance_page(body: str | None) -> bool:
    if not body:
        return False
    lowered = body.lower()
    return any(sig.lower() in lowered for sig in settings.fusion.maintenance_signatures)


def extract_fault_text(body: str | None) -> str | None:
    """SOAP fault text from a response body, or None when there is no fault."""
    if not body:
        return None
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return None
    fault = find_element(root, "Fault")
    if fault is None:
        return None
    return fault_text(fault)


def classify_fault_text(text: str | None) -> ErrorOutcome:
    """Classify the text of a SOAP fault.

    Lines carrying an Oracle code or a ``line N`` locator are the only thing
    the user can act on, so they are kept as-is and in order.
    """
    text = (text or "").strip()
    if not text:
        return outcome(ErrorCategory.SOAP_FAULT, "SOAP Fault occurred")

    if _ORACLE_CODE.search(text):
        lines = [ln.strip() for ln in text.splitlines() if _ORACLE_LINE.search(ln)]
        return outcome(ErrorCategory.SQL_ERROR, "\n".join(lines), details=text)

    first = next(ln.strip() for ln in text.splitlines() if ln.strip())
    return outcome(ErrorCategory.SQL_ERROR, first, details=text if first != text else None)


def classify_response(status_code: int, body: str | None) -> ErrorOutcome:
    """Classify a response that did not decode into a report."""
    if is_maintenance_page(body):
        return outcome(ErrorCategory.MAINTENANCE_MODE, MAINTENANCE_MESSAGE, details=f"HTTP {status_code}")
    if status_code in (401, 403):
        return outcome(
            ErrorCategory.AUTH_FAILED,
            "Authentication failed - Invalid username or password",
            details=f"HTTP {status_code}",
        )
    if status_code == 404:
        return outcome(
            ErrorCategory.NOT_FOUND,
            f"BI Publisher service not found - Check that the {settings.fusion.report_path} "
            "report exists in your Fusion instance",
            details="HTTP 404",
        )
    fault = extract_fault_text(body)
    if fault is not None:
        return classify_fault_text(fault)
    return outcome(ErrorCategory.HTTP_ERROR, f"HTTP {status_code} - Server returned an error", details=f"HTTP {status_code}")


def _causes(exc: BaseException):
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__ or exc.__context__


def classify_transport_error(exc: httpx.TransportError) -> ErrorOutcome:
    chain = list(_causes(exc))
    text = " ".join(str(e) for e in chain).lower()
    raw = str(exc) or type(exc).__name__

    if isinstance(exc, httpx.TimeoutException):
        return outcome(ErrorCategory.TIMEOUT, "Connection timeout - server may be unavailable", details=raw)
    if any(isinstance(e, socket.gaierror) for e in chain) or any(m in text for m in _DNS_MARKERS):
        return outcome(ErrorCategory.HOST_UNREACHABLE, "Invalid Fusion URL - domain not found", details=raw)
    if any(isinstance(e, ConnectionRefusedError) for e in chain) or "connection refused" in text:
        return outcome(ErrorCategory.CONNECTION_REFUSED, "Connection refused - check Fusion URL and port", details=raw)
    if any(isinstance(e, ssl.SSLError) for e in chain) or "certificate" in text:
        return outcome(
            ErrorCategory.TRANSPORT_ERROR,
            "SSL certificate error - the server may have an invalid or expired certificate",
            details=raw,
        )
    return outcome(ErrorCategory.TRANSPORT_ERROR, f"Connection failed: {raw}", details=raw)


def classify(error: BaseException) -> ErrorOutcome:
    """Single entry point: any exception from a query run -> ErrorOutcome."""
    try:
        if isinstance(error, BindVariableError):
            return outcome(ErrorCategory.VALIDATION_ERROR, str(error))
        if isinstance(error, QueryCancelledError):
            return outcome(ErrorCategory.CANCELLED, str(error))
        if isinstance(error, RemoteHTTPError):
            return classify_response(error.status_code, error.body)
        if isinstance(error, SoapFaultError):
            return classify_fault_text(error.fault_text)
        if isinstance(error, EmptyReportError):
            return outcome(ErrorCategory.DECODE_ERROR, str(error))
        if isinstance(error, PayloadDecodeError):
            return outcome(ErrorCategory.DECODE_ERROR, str(error))
        if isinstance(error, httpx.TransportError):
            return classify_transport_error(error)
        return outcome(ErrorCategory.UNKNOWN, str(error) or type(error).__name__)
    except Exception:
        log.exception("Failed to classify %s", type(error).__name__)
        return outcome(ErrorCategory.UNKNOWN, "Unknown error occurred", details=type(error).__name__)
