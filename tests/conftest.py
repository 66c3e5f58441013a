"""Shared fixtures: canned BI Publisher responses and a stubbed HTTP client."""

import base64
from collections.abc import Callable
from xml.sax.saxutils import escape

import httpx
import pytest

from fusion_sql import history, transport
from fusion_sql.history import HistoryStore

TARGET_URL = "https://fa-test.oraclecloud.com"
SOAP12_NS = "http://www.w3.org/2003/05/soap-envelope"
SOAP11_NS = "http://schemas.xmlsoap.org/soap/envelope/"
PUB_NS = "http://xmlns.oracle.com/oxp/service/PublicReportService"


def report_response(inner_xml: str, prefix: str = "env", response_prefix: str = "ns2") -> str:
    """A runReport response whose reportBytes is base64 of ``inner_xml``."""
    encoded = base64.b64encode(inner_xml.encode("utf-8")).decode("ascii")
    p = f"{response_prefix}:" if response_prefix else ""
    ns_decl = f'xmlns:{response_prefix}="{PUB_NS}"' if response_prefix else f'xmlns="{PUB_NS}"'
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<{prefix}:Envelope xmlns:{prefix}="{SOAP12_NS}">'
        f"<{prefix}:Header/>"
        f"<{prefix}:Body>"
        f"<{p}runReportResponse {ns_decl}>"
        f"<{p}runReportReturn>"
        f"<{p}reportBytes>{encoded}</{p}reportBytes>"
        f"<{p}reportContentType>text/xml</{p}reportContentType>"
        f"</{p}runReportReturn>"
        f"</{p}runReportResponse>"
        f"</{prefix}:Body>"
        f"</{prefix}:Envelope>"
    )


def soap12_fault(text: str, prefix: str = "env") -> str:
    return (
        f'<{prefix}:Envelope xmlns:{prefix}="{SOAP12_NS}"><{prefix}:Body><{prefix}:Fault>'
        f"<{prefix}:Code><{prefix}:Value>{prefix}:Receiver</{prefix}:Value></{prefix}:Code>"
        f'<{prefix}:Reason><{prefix}:Text xml:lang="en">{escape(text)}</{prefix}:Text></{prefix}:Reason>'
        f"</{prefix}:Fault></{prefix}:Body></{prefix}:Envelope>"
    )


def soap11_fault(text: str) -> str:
    return (
        f'<soapenv:Envelope xmlns:soapenv="{SOAP11_NS}"><soapenv:Body><soapenv:Fault>'
        "<faultcode>soapenv:Server</faultcode>"
        f"<faultstring>{escape(text)}</faultstring>"
        "</soapenv:Fault></soapenv:Body></soapenv:Envelope>"
    )


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def target_url() -> str:
    return TARGET_URL


@pytest.fixture
def build_report() -> Callable[..., str]:
    return report_response


@pytest.fixture
def build_fault() -> Callable[..., str]:
    def _build(text: str, version: str = "1.2") -> str:
        return soap11_fault(text) if version == "1.1" else soap12_fault(text)

    return _build


@pytest.fixture
def stub_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    return make_client


@pytest.fixture
def store() -> HistoryStore:
    return HistoryStore()


@pytest.fixture(autouse=True)
def _isolate_globals():
    """Keep the shared HTTP client and history store per-test."""
    yield
    transport.set_client(None)
    history.set_store(None)
