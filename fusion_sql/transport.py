import logging

import httpx

from fusion_sql.config import settings
from fusion_sql.models import RawResponse

log = logging.getLogger(__name__)

_client: httpx.AsyncClient | None = None

SOAP_HEADERS = {
    "Content-Type": "application/soap+xml; charset=utf-8",
    "SOAPAction": "",
}


def get_client() -> httpx.AsyncClient:
    """Return the shared client, creating it on first use."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(verify=settings.fusion.verify_tls)
    return _client


def set_client(client: httpx.AsyncClient | None) -> None:
    """Replace the shared client (used to point the service at a stub)."""
    global _client
    _client = client


async def close_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        log.info("HTTP client closed")


def service_url(target_url: str) -> str:
    return target_url.rstrip("/") + settings.fusion.service_path


async def post_envelope(
    target_url: str,
    username: str,
    password: str,
    envelope: str,
    timeout_s: float,
    client: httpx.AsyncClient | None = None,
) -> RawResponse:
    """POST a SOAP envelope with Basic auth and return status and body.

    Non-2xx responses are returned, not raised: probes need the status to
    diagnose, and the executor classifies the rest. Network failures raise
    ``httpx.TransportError`` subclasses. There is no retry; a report run is
    not safe to repeat blindly.
    """
    url = service_url(target_url)
    http = client or get_client()
    log.info("POST %s (timeout=%ss, user=%s)", url, timeout_s, username)
    resp = await http.post(
        url,
        content=envelope.encode("utf-8"),
        headers=SOAP_HEADERS,
        auth=httpx.BasicAuth(username, password),
        timeout=httpx.Timeout(timeout_s),
    )
    log.info("Response status: %d (%d bytes)", resp.status_code, len(resp.content))
    return RawResponse(status_code=resp.status_code, body=resp.text)
