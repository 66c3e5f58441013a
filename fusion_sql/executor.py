"""Run SQL against Fusion: resolve binds, send one runReport call, decode.

Every failure ends as an ErrorOutcome from :mod:`fusion_sql.faults`; only
``asyncio.CancelledError`` from the surrounding task is allowed through.
"""

import asyncio
import logging
import time

import httpx

from fusion_sql import faults, transport
from fusion_sql.binds import missing_bind_variables, resolve_bind_variables
from fusion_sql.config import settings
from fusion_sql.decoder import decode_response
from fusion_sql.envelope import build_envelope, clean_sql
from fusion_sql.errors import BindVariableError, QueryCancelledError, RemoteHTTPError
from fusion_sql.history import HistoryStore
from fusion_sql.models import (
    ConnectionTestRequest,
    ConnectionTestResponse,
    ErrorCategory,
    ErrorOutcome,
    QueryHistoryEntry,
    QueryRequest,
    QuerySuccess,
    RawResponse,
)

log = logging.getLogger(__name__)

PROBE_FAILURE_HINT = (
    "The BI Publisher report returned an error. This could mean: "
    "1) The report doesn't exist at the specified path, "
    "2) Missing required parameters, or "
    "3) Database connection issues. Error: {detail}"
)


async def _send(
    req: ConnectionTestRequest,
    envelope: str,
    timeout_s: float,
    client: httpx.AsyncClient | None,
    cancel: asyncio.Event | None,
) -> RawResponse:
    """Single transport call, abandoned if ``cancel`` fires first."""
    call = transport.post_envelope(
        req.target_url, req.username, req.password, envelope, timeout_s, client=client
    )
    if cancel is None:
        return await call
    if cancel.is_set():
        call.close()
        raise QueryCancelledError()

    send_task = asyncio.ensure_future(call)
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({send_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (send_task, cancel_task):
            if not task.done():
                task.cancel()
    if send_task in done:
        return send_task.result()
    log.info("Query cancelled by caller before the response arrived")
    raise QueryCancelledError()


def _record(history: HistoryStore | None, entry: QueryHistoryEntry) -> None:
    if history is None:
        return
    try:
        history.add(entry)
    except Exception:
        # a successful query stays successful even if history can't be written
        log.warning("Failed to record query history", exc_info=True)


async def run_query(
    req: QueryRequest,
    *,
    history: HistoryStore | None = None,
    client: httpx.AsyncClient | None = None,
    cancel: asyncio.Event | None = None,
) -> QuerySuccess | ErrorOutcome:
    """Execute ``req.sql`` through the RunSQL report and return rows or an error."""
    t0 = time.monotonic()
    try:
        missing = missing_bind_variables(req.sql, req.bind_variables)
        if missing:
            raise BindVariableError(missing)
        sql = clean_sql(resolve_bind_variables(req.sql, req.bind_variables))
        log.info("Running query (%d rows max): %s", req.row_limit, sql[:200])

        envelope = build_envelope(sql, req.row_limit)
        raw = await _send(req, envelope, settings.fusion.query_timeout_s, client, cancel)
        if not raw.ok or faults.is_maintenance_page(raw.body):
            raise RemoteHTTPError(raw.status_code, raw.body)
        report = decode_response(raw.body)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        result = faults.classify(exc)
        log.warning("Query failed [%s]: %s", result.category.value, result.message.splitlines()[0])
        return result

    _record(
        history,
        QueryHistoryEntry(
            sql=clean_sql(req.sql),
            target_url=req.target_url,
            username=req.username,
            results=report.results,
        ),
    )
    columns = report.table.columns if report.table is not None else []
    row_count = len(report.table.rows) if report.table is not None else 0
    elapsed = round(time.monotonic() - t0, 2)
    log.info("Query returned %d row(s) as %s in %.2fs", row_count, report.shape, elapsed)
    return QuerySuccess(
        results=report.results,
        columns=columns,
        row_count=row_count,
        shape=report.shape,
        raw_xml=raw.body,
        execution_time=elapsed,
    )


async def test_connection(
    req: ConnectionTestRequest,
    *,
    client: httpx.AsyncClient | None = None,
) -> tuple[ConnectionTestResponse, int]:
    """Probe the service with a one-row query. Returns (response, http status)."""
    envelope = build_envelope(settings.fusion.probe_sql, 1)
    log.info("Testing connection to: %s", transport.service_url(req.target_url))
    try:
        raw = await transport.post_envelope(
            req.target_url,
            req.username,
            req.password,
            envelope,
            settings.fusion.probe_timeout_s,
            client=client,
        )
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        result = faults.classify(exc)
        log.warning("Connection test failed [%s]: %s", result.category.value, result.details)
        return _probe_failure(result), result.http_status

    if raw.ok and not faults.is_maintenance_page(raw.body):
        return ConnectionTestResponse(
            success=True,
            message="Connection successful - Oracle Fusion Cloud BI Publisher is accessible",
        ), 200

    result = faults.classify_response(raw.status_code, raw.body)
    if raw.status_code >= 500 and result.category in (
        ErrorCategory.SQL_ERROR,
        ErrorCategory.SOAP_FAULT,
        ErrorCategory.HTTP_ERROR,
    ):
        result = result.model_copy(update={
            "message": "Report execution failed",
            "details": PROBE_FAILURE_HINT.format(detail=result.message),
        })
    log.warning("Connection test failed [%s] with HTTP %d", result.category.value, raw.status_code)
    return _probe_failure(result), result.http_status


def _probe_failure(result: ErrorOutcome) -> ConnectionTestResponse:
    return ConnectionTestResponse(
        success=False,
        error=result.message,
        details=result.details,
        category=result.category,
    )
