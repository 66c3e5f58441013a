import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fusion_sql import executor, history, transport
from fusion_sql.config import settings
from fusion_sql.models import (
    ConnectionTestRequest,
    ConnectionTestResponse,
    ErrorCategory,
    ErrorOutcome,
    QueryFailure,
    QueryHistoryEntry,
    QueryRequest,
    QuerySuccess,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = history.get_store()
    log.info(
        "Fusion SQL service starting (report=%s, %d history entries)",
        settings.fusion.report_path,
        len(store),
    )

    yield

    # Shutdown
    await transport.close_client()


app = FastAPI(title="fusion-sql", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        parts.append(f"{field}: {msg}" if field else msg)
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    failure = QueryFailure(error=_validation_message(exc), category=ErrorCategory.VALIDATION_ERROR)
    return JSONResponse(status_code=400, content=failure.model_dump(mode="json", by_alias=True))


async def _watch_disconnect(request: Request, cancel: asyncio.Event) -> None:
    """Set ``cancel`` once the client goes away."""
    while not cancel.is_set():
        if await request.is_disconnected():
            log.info("Client disconnected, cancelling query")
            cancel.set()
            return
        await asyncio.sleep(0.5)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/run-query", response_model=QuerySuccess)
async def run_query(req: QueryRequest, request: Request):
    cancel = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))
    try:
        result = await executor.run_query(req, history=history.get_store(), cancel=cancel)
    finally:
        watcher.cancel()

    if isinstance(result, ErrorOutcome):
        failure = QueryFailure.from_outcome(result)
        return JSONResponse(
            status_code=result.http_status,
            content=failure.model_dump(mode="json", by_alias=True),
        )
    return result


@app.post("/test-connection", response_model=ConnectionTestResponse, response_model_exclude_none=True)
async def test_connection(req: ConnectionTestRequest):
    response, status = await executor.test_connection(req)
    if status != 200:
        return JSONResponse(
            status_code=status,
            content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
    return response


@app.get("/query-history/{username}", response_model=list[QueryHistoryEntry])
async def query_history(username: str, limit: int | None = None):
    return history.get_store().list_for_user(username, limit)
