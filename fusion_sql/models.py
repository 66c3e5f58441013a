import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from fusion_sql.config import settings


class _CamelModel(BaseModel):
    """Snake_case attributes, camelCase JSON; either name accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _clean_target_url(value: str) -> str:
    value = value.strip().rstrip("/")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid Fusion URL format. Please include https:// and the complete URL")
    return value


def _require_text(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be empty")
    return value


# ── Requests ──


class ConnectionTestRequest(_CamelModel):
    target_url: str
    username: str
    password: str

    @field_validator("target_url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        return _clean_target_url(v)

    @field_validator("username", "password")
    @classmethod
    def _check_credentials(cls, v: str) -> str:
        return _require_text(v)


class QueryRequest(ConnectionTestRequest):
    sql: str
    row_limit: int = Field(default_factory=lambda: settings.fusion.default_rows)
    bind_variables: dict[str, str] | None = None

    @field_validator("sql")
    @classmethod
    def _check_sql(cls, v: str) -> str:
        if not v.strip().rstrip(";").strip():
            raise ValueError("SQL query is required")
        return v

    @field_validator("row_limit")
    @classmethod
    def _clamp_rows(cls, v: int) -> int:
        return max(1, min(v, settings.fusion.max_rows))


# ── Pipeline values ──


class RawResponse(BaseModel):
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ResultTable(BaseModel):
    rows: list[dict[str, str | None]] = []
    columns: list[str] = []


class DecodedReport(BaseModel):
    shape: str
    table: ResultTable | None = None  # None only when the payload could not be tabularized
    raw: Any = None

    @property
    def results(self) -> Any:
        return self.table.rows if self.table is not None else self.raw


class ErrorCategory(str, Enum):
    VALIDATION_ERROR = "validation_error"
    HOST_UNREACHABLE = "host_unreachable"
    CONNECTION_REFUSED = "connection_refused"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"
    AUTH_FAILED = "auth_failed"
    NOT_FOUND = "not_found"
    HTTP_ERROR = "http_error"
    MAINTENANCE_MODE = "maintenance_mode"
    SOAP_FAULT = "soap_fault"
    SQL_ERROR = "sql_error"
    DECODE_ERROR = "decode_error"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class ErrorOutcome(BaseModel):
    category: ErrorCategory
    message: str
    http_status: int
    is_maintenance_mode: bool = False
    details: str | None = None


class QueryHistoryEntry(_CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sql: str
    target_url: str
    username: str
    executed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    results: Any = None


# ── Responses ──


class QuerySuccess(_CamelModel):
    success: bool = True
    results: Any = None
    columns: list[str] = []
    row_count: int = 0
    shape: str = ""
    raw_xml: str = ""
    execution_time: float = 0.0


class QueryFailure(_CamelModel):
    success: bool = False
    error: str
    category: ErrorCategory
    details: str | None = None
    is_maintenance_mode: bool = False

    @classmethod
    def from_outcome(cls, outcome: ErrorOutcome) -> "QueryFailure":
        return cls(
            error=outcome.message,
            category=outcome.category,
            details=outcome.details,
            is_maintenance_mode=outcome.is_maintenance_mode,
        )


class ConnectionTestResponse(_CamelModel):
    success: bool
    message: str | None = None
    error: str | None = None
    details: str | None = None
    category: ErrorCategory | None = None
