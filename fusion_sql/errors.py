"""Exceptions raised inside the query pipeline.

None of these reach an HTTP caller directly: the executor hands every one of
them to :mod:`fusion_sql.faults`, which turns it into an ``ErrorOutcome``.
"""


class FusionError(Exception):
    """Base class for errors raised while running a query against Fusion."""


class BindVariableError(FusionError):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__("Missing values for bind variables: " + ", ".join(f":{m}" for m in missing))


class SoapFaultError(FusionError):
    """The service answered with a SOAP fault instead of report bytes."""

    def __init__(self, fault_text: str):
        self.fault_text = fault_text
        super().__init__(fault_text or "SOAP Fault occurred")


class EmptyReportError(FusionError):
    def __init__(self, message: str = "No report data found in response - Query may have returned empty results"):
        super().__init__(message)


class PayloadDecodeError(FusionError):
    """Report bytes were present but could not be decoded or parsed."""


class RemoteHTTPError(FusionError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code} - Server returned an error")


class QueryCancelledError(FusionError):
    def __init__(self, message: str = "Query cancelled."):
        super().__init__(message)
