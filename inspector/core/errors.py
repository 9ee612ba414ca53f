"""
Error taxonomy for the inspector.

Fetch, parse and extraction errors never abort a resolution: they are recorded
on the Configuration as ConfigError entries. Only InspectionError subclasses
reach the caller.
"""


class InspectorError(Exception):
    """Base class for all inspector errors."""

    kind: str = "error"

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.message = message
        self.source = source


class FetchError(InspectorError):
    """Network failure, non-2xx status or malformed body from a source."""

    kind = "fetch"

    def __init__(self, reason: str, source: str = "", status_code: int | None = None):
        super().__init__(reason, source)
        self.reason = reason
        self.status_code = status_code


class UnauthorizedError(FetchError):
    """The REST API rejected the credential (401/403)."""

    kind = "unauthorized"


class FetchTimeoutError(FetchError):
    kind = "timeout"


class ParseError(InspectorError):
    """A structured payload could not be parsed."""

    kind = "parse"


class ExtractionError(InspectorError):
    """A single namespace or extraction strategy failed."""

    kind = "extraction"


class InspectionError(InspectorError):
    """Top-level failure of an inspection request."""

    kind = "inspection"


class InvalidTargetError(InspectionError):
    """Target URL is malformed or uses a protocol that is not allowed."""

    kind = "invalid_target"


class PageFetchError(InspectionError):
    """The page could not be rendered."""

    kind = "page_fetch"
