from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    UNSUPPORTED_SITE_TYPE = "UNSUPPORTED_SITE_TYPE"
    NOT_FOUND = "NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"


class SiteMirrorError(Exception):
    """Raised for all expected failure conditions.

    Per-URL and per-endpoint failures are caught inside the orchestrator and
    the sitemap resolver and downgraded to a status or an empty result. Only
    tool handlers and sitemap resolution (for unsupported site types) let it
    reach their caller; server.py serialises it into the MCP error response.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
