from __future__ import annotations

from typing import Any, Dict, List, Optional


UNAUTHORIZED = "UNAUTHORIZED"
BAD_REQUEST = "BAD_REQUEST"
VALIDATION_ERROR = "VALIDATION_ERROR"
UNKNOWN_TOOL = "UNKNOWN_TOOL"
EXECUTION_ERROR = "EXECUTION_ERROR"
NOT_FOUND = "NOT_FOUND"


class GatewayError(Exception):
    """
    Base error carrying a stable machine-readable code.

    Callers (usually an AI agent) branch on `code`; `message` is for humans.
    """

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class AuthError(GatewayError):
    """Raised by the auth gate; a single bad header fails the whole request."""


def not_found(message: str) -> Dict[str, Any]:
    """Domain-level miss, returned as normal tool output rather than an error."""
    return {"error": {"code": NOT_FOUND, "message": message}}
