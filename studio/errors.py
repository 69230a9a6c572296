"""Error kinds reported by the image import pipeline.

Pipeline stages return a ``PipelineError`` value instead of raising; the
route maps it to an HTTP status and a JSON envelope.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ErrorKind(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    PERMISSION_DENIED = "permission-denied"
    INVALID_ARGUMENT = "invalid-argument"
    FAILED_PRECONDITION = "failed-precondition"
    INTERNAL = "internal"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.FAILED_PRECONDITION: 400,
    ErrorKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class PipelineError:
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict:
        return {"success": False, "error": {"kind": self.kind.value, "message": self.message}}


def unauthenticated(message: str) -> PipelineError:
    return PipelineError(ErrorKind.UNAUTHENTICATED, message)


def permission_denied(message: str) -> PipelineError:
    return PipelineError(ErrorKind.PERMISSION_DENIED, message)


def invalid_argument(message: str) -> PipelineError:
    return PipelineError(ErrorKind.INVALID_ARGUMENT, message)


def failed_precondition(message: str) -> PipelineError:
    return PipelineError(ErrorKind.FAILED_PRECONDITION, message)


def internal(message: str) -> PipelineError:
    return PipelineError(ErrorKind.INTERNAL, message)


def error_body(kind: str, message: str) -> dict:
    """JSON envelope for errors raised outside the pipeline (404, 429, ...)."""
    return {"success": False, "error": {"kind": kind, "message": message}}
