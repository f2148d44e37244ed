from __future__ import annotations

import enum
from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ErrorKind(enum.Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    VALIDATION = "validation"
    CONCURRENCY_CONFLICT = "concurrency_conflict"


class DomainError(Exception):
    """Recoverable business-rule failure, rendered to the caller as-is."""

    kind: ErrorKind
    status_code: int = 400

    def __init__(self, message: str, **meta: Any) -> None:
        self.message = message
        self.meta = meta
        super().__init__(message)


class NotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} not found", entity=entity, id=str(entity_id))


class InvalidStateTransitionError(DomainError):
    kind = ErrorKind.INVALID_STATE_TRANSITION
    status_code = 409


class InvalidInputError(DomainError):
    kind = ErrorKind.VALIDATION
    status_code = 422


class ConcurrencyConflictError(DomainError):
    kind = ErrorKind.CONCURRENCY_CONFLICT
    status_code = 409


async def _domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = cast(DomainError, exc)
    content: dict[str, Any] = {"kind": error.kind.value, "detail": error.message}
    if error.meta:
        content["meta"] = error.meta
    if isinstance(error, ConcurrencyConflictError):
        content["retryable"] = True
    return JSONResponse(status_code=error.status_code, content=content)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _domain_error_handler)
