"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module traduit les erreurs du domaine (thèmes natals) et les erreurs HTTP/validation en une
enveloppe unique `{code, message, trace_id, details}`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from natal_backend.core.http_constants import (
    HTTP_BAD_GATEWAY,
    HTTP_BAD_REQUEST,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_SERVICE_UNAVAILABLE,
    HTTP_UNPROCESSABLE_ENTITY,
)
from natal_backend.domain.errors import (
    ConfigurationError,
    MappingError,
    MissingCoordinateError,
    NatalChartError,
    PersistenceError,
    ProviderUnavailableError,
)

log = structlog.get_logger(__name__)


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


class ErrorCodes:
    """Standard error codes for the API."""

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    BAD_GATEWAY = "BAD_GATEWAY"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Erreurs métier
    UNSUPPORTED_SETTING = "UNSUPPORTED_SETTING"
    MISSING_COORDINATE = "MISSING_COORDINATE"
    PROVIDER_RESPONSE_INVALID = "PROVIDER_RESPONSE_INVALID"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"


_HTTP_CODES = {
    400: ErrorCodes.BAD_REQUEST,
    404: ErrorCodes.NOT_FOUND,
    422: ErrorCodes.VALIDATION_ERROR,
    500: ErrorCodes.INTERNAL_ERROR,
    502: ErrorCodes.BAD_GATEWAY,
    503: ErrorCodes.SERVICE_UNAVAILABLE,
}


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    envelope = ErrorEnvelope(code=code, message=message, trace_id=trace_id, details=details)
    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": envelope.details} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Trace ID: en-tête `X-Trace-ID`, sinon identifiant posé par `RequestIDMiddleware`."""
    trace_id = request.headers.get("X-Trace-ID")
    if trace_id:
        return trace_id
    return getattr(request.state, "request_id", None)


def _domain_status(exc: NatalChartError) -> tuple[int, str, dict[str, Any] | None]:
    if isinstance(exc, ConfigurationError):
        return HTTP_BAD_REQUEST, ErrorCodes.UNSUPPORTED_SETTING, {"setting": exc.setting}
    if isinstance(exc, MissingCoordinateError):
        return (
            HTTP_UNPROCESSABLE_ENTITY,
            ErrorCodes.MISSING_COORDINATE,
            {"provider": exc.provider},
        )
    if isinstance(exc, MappingError):
        return HTTP_BAD_GATEWAY, ErrorCodes.PROVIDER_RESPONSE_INVALID, {"field": exc.field}
    if isinstance(exc, ProviderUnavailableError):
        return HTTP_SERVICE_UNAVAILABLE, ErrorCodes.PROVIDER_UNAVAILABLE, {"provider": exc.provider}
    if isinstance(exc, PersistenceError):
        return HTTP_INTERNAL_SERVER_ERROR, ErrorCodes.PERSISTENCE_ERROR, None
    return HTTP_INTERNAL_SERVER_ERROR, ErrorCodes.INTERNAL_ERROR, None


def handle_domain_error(request: Request, exc: NatalChartError) -> JSONResponse:
    """Traduit une erreur du domaine en réponse HTTP enveloppée."""
    trace_id = extract_trace_id(request)
    status_code, code, details = _domain_status(exc)
    log.error(
        "api_domain_error",
        code=code,
        status_code=status_code,
        error_message=str(exc),
        trace_id=trace_id,
    )
    return create_error_response(status_code, code, str(exc), trace_id, details)


def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with standard envelope."""
    trace_id = extract_trace_id(request)
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    log.warning("api_http_error", code=code, status_code=exc.status_code, trace_id=trace_id)
    return create_error_response(exc.status_code, code, str(exc.detail), trace_id)


def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Erreur de validation de la requête (422) avec la liste des champs fautifs."""
    trace_id = extract_trace_id(request)
    fields = [".".join(str(p) for p in e.get("loc", ())) for e in exc.errors()]
    log.info("api_validation_error", fields=fields, trace_id=trace_id)
    return create_error_response(
        HTTP_UNPROCESSABLE_ENTITY,
        ErrorCodes.VALIDATION_ERROR,
        "request validation failed",
        trace_id,
        {"fields": fields},
    )


def install_error_handlers(app: FastAPI) -> None:
    """Enregistre les gestionnaires d'erreurs sur l'application."""
    app.add_exception_handler(NatalChartError, handle_domain_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
