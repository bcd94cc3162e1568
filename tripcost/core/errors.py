"""Domain error taxonomy and JSON error handlers.

Rate problems are absorbed by the aggregator. Services report missing records
as ``None``; routers turn that into ``NotFound`` (404). ``ConfirmationConflict``
maps to 409 and anything unexpected to 500.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette import status
import logging

logger = logging.getLogger("tripcost.errors")


class RateUnavailable(LookupError):
    """A currency pair could not be resolved from the current snapshot."""

    def __init__(self, from_currency: str, to_currency: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(f"no exchange rate for {from_currency}->{to_currency}")


class TransientNetworkFailure(Exception):
    """Rate quote request failed after all retries (timeout / connection / HTTP)."""


class NotFound(LookupError):
    pass


class ConfirmationConflict(Exception):
    """Raised by collaborator modules, e.g. confirming an overlapping stay."""


def http_error_handler(request: Request, exc):  # type: ignore
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        detail = f"No route for {request.method} {request.url.path}"
        error = "not_found"
    else:
        detail = exc.detail
        error = "not_found" if exc.status_code == 404 else "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": error, "detail": detail},
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic v2 places the raw exception under "ctx"; keep only its message
    out = []
    for err in exc.errors():
        err = dict(err)
        ctx = err.get("ctx")
        if ctx:
            err["ctx"] = {k: str(v) for k, v in ctx.items()}
        out.append(err)
    return out


def not_found_handler(request: Request, exc: NotFound):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "not_found", "detail": str(exc)},
    )


def confirmation_conflict_handler(request: Request, exc: ConfirmationConflict):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"error": "confirmation_conflict", "detail": str(exc)},
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred.",
        },
    )
