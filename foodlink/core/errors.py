# foodlink/core/errors.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FoodlinkError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FoodlinkError):
    """Malformed input or a failed business rule (capacity, schedule, hygiene)."""
    status_code = 400


class ForbiddenError(FoodlinkError):
    status_code = 403


class NotFoundError(FoodlinkError):
    status_code = 404


class ConflictError(FoodlinkError):
    """Entity state does not allow the requested transition (includes uniqueness)."""
    status_code = 409


class UnexpectedError(FoodlinkError):
    status_code = 500


def _describe(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(x) for x in err.get("loc", ()) if x != "body")
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FoodlinkError)
    async def _domain_error(request: Request, exc: FoodlinkError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse({"detail": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse({"detail": _describe(exc.errors())}, status_code=400)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.error(f"{request.method} {request.url.path} crashed", exc_info=exc)
        return JSONResponse({"detail": "Server error"}, status_code=500)


def parse_payload(model, data):
    """Validate ``data`` against a pydantic model, raising ValidationError on failure."""
    from pydantic import ValidationError as PydanticValidationError

    try:
        return model.model_validate(data or {})
    except PydanticValidationError as ex:
        raise ValidationError(_describe(ex.errors()))
