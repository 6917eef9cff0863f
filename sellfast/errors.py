# sellfast/errors.py
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger(__name__)


class SellFastError(HTTPException):
    """
    Base for every failure an operation reports to its caller.
    Subclasses pin the HTTP status; `extra` is merged into the JSON body.
    """
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None, **extra):
        super().__init__(status_code=type(self).status_code, detail=detail or self.default_detail)
        self.extra = extra

    @property
    def code(self) -> str:
        return type(self).__name__


class Unauthorized(SellFastError):
    status_code = 401
    default_detail = "Unauthorized"


class Forbidden(SellFastError):
    status_code = 403
    default_detail = "Forbidden"


class NotFound(SellFastError):
    status_code = 404
    default_detail = "Not found"


class Conflict(SellFastError):
    status_code = 409
    default_detail = "Already exists"


class BadRequest(SellFastError):
    status_code = 400
    default_detail = "Bad request"


class InvalidState(SellFastError):
    status_code = 400
    default_detail = "Invalid state"


class Expired(SellFastError):
    status_code = 400
    default_detail = "Expired"


class Internal(SellFastError):
    status_code = 500
    default_detail = "Internal server error"


def _json(status_code: int, data: dict) -> JSONResponse:
    return JSONResponse(jsonable_encoder(data), status_code=status_code, headers={"Cache-Control": "no-store"})


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SellFastError)
    async def _sellfast_error(request: Request, exc: SellFastError):
        body = {"error": exc.detail, "code": exc.code}
        body.update(exc.extra)
        return _json(exc.status_code, body)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return _json(exc.status_code, {"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(p) for p in first.get("loc", ()) if p != "body"]
        field = loc[-1] if loc else "general"
        return _json(400, {
            "error": f"Invalid value for {field}: {first.get('msg', 'invalid input')}",
            "code": "BadRequest",
            "field": field,
        })

    @app.exception_handler(SQLAlchemyError)
    async def _storage_error(request: Request, exc: SQLAlchemyError):
        log.exception("storage failure on %s %s", request.method, request.url.path)
        return _json(500, {"error": Internal.default_detail, "code": "Internal"})
