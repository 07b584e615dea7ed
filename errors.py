import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ValidationFailed(HTTPException):
    def __init__(self, message: str = "Invalid request"):
        super().__init__(status_code=400, detail=message)


class InvalidState(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=400, detail=message)


class Unauthenticated(HTTPException):
    def __init__(self, message: str = "Not authorized to access this route"):
        super().__init__(status_code=401, detail=message)


class Forbidden(HTTPException):
    def __init__(self, message: str = "Not authorized to access this route"):
        super().__init__(status_code=403, detail=message)


class NotFound(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=404, detail=message)


def error_body(message: str) -> dict:
    return {"success": False, "message": message}


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)), headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "invalid"))
    return JSONResponse(status_code=400, content=error_body("; ".join(parts) or "Invalid request"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body(str(exc) or exc.__class__.__name__))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
