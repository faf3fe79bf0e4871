import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..random_play import RandomPlayConflict
from .auth import LoginRequired
from .config import DEBUG
from .sessions import flash
from .templates import render

logger = logging.getLogger(__name__)

MESSAGES = {
    401: "Authentication required",
    403: "Forbidden",
    404: "Not Found",
    406: "Not Acceptable",
    409: "Conflict",
    415: "Unsupported Media Type",
    422: "Invalid request parameters",
    500: "Internal Server Error",
}


def is_api(request: Request):
    return request.url.path.startswith("/api/") or request.url.path == "/api"


def error_response(request: Request, status_code: int, message: str):
    if is_api(request):
        return JSONResponse(status_code=status_code, content={"error": message})
    return render(request, "error.html", {
        "status_code": status_code,
        "message": message,
    }, status_code=status_code)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else MESSAGES.get(exc.status_code, "Error")
    if exc.status_code == 404 and is_api(request) and exc.detail == "Not Found":
        message = "API route not found"
    return error_response(request, exc.status_code, message)


async def login_required_handler(request: Request, exc: LoginRequired):
    flash(request, "Login required: log in and retry.", "info")
    return RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()]
    logger.info("Invalid request to %s: %s", request.url.path, fields)
    message = MESSAGES[422]
    if any(fields):
        message += ": " + ", ".join(field for field in fields if field)
    return error_response(request, 422, message)


async def random_play_conflict_handler(request: Request, exc: RandomPlayConflict):
    return error_response(request, status.HTTP_409_CONFLICT, str(exc))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if DEBUG else MESSAGES[500]
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, message)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(LoginRequired, login_required_handler)
    app.add_exception_handler(RandomPlayConflict, random_play_conflict_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
