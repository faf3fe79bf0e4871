from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from fastapi import Request as FastAPIRequest, HTTPException
import secrets

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "x-csrf-token"
FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def validate_csrf(request: FastAPIRequest):
    if request.method in ("GET", "HEAD", "OPTIONS"):
        return

    cookie_token = request.cookies.get(CSRF_COOKIE)
    header_token = request.headers.get(CSRF_HEADER)

    # Check form data if header is missing
    if not header_token and request.headers.get("content-type", "").startswith(FORM_TYPES):
        form = await request.form()
        header_token = form.get("csrf_token")

    if not cookie_token or not header_token or not secrets.compare_digest(cookie_token, str(header_token)):
        raise HTTPException(
            status_code=403,
            detail="CSRF validation failed. Reload the page and retry."
        )


def get_csrf_token(request: FastAPIRequest):
    # Templates render before the middleware sees the response, so a token
    # generated here is stashed in request.state for the middleware to persist.
    token = request.cookies.get(CSRF_COOKIE)
    if not token:
        if not hasattr(request.state, "csrf_token"):
            request.state.csrf_token = secrets.token_hex(32)
        return request.state.csrf_token
    return token


class CSRFMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        if hasattr(request.state, "csrf_token"):
            response.set_cookie(CSRF_COOKIE, request.state.csrf_token, httponly=False, samesite="lax")
        elif request.method == "GET" and CSRF_COOKIE not in request.cookies:
            response.set_cookie(CSRF_COOKIE, secrets.token_hex(32), httponly=False, samesite="lax")

        return response
