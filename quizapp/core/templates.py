import os

from fastapi import Request
from fastapi.templating import Jinja2Templates

from quizapp.core.csrf import get_csrf_token
from quizapp.core.sessions import get_flashed_messages

PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def resource_path(relative_path):
    """ Get absolute path to a resource shipped inside the quizapp package """
    return os.path.join(PACKAGE_DIR, relative_path)


# Initialize Templates
templates = Jinja2Templates(directory=resource_path("templates"))

# Inject CSRF token function into templates
def csrf_token_func(request: Request):
    return get_csrf_token(request)

templates.env.globals['csrf_token'] = csrf_token_func
templates.env.globals['get_flashed_messages'] = get_flashed_messages


def render(request: Request, name: str, context: dict = None, status_code: int = 200):
    """Render a page with the logged in user and the request url available."""
    session = request.scope.get("session") or {}
    ctx = {
        "login_user": session.get("login_user"),
        "url": request.url.path,
    }
    ctx.update(context or {})
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)
