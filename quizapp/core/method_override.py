from urllib.parse import parse_qs

OVERRIDABLE = ("GET", "POST")
ALLOWED = ("PUT", "PATCH", "DELETE")


class MethodOverrideMiddleware:
    """
    Lets HTML forms and links reach PUT/DELETE routes: a GET or POST request
    with `?_method=DELETE` is dispatched as a DELETE.
    """

    def __init__(self, app, param: str = "_method"):
        self.app = app
        self.param = param

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["method"] in OVERRIDABLE:
            query = parse_qs(scope.get("query_string", b"").decode("latin-1"))
            values = query.get(self.param)
            if values and values[0].upper() in ALLOWED:
                scope = dict(scope, method=values[0].upper())
        await self.app(scope, receive, send)
