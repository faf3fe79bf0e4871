import math

from starlette.datastructures import URL


class Page:
    """Offset pagination over `count` items, pages numbered from 1."""

    def __init__(self, count: int, per_page: int, pageno: int):
        self.count = count
        self.per_page = per_page
        self.pageno = max(pageno or 1, 1)

    @property
    def total_pages(self):
        return max(math.ceil(self.count / self.per_page), 1)

    @property
    def offset(self):
        return self.per_page * (self.pageno - 1)

    @property
    def has_next(self):
        return self.pageno < self.total_pages

    @property
    def has_previous(self):
        return self.pageno > 1

    def pages(self, window: int = 2):
        first = max(self.pageno - window, 1)
        last = min(self.pageno + window, self.total_pages)
        return list(range(first, last + 1))


def add_pageno_to_url(url, pageno: int) -> str:
    return str(URL(str(url)).include_query_params(pageno=pageno))


def parse_pageno(value) -> int:
    """Page number from a query string value. Anything that is not a number is page 1."""
    try:
        return max(int(value), 1)
    except (TypeError, ValueError):
        return 1
