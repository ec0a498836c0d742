"""
Shareable locations: route path plus page query parameters.

A location looks like a web URL path, e.g.
``/paymaster/0xabc?network=polygon&pageNo=2&pageSize=25``. The path selects
the view (and the subject address for detail pages); the query carries the
page state. Reopening a location reproduces the same network, page number and
page size.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qsl, quote, unquote, urlencode, urlsplit

from .model import PageState

NETWORK_PARAM = "network"
PAGE_NO_PARAM = "pageNo"
PAGE_SIZE_PARAM = "pageSize"

LIST_ROUTES = {
    "": "home",
    "recentBundles": "bundles",
    "recentUserOps": "userOps",
    "bundlers": "bundlers",
    "paymasters": "paymasters",
}
DETAIL_ROUTES = ("paymaster", "bundler", "address")


@dataclass(frozen=True)
class Route:
    view: str
    subject: Optional[str] = None

    @property
    def is_detail(self) -> bool:
        return self.view in DETAIL_ROUTES


@dataclass(frozen=True)
class Location:
    path: str = "/"
    query: Tuple[Tuple[str, str], ...] = ()

    @property
    def params(self) -> Dict[str, str]:
        return dict(self.query)

    def with_params(self, **updates: str) -> "Location":
        """Copy with some query parameters replaced; other parameters keep their order."""
        remaining = dict(updates)
        query = []
        for key, value in self.query:
            if key in remaining:
                query.append((key, str(remaining.pop(key))))
            else:
                query.append((key, value))
        query.extend((k, str(v)) for k, v in remaining.items())
        return Location(self.path, tuple(query))

    @property
    def route(self) -> Route:
        return parse_route(self.path)

    def __str__(self) -> str:
        if not self.query:
            return self.path
        return f"{self.path}?{urlencode(self.query)}"


def parse_location(text: str) -> Location:
    parts = urlsplit(text.strip() or "/")
    path = parts.path or "/"
    if not path.startswith("/"):
        path = "/" + path
    return Location(path, tuple(parse_qsl(parts.query, keep_blank_values=True)))


def parse_route(path: str) -> Route:
    segments = [unquote(s) for s in path.strip("/").split("/") if s]
    if not segments:
        return Route("home")
    if len(segments) == 1 and segments[0] in LIST_ROUTES:
        return Route(LIST_ROUTES[segments[0]])
    if len(segments) == 2 and segments[0] in DETAIL_ROUTES:
        return Route(segments[0], segments[1])
    raise ValueError(f"Unknown route: {path}")


def detail_path(view: str, subject: str) -> str:
    if view not in DETAIL_ROUTES:
        raise ValueError(f"Not a detail view: {view}")
    return f"/{view}/{quote(subject)}"


def list_path(view: str) -> str:
    for segment, name in LIST_ROUTES.items():
        if name == view:
            return f"/{segment}"
    raise ValueError(f"Not a list view: {view}")


def encode_page_params(state: PageState) -> Dict[str, str]:
    return {
        NETWORK_PARAM: state.network,
        PAGE_NO_PARAM: str(state.page_no),
        PAGE_SIZE_PARAM: str(state.page_size),
    }


def decode_page_params(location: Location) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Raw (network, pageNo, pageSize) strings; validation is the controller's job."""
    params = location.params
    return (
        params.get(NETWORK_PARAM) or None,
        params.get(PAGE_NO_PARAM),
        params.get(PAGE_SIZE_PARAM),
    )
