"""
Route <-> address-bar path mapping.

A route is a plain value, so replaying a history entry or a pasted URL
never depends on in-memory snapshots: the navigator re-derives the
state from the path and re-fetches what it needs.

    /                               home
    /<type>                         type-list
    /<type>/<category>              category-channels
    /series/<category>/<series>     series-episodes
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

from ..catalog_store import normalize_type
from ..errors import UnknownType

HOME = "home"
TYPE_LIST = "type-list"
CATEGORY_CHANNELS = "category-channels"
SERIES_EPISODES = "series-episodes"


@dataclass(frozen=True)
class Route:
    name: str = HOME
    type: Optional[str] = None
    category: Optional[str] = None
    series: Optional[str] = None

    @property
    def is_home(self) -> bool:
        return self.name == HOME

    def parent(self) -> "Route":
        if self.name == SERIES_EPISODES:
            return Route(CATEGORY_CHANNELS, self.type, self.category)
        if self.name == CATEGORY_CHANNELS:
            return Route(TYPE_LIST, self.type)
        return Route()


def format_path(route: Route) -> str:
    def seg(s: str) -> str:
        return quote(s, safe="")

    if route.name == TYPE_LIST:
        return f"/{route.type}"
    if route.name == CATEGORY_CHANNELS:
        return f"/{route.type}/{seg(route.category)}"
    if route.name == SERIES_EPISODES:
        return f"/{route.type}/{seg(route.category)}/{seg(route.series)}"
    return "/"


def parse_path(path: str) -> Route:
    raw = urlsplit(path or "/").path
    parts = [unquote(p) for p in raw.strip("/").split("/")] if raw.strip("/") else []

    if not parts or any(not p.strip() for p in parts) or len(parts) > 3:
        return Route()
    try:
        type_name = normalize_type(parts[0])
    except UnknownType:
        return Route()

    if len(parts) == 1:
        return Route(TYPE_LIST, type_name)
    if len(parts) == 2:
        return Route(CATEGORY_CHANNELS, type_name, parts[1])
    if type_name != "series":
        return Route()
    return Route(SERIES_EPISODES, type_name, parts[1], parts[2])
