from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..catalog_store import normalize_type
from ..errors import UnknownType
from ..m3u_core import ChannelRecord
from .api import ApiError
from .renderer import PAGE_SIZE, IncrementalRenderer, NearEndTrigger, Progress
from .routes import CATEGORY_CHANNELS, HOME, SERIES_EPISODES, TYPE_LIST, Route, format_path, parse_path
from .search import FilterResult, filter_groups, filter_items
from .series import SeriesGroup, group_series

logger = logging.getLogger(__name__)

ALL_CATEGORY = "ALL"
PLAYBACK_ERROR = "Error playing the stream. Try another channel."


class View:
    """Rendering seam. Every hook is a no-op; concrete views override what they draw."""

    def show_loading(self, message: str) -> None: ...
    def hide_loading(self) -> None: ...
    def toast(self, message: str, level: str = "info") -> None: ...
    def show_home(self, grouped: Optional[dict]) -> None: ...
    def show_categories(self, type_name: str, group: dict) -> None: ...
    def set_selection(self, category: Optional[str]) -> None: ...
    def clear_items(self) -> None: ...
    def append_items(self, items: list) -> None: ...
    def show_sentinel(self, progress: Optional[Progress]) -> None: ...
    def show_count(self, text: str) -> None: ...
    def show_series(self, group: SeriesGroup) -> None: ...
    def show_player(self, item: ChannelRecord) -> None: ...
    def hide_player(self) -> None: ...


class Player:
    """Opaque streaming player: takes a URL, is torn down with destroy()."""

    def load(self, url: str) -> None: ...
    def destroy(self) -> None: ...


class MemoryHistory:
    """Address-bar stand-in with push/replace and back/forward."""

    def __init__(self, initial: str = "/"):
        self.entries: List[str] = [initial]
        self.index = 0

    @property
    def current(self) -> str:
        return self.entries[self.index]

    def push(self, path: str) -> None:
        if path == self.current:
            return
        del self.entries[self.index + 1:]
        self.entries.append(path)
        self.index += 1

    def replace(self, path: str) -> None:
        self.entries[self.index] = path

    def back(self) -> Optional[str]:
        if self.index == 0:
            return None
        self.index -= 1
        return self.current

    def forward(self) -> Optional[str]:
        if self.index >= len(self.entries) - 1:
            return None
        self.index += 1
        return self.current


@dataclass
class NavigationSession:
    route: Route = field(default_factory=Route)
    category_type: Optional[str] = None
    category: Optional[str] = None
    type_group: Optional[dict] = None
    all_items: List[ChannelRecord] = field(default_factory=list)
    filtered_items: List[Union[ChannelRecord, SeriesGroup]] = field(default_factory=list)
    search_term: str = ""
    series_cache: Dict[str, SeriesGroup] = field(default_factory=dict)
    player_item: Optional[ChannelRecord] = None

    @property
    def player_active(self) -> bool:
        return self.player_item is not None

    def clear(self) -> None:
        self.route = Route()
        self.category_type = None
        self.category = None
        self.type_group = None
        self.clear_category()

    def clear_category(self) -> None:
        self.category = None
        self.all_items = []
        self.filtered_items = []
        self.search_term = ""
        self.series_cache = {}


class Navigator:
    """
    Owns the browsing session and is the only thing that mutates it.

    Every fetch runs inside the loading overlay and is tagged with a
    generation number; a result that comes back after a newer navigation
    started is dropped. Anything that swaps the active item set goes
    through the renderer's reset(), which disconnects the pagination
    trigger before the new set is committed.
    """

    def __init__(
        self,
        api,
        view: Optional[View] = None,
        player: Optional[Player] = None,
        history: Optional[MemoryHistory] = None,
        trigger: Optional[NearEndTrigger] = None,
        page_size: int = PAGE_SIZE,
    ):
        self.api = api
        self.view = view or View()
        self.player = player or Player()
        self.history = history or MemoryHistory()
        self.session = NavigationSession()
        self.renderer = IncrementalRenderer(
            self.view.append_items, trigger=trigger, page_size=page_size, on_sentinel=self.view.show_sentinel
        )
        self.last_filter: Optional[FilterResult] = None
        self._generation = 0

    @property
    def route(self) -> Route:
        return self.session.route

    # -------------------------
    # Plumbing
    # -------------------------
    @contextmanager
    def loading(self, message: str):
        self.view.show_loading(message)
        try:
            yield
        finally:
            self.view.hide_loading()

    def _begin(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, token: int) -> bool:
        return token == self._generation

    async def _fetch(self, message: str, call):
        token = self._begin()
        try:
            with self.loading(message):
                data = await call
        except ApiError as e:
            logger.warning("Fetch failed (%s): %s", e.status, e.message)
            if self._is_current(token):
                self.view.toast(e.message, "error")
            return token, None
        if not self._is_current(token):
            logger.debug("Dropping stale response for %r", message)
        return token, data

    def _go(self, route: Route, push: bool) -> None:
        self.session.route = route
        if push:
            self.history.push(format_path(route))

    # -------------------------
    # Player overlay
    # -------------------------
    def play(self, item: ChannelRecord) -> bool:
        if self.session.route.is_home:
            return False
        self.player.destroy()
        self.session.player_item = item
        self.player.load(item.url)
        self.view.show_player(item)
        logger.info("Playing %s", item.name)
        return True

    def close_player(self) -> None:
        if not self.session.player_active:
            return
        self.player.destroy()
        self.session.player_item = None
        self.view.hide_player()

    def on_player_error(self, detail: Optional[str] = None) -> None:
        logger.warning("Playback failed: %s", detail or "unknown error")
        self.view.toast(PLAYBACK_ERROR, "error")

    def select(self, item: Union[ChannelRecord, SeriesGroup]) -> bool:
        if isinstance(item, SeriesGroup):
            return self.open_series(item.name)
        return self.play(item)

    # -------------------------
    # Transitions
    # -------------------------
    async def go_home(self, push: bool = True) -> bool:
        self.close_player()
        self.renderer.stop()
        self.session.clear()
        self.view.set_selection(None)
        self.view.clear_items()
        self._go(Route(), push)

        token, grouped = await self._fetch("Loading categories...", self.api.grouped_categories())
        if not self._is_current(token):
            return False
        self.view.show_home(grouped)
        return grouped is not None

    async def open_type(self, type_name: str, push: bool = True) -> bool:
        try:
            t = normalize_type(type_name)
        except UnknownType as e:
            self.view.toast(str(e), "error")
            return False

        token, data = await self._fetch("Loading categories...", self.api.categories(t))
        if data is None or not self._is_current(token):
            return False

        self.close_player()
        self.renderer.stop()
        self.session.clear_category()
        self.session.category_type = t
        self.session.type_group = data
        self.view.set_selection(None)
        self.view.clear_items()
        self.view.show_categories(t, data)
        self._go(Route(TYPE_LIST, t), push)
        return True

    async def select_category(self, name: str, push: bool = True) -> bool:
        t = self.session.category_type
        if t is None:
            self.view.toast("Choose channels, movies or series first", "error")
            return False

        if name == ALL_CATEGORY:
            call = self.api.all_channels(t)
        else:
            call = self.api.channels(name)
        token, data = await self._fetch("Loading channels...", call)
        if data is None or not self._is_current(token):
            return False

        self.close_player()
        self.renderer.stop()
        self.session.clear_category()
        self.session.category = name if name == ALL_CATEGORY else (data.get("category") or name)
        self.session.all_items = [ChannelRecord.from_dict(d) for d in data.get("channels") or []]
        self.view.set_selection(self.session.category)
        self._go(Route(CATEGORY_CHANNELS, t, self.session.category), push)
        self._refresh()
        return True

    def open_series(self, series_name: str, push: bool = True) -> bool:
        s = self.session
        if s.category_type != "series" or s.category is None:
            return False
        group = s.series_cache.get(series_name)
        if group is None:
            self.view.toast(f"Series not found: {series_name}", "error")
            return False

        self._begin()
        self.close_player()
        self.view.clear_items()
        self.view.show_series(group)
        self._go(Route(SERIES_EPISODES, s.category_type, s.category, group.name), push)
        self.renderer.reset(group.episodes)
        self.renderer.load_next_page()
        return True

    async def back(self) -> bool:
        if self.session.player_active:
            self.close_player()
            return True

        route = self.session.route
        if route.name == SERIES_EPISODES:
            self._begin()
            self._go(route.parent(), push=True)
            self.view.set_selection(self.session.category)
            self._refresh()
            return True
        if route.name == CATEGORY_CHANNELS:
            return await self.open_type(route.type)
        if route.name == TYPE_LIST:
            return await self.go_home()
        return False

    def search(self, raw_term: str) -> Optional[FilterResult]:
        if self.session.route.name != CATEGORY_CHANNELS:
            logger.debug("Ignoring search outside a category view")
            return None
        self.session.search_term = raw_term or ""
        return self._refresh()

    def load_more(self) -> bool:
        """Called by the platform when the sentinel scrolls into view."""
        return self.renderer.trigger.fire()

    def _refresh(self) -> FilterResult:
        s = self.session
        if s.category_type == "series":
            groups = group_series(s.all_items)
            s.series_cache = {g.name: g for g in groups}
            result = filter_groups(groups, s.search_term)
        else:
            result = filter_items(s.all_items, s.search_term)
        s.filtered_items = result.items
        self.last_filter = result

        self.view.clear_items()
        self.view.show_count(result.annotation())
        self.renderer.reset(result.items)
        self.renderer.load_next_page()
        return result

    # -------------------------
    # History / direct entry
    # -------------------------
    async def restore(self, path: str) -> Route:
        """Rebuild the session from an address-bar path."""
        route = parse_path(path)
        if route.name == HOME:
            await self.go_home(push=False)
        elif not await self.open_type(route.type, push=False):
            await self.go_home(push=False)
        elif route.name != TYPE_LIST:
            if not await self.select_category(route.category, push=False):
                await self.go_home(push=False)
            elif route.name == SERIES_EPISODES:
                self.open_series(route.series, push=False)

        self.history.replace(format_path(self.session.route))
        return self.session.route

    async def on_history(self, path: Optional[str]) -> Route:
        if path is None:
            return self.session.route
        return await self.restore(path)

    async def history_back(self) -> Route:
        return await self.on_history(self.history.back())

    async def history_forward(self) -> Route:
        return await self.on_history(self.history.forward())
