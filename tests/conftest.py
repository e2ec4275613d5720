import os
import tempfile

# main.py reads its directories at import time
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="iptv-player-tests-"))

import pytest

from iptv_player.catalog_store import CatalogStore
from iptv_player.client.api import ApiError
from iptv_player.client.session import Player, View
from iptv_player.errors import CatalogError
from iptv_player.m3u_core import build_catalog


def extinf(name, group=None, logo=None):
    attrs = ""
    if logo is not None:
        attrs += f' tvg-logo="{logo}"'
    if group is not None:
        attrs += f' group-title="{group}"'
    return f"#EXTINF:-1{attrs},{name}"


def make_playlist(entries):
    lines = ["#EXTM3U"]
    for name, group, url in entries:
        lines.append(extinf(name, group, logo=f"http://img.example/{len(name)}.png"))
        lines.append(url)
    return "\n".join(lines) + "\n"


SAMPLE_ENTRIES = (
    [("Globo HD", "CANAIS | Abertos", "http://tv.example/globo.m3u8"),
     ("SBT HD", "CANAIS | Abertos", "http://tv.example/sbt.m3u8"),
     ("Band", "CANAIS | Abertos", "http://tv.example/band.m3u8"),
     ("ESPN", "Sports", "http://tv.example/espn.ts")]
    + [(f"Movie {i}", "FILMES | Action", f"http://vod.example/movie{i}.mp4") for i in range(1, 46)]
    + [("Matrix", "FILMES|Sci-Fi", "http://vod.example/matrix.mp4"),
       ("Show A - S01E10 - Finale", "SÉRIES | Drama", "http://vod.example/a110.mp4"),
       ("Show A - S01E02 - Pilot", "SÉRIES | Drama", "http://vod.example/a102.mp4"),
       ("Show A - S02E01 - Return", "SÉRIES | Drama", "http://vod.example/a201.mp4"),
       ("Another Show S01E01", "SÉRIES | Drama", "http://vod.example/b101.mp4"),
       ("Behind the scenes", "SÉRIES | Drama", "http://vod.example/extra.mp4")]
)


@pytest.fixture
def sample_text():
    return make_playlist(SAMPLE_ENTRIES)


@pytest.fixture
def store(tmp_path, sample_text):
    s = CatalogStore(tmp_path / "data")
    s.replace_catalog(build_catalog(sample_text))
    return s


class StoreApi:
    """In-process stand-in for CatalogApi that answers straight from a CatalogStore."""

    def __init__(self, store):
        self.store = store
        self.calls = []

    async def _call(self, name, fn, *args):
        self.calls.append((name,) + args)
        try:
            return fn(*args)
        except CatalogError as e:
            raise ApiError(e.status_code, str(e))

    async def grouped_categories(self):
        return await self._call("grouped_categories", self.store.get_grouped)

    async def categories(self, type_name):
        return await self._call("categories", self.store.get_type_group, type_name)

    async def channels(self, category):
        data = await self._call("channels", self.store.get_category, category)
        return {"category": data["name"], "channels": data["channels"], "channelCount": data["channelCount"]}

    async def all_channels(self, type_name):
        channels = await self._call("all_channels", self.store.all_channels, type_name)
        return {"type": type_name, "channels": channels, "channelCount": len(channels)}


class RecordingView(View):
    def __init__(self):
        self.events = []
        self.items = []
        self.loading_depth = 0

    def show_loading(self, message):
        self.loading_depth += 1
        self.events.append(("loading", message))

    def hide_loading(self):
        self.loading_depth -= 1
        self.events.append(("loaded",))

    def toast(self, message, level="info"):
        self.events.append(("toast", level, message))

    def show_home(self, grouped):
        self.events.append(("home", grouped is not None))

    def show_categories(self, type_name, group):
        self.events.append(("categories", type_name, len(group["categories"])))

    def clear_items(self):
        self.items = []

    def append_items(self, items):
        self.items.extend(items)

    def show_count(self, text):
        self.events.append(("count", text))

    def show_series(self, group):
        self.events.append(("series", group.name))

    def show_player(self, item):
        self.events.append(("player", item.name))

    def hide_player(self):
        self.events.append(("player-hidden",))

    @property
    def toasts(self):
        return [e for e in self.events if e[0] == "toast"]


class RecordingPlayer(Player):
    def __init__(self):
        self.log = []

    def load(self, url):
        self.log.append(("load", url))

    def destroy(self):
        self.log.append(("destroy",))


@pytest.fixture
def api(store):
    return StoreApi(store)


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def player():
    return RecordingPlayer()
