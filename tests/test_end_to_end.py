import asyncio

from fastapi.testclient import TestClient

from conftest import RecordingPlayer, RecordingView
from iptv_player import main
from iptv_player.catalog_store import CatalogStore
from iptv_player.client.api import ApiError, CatalogApi
from iptv_player.client.routes import CATEGORY_CHANNELS, Route
from iptv_player.client.session import Navigator


class TestClientApi(CatalogApi):
    """CatalogApi that talks to the app in-process instead of over a socket."""

    __test__ = False

    def __init__(self, client):
        super().__init__("http://testserver")
        self.client = client

    def _get_json(self, path):
        r = self.client.get(path)
        body = r.json()
        if r.status_code >= 400:
            raise ApiError(r.status_code, body.get("error") or r.reason_phrase)
        return body


def test_upload_browse_search_play(tmp_path, monkeypatch, sample_text):
    monkeypatch.setattr(main, "store", CatalogStore(tmp_path / "data"))
    monkeypatch.setattr(main, "UPLOAD_DIR", tmp_path)
    client = TestClient(main.app)

    r = client.post("/api/upload-playlist", files={"playlist": ("list.m3u8", sample_text.encode("utf-8"))})
    assert r.json()["success"] is True

    view, player = RecordingView(), RecordingPlayer()
    nav = Navigator(TestClientApi(client), view=view, player=player)

    async def flow():
        await nav.restore("/")
        await nav.open_type("movies")
        await nav.select_category("FILMES | Action")

    asyncio.run(flow())
    assert nav.route == Route(CATEGORY_CHANNELS, "movies", "FILMES | Action")
    assert len(view.items) == 20

    nav.search("movie 4")
    assert [i.name for i in view.items] == ["Movie 4", "Movie 40", "Movie 41", "Movie 42", "Movie 43", "Movie 44", "Movie 45"]

    nav.play(view.items[0])
    assert player.log[-1] == ("load", "http://vod.example/movie4.mp4")

    assert not asyncio.run(nav.select_category("FILMES | Nope"))
    assert nav.session.category == "FILMES | Action"
