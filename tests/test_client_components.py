import pytest

from iptv_player.client.renderer import IncrementalRenderer, NearEndTrigger, Progress
from iptv_player.client.routes import (
    CATEGORY_CHANNELS,
    HOME,
    SERIES_EPISODES,
    TYPE_LIST,
    Route,
    format_path,
    parse_path,
)
from iptv_player.client.search import filter_items, filter_series, normalize_term
from iptv_player.client.series import extract_series, group_series
from iptv_player.m3u_core import ChannelRecord


def rec(name, n=0, logo=""):
    return ChannelRecord(id=f"c_{n}", name=name, logo=logo, url=f"http://s.example/{n}")


# -------------------------
# Series grouping
# -------------------------
def test_episodes_group_and_sort_numerically():
    items = [rec("Show A - S01E10 - Finale", 1), rec("Show A - S01E02 - Pilot", 2)]
    groups = group_series(items)
    assert len(groups) == 1
    assert groups[0].name == "Show A"
    assert [e.name for e in groups[0].episodes] == ["Show A - S01E02 - Pilot", "Show A - S01E10 - Finale"]
    assert groups[0].total_episodes == 2


def test_seasons_order_before_episodes():
    items = [rec("X - S02E01", 1), rec("X - S01E09", 2), rec("X - S01E01", 3)]
    assert [e.id for e in group_series(items)[0].episodes] == ["c_3", "c_2", "c_1"]


def test_series_pattern_contract():
    assert extract_series("Show A - S01E02 - Pilot") == ("Show A", 1, 2)
    assert extract_series("Show B S3E12") == ("Show B", 3, 12)
    assert extract_series("show c-s01e01") == ("show c", 1, 1)
    assert extract_series("Behind the scenes") is None
    assert extract_series("S01E01") is None
    assert extract_series("Show D S01 E02") is None


def test_unmatched_names_are_left_out_and_groups_sorted():
    items = [rec("Zeta - S01E01", 1, "z.png"), rec("Extras", 2), rec("alpha - S01E01", 3)]
    groups = group_series(items)
    assert [g.name for g in groups] == ["alpha", "Zeta"]
    assert groups[1].logo == "z.png"


# -------------------------
# Search
# -------------------------
def test_short_terms_do_not_filter():
    items = [rec("Globo"), rec("SBT")]
    for term in ["", "  ", "gl", " G  "]:
        result = filter_items(items, term)
        assert result.items == items
        assert not result.active
    assert normalize_term("  GLO ") == "glo"


def test_substring_filter_is_case_insensitive():
    items = [rec("Globo HD", 1), rec("SBT", 2), rec("Rede GLOBO News", 3)]
    result = filter_items(items, "GLOB")
    assert [i.id for i in result.items] == ["c_1", "c_3"]
    assert result.annotation() == "2 of 3 items"
    assert len(items) == 3


def test_series_filter_counts_series_not_episodes():
    items = [
        rec("Show A - S01E01", 1),
        rec("Show A - S01E02", 2),
        rec("Other Show - S01E01", 3),
        rec("Lost - S01E01", 4),
    ]
    result = filter_series(items, "show")
    assert [g.name for g in result.items] == ["Other Show", "Show A"]
    assert (result.matched, result.total) == (2, 3)
    assert result.annotation() == "2 of 3 series"


# -------------------------
# Incremental renderer
# -------------------------
def test_pagination_20_20_5_then_disconnect():
    rendered = []
    trigger = NearEndTrigger()
    r = IncrementalRenderer(rendered.extend, trigger=trigger)
    r.reset(list(range(45)))

    assert len(r.load_next_page()) == 20
    assert trigger.sentinel == Progress(20, 45)
    assert len(r.load_next_page()) == 20
    assert trigger.sentinel.label() == "Loading more... (40/45 - 89%)"
    assert r.load_next_page() == list(range(40, 45))
    assert trigger.sentinel is None
    assert trigger.connected

    assert r.load_next_page() == []
    assert not trigger.connected
    assert rendered == list(range(45))


def test_trigger_fires_next_page_until_exhausted():
    rendered = []
    r = IncrementalRenderer(rendered.extend, page_size=10)
    r.reset(list(range(25)))
    r.load_next_page()
    while r.trigger.fire():
        pass
    assert rendered == list(range(25))
    assert not r.has_more


def test_reset_drops_stale_trigger():
    rendered = []
    sentinels = []
    r = IncrementalRenderer(rendered.extend, on_sentinel=sentinels.append)
    r.reset(list(range(30)))
    r.load_next_page()
    old_trigger_state = r.trigger.sentinel
    assert old_trigger_state is not None

    rendered.clear()
    r.reset(["a", "b"])
    assert r.cursor == 0
    assert not r.trigger.fire()
    assert rendered == []
    r.load_next_page()
    assert rendered == ["a", "b"]
    assert sentinels[-1] is None


# -------------------------
# Routes
# -------------------------
@pytest.mark.parametrize(
    "route",
    [
        Route(),
        Route(TYPE_LIST, "movies"),
        Route(CATEGORY_CHANNELS, "movies", "FILMES | Ação"),
        Route(SERIES_EPISODES, "series", "SÉRIES | Drama", "Show A / Reloaded"),
    ],
)
def test_route_paths_reconstruct(route):
    assert parse_path(format_path(route)) == route


def test_series_name_is_encoded():
    path = format_path(Route(SERIES_EPISODES, "series", "Drama", "Show A/B"))
    assert path == "/series/Drama/Show%20A%2FB"


@pytest.mark.parametrize(
    "path",
    ["/", "", "/radio", "/movies/Action/extra", "/series//Show", "/series/a/b/c", "/main"],
)
def test_unreconstructable_paths_fall_back_home(path):
    assert parse_path(path).name == HOME


def test_legacy_type_names_and_parents():
    assert parse_path("/filmes") == Route(TYPE_LIST, "movies")
    episodes = parse_path("/series/Drama/Show%20A")
    assert episodes.parent() == Route(CATEGORY_CHANNELS, "series", "Drama")
    assert episodes.parent().parent() == Route(TYPE_LIST, "series")
    assert episodes.parent().parent().parent() == Route()
