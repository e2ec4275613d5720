from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..m3u_core import ChannelRecord, collation_key

# "<title>[ -] S<season>E<episode>[ ...]"
SERIES_RE = re.compile(r"^(?P<show>.+?)\s*-?\s*S(?P<s>\d+)E(?P<e>\d+)", re.IGNORECASE)


@dataclass
class SeriesGroup:
    name: str
    logo: str = ""
    episodes: List[ChannelRecord] = field(default_factory=list)

    @property
    def total_episodes(self) -> int:
        return len(self.episodes)


def extract_series(name: str) -> Optional[Tuple[str, int, int]]:
    m = SERIES_RE.match((name or "").strip())
    if not m:
        return None
    show = m.group("show").strip(" -")
    if not show:
        return None
    return show, int(m.group("s")), int(m.group("e"))


def episode_sort_key(item: ChannelRecord):
    parsed = extract_series(item.name)
    if parsed is None:
        return (1, 0, 0, collation_key(item.name))
    _, season, episode = parsed
    return (0, season, episode, collation_key(item.name))


def group_series(items: Iterable[ChannelRecord]) -> List[SeriesGroup]:
    """
    Names that don't look like episodes are left out. Groups come back
    sorted by series name, episodes by season then episode number.
    """
    groups: Dict[str, SeriesGroup] = {}
    for item in items:
        parsed = extract_series(item.name)
        if parsed is None:
            continue
        show = parsed[0]
        group = groups.get(show)
        if group is None:
            group = groups[show] = SeriesGroup(name=show, logo=item.logo)
        elif not group.logo and item.logo:
            group.logo = item.logo
        group.episodes.append(item)

    for group in groups.values():
        group.episodes.sort(key=episode_sort_key)
    return sorted(groups.values(), key=lambda g: collation_key(g.name))
