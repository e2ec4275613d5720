from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Union

from ..m3u_core import ChannelRecord
from .series import SeriesGroup, group_series

MIN_TERM_LENGTH = 3

Item = Union[ChannelRecord, SeriesGroup]


@dataclass
class FilterResult:
    items: List[Item]
    matched: int
    total: int
    term: str
    unit: str

    @property
    def active(self) -> bool:
        return bool(self.term)

    def annotation(self) -> str:
        if not self.active:
            return f"{self.total} {self.unit}"
        return f"{self.matched} of {self.total} {self.unit}"


def normalize_term(raw: str) -> str:
    """Lowercased, trimmed term; '' when too short to filter on."""
    term = (raw or "").strip().lower()
    if len(term) < MIN_TERM_LENGTH:
        return ""
    return term


def filter_items(items: Sequence[ChannelRecord], raw_term: str) -> FilterResult:
    term = normalize_term(raw_term)
    if not term:
        matched = list(items)
    else:
        matched = [it for it in items if term in it.name.lower()]
    return FilterResult(items=matched, matched=len(matched), total=len(items), term=term, unit="items")


def filter_series(items: Sequence[ChannelRecord], raw_term: str) -> FilterResult:
    """Groups episodes first, then keeps the series whose name matches."""
    return filter_groups(group_series(items), raw_term)


def filter_groups(groups: Sequence[SeriesGroup], raw_term: str) -> FilterResult:
    term = normalize_term(raw_term)
    if not term:
        matched = list(groups)
    else:
        matched = [g for g in groups if term in g.name.lower()]
    return FilterResult(items=matched, matched=len(matched), total=len(groups), term=term, unit="series")
