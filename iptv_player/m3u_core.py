from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Tuple

logger = logging.getLogger(__name__)

EXTINF_PREFIX = "#EXTINF:"
ATTR_RE = re.compile(r'([A-Za-z0-9\-_]+)="([^"]*)"')
DIGITS_RE = re.compile(r"(\d+)")
SLUG_RE = re.compile(r"[^a-z0-9]")

UNCATEGORIZED = "Uncategorized"
UNKNOWN_CHANNEL = "Unknown Channel"
CATALOG_VERSION = "2.0"
COLLATION_LOCALE = "pt-BR"

# Order matters: the first pattern that matches a category name wins.
TYPE_GROUPS = {
    "channels": {
        "name": "Channels",
        "description": "Live TV, radio and broadcast channels",
        "prefix": re.compile(r"^\s*(CANAIS|CHANNELS)\s*\|", re.IGNORECASE),
    },
    "movies": {
        "name": "Movies",
        "description": "Movies, documentaries and feature films",
        "prefix": re.compile(r"^\s*(FILMES|MOVIES)\s*\|", re.IGNORECASE),
    },
    "series": {
        "name": "Series",
        "description": "Series, soap operas and TV shows",
        "prefix": re.compile(r"^\s*S[ÉE]RIES\s*\|", re.IGNORECASE),
    },
}
DEFAULT_TYPE = "channels"
TYPE_NAMES = tuple(TYPE_GROUPS)


@dataclass(frozen=True)
class ChannelRecord:
    id: str
    name: str
    logo: str
    url: str
    active: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "logo": self.logo,
            "url": self.url,
            "isActive": self.active,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ChannelRecord":
        return cls(
            id=d.get("id") or "",
            name=d.get("name") or "",
            logo=d.get("logo") or "",
            url=d.get("url") or "",
            active=bool(d.get("isActive", True)),
        )


@dataclass
class Category:
    name: str
    channels: List[ChannelRecord] = field(default_factory=list)

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def slug(self) -> str:
        return slugify(self.name)

    @property
    def file_name(self) -> str:
        return f"{self.slug}.json"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "channels": [c.to_dict() for c in self.channels],
            "channelCount": self.channel_count,
        }

    def to_ref(self) -> dict:
        return {"name": self.name, "fileName": self.file_name, "channelCount": self.channel_count}


@dataclass
class ParsedPlaylist:
    groups: Dict[str, List[ChannelRecord]]
    total: int


@dataclass
class Catalog:
    categories: List[Category]
    grouped: Dict[str, dict]
    summary: dict
    original_stats: dict

    @property
    def total_channels(self) -> int:
        return self.summary["totalChannels"]

    @property
    def total_categories(self) -> int:
        return self.summary["totalCategories"]


def slugify(name: str) -> str:
    """Filesystem-safe key: lowercase, anything outside [a-z0-9] becomes '_'."""
    return SLUG_RE.sub("_", (name or "").lower())


def collation_key(s: str):
    """
    Sort key approximating a locale collation with base sensitivity:
    accents and case are ignored, punctuation and spacing are ignored,
    digit runs compare by value ("E2" < "E10").
    """
    t = unicodedata.normalize("NFKD", s or "")
    t = "".join(
        ch for ch in t
        if not unicodedata.combining(ch) and unicodedata.category(ch)[0] not in ("P", "Z", "C")
    )
    t = t.casefold()
    parts = []
    for run in DIGITS_RE.split(t):
        if not run:
            continue
        if run.isdigit():
            parts.append((0, int(run), run))
        else:
            parts.append((1, 0, run))
    return tuple(parts), (s or "")


def parse_attrs(attr_str: str) -> dict:
    attrs = {}
    for m in ATTR_RE.finditer(attr_str):
        attrs[m.group(1)] = m.group(2)
    return attrs


def extract_name(metadata_line: str) -> str:
    # the display name follows the first comma after the last attribute,
    # so commas inside quoted values and inside names both survive
    last_attr = None
    for last_attr in ATTR_RE.finditer(metadata_line):
        pass
    start = last_attr.end() if last_attr else 0
    comma = metadata_line.find(",", start)
    if comma == -1:
        return UNKNOWN_CHANNEL
    name = metadata_line[comma + 1:].strip()
    return name or UNKNOWN_CHANNEL


def iter_entries(m3u_text: str) -> Iterator[Tuple[str, str, str, str]]:
    """
    Yields (group, name, logo, url) for every #EXTINF line immediately
    followed by an http(s) URL line. Anything else is skipped.
    """
    lines = (m3u_text or "").lstrip("\ufeff").splitlines()
    for i, raw in enumerate(lines):
        if not raw.startswith(EXTINF_PREFIX):
            continue
        metadata = raw.strip()
        url = lines[i + 1].strip() if i + 1 < len(lines) else ""
        if not url.startswith("http"):
            logger.debug("Skipping entry without URL at line %d: %s", i + 1, metadata[:80])
            continue

        attrs = parse_attrs(metadata)
        yield (
            attrs.get("group-title") or UNCATEGORIZED,
            extract_name(metadata),
            attrs.get("tvg-logo") or "",
            url,
        )


def parse_m3u(m3u_text: str) -> ParsedPlaylist:
    groups: Dict[str, List[ChannelRecord]] = {}
    total = 0
    for group, name, logo, url in iter_entries(m3u_text):
        record = ChannelRecord(id=f"{slugify(group)}_{total}", name=name, logo=logo, url=url)
        groups.setdefault(group, []).append(record)
        total += 1
    return ParsedPlaylist(groups=groups, total=total)


def classify_category(name: str) -> str:
    for type_name, info in TYPE_GROUPS.items():
        if info["prefix"].match(name or ""):
            return type_name
    return DEFAULT_TYPE


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def group_by_type(categories: List[Category]) -> Dict[str, dict]:
    buckets: Dict[str, List[Category]] = {t: [] for t in TYPE_NAMES}
    for cat in categories:
        buckets[classify_category(cat.name)].append(cat)

    grouped = {}
    for type_name, members in buckets.items():
        members.sort(key=lambda c: collation_key(c.name))
        info = TYPE_GROUPS[type_name]
        grouped[type_name] = {
            "name": info["name"],
            "description": info["description"],
            "categories": [c.to_ref() for c in members],
            "totalCategories": len(members),
            "totalChannels": sum(c.channel_count for c in members),
        }
    return grouped


def build_catalog(m3u_text: str) -> Catalog:
    return partition(parse_m3u(m3u_text))


def partition(parsed: ParsedPlaylist) -> Catalog:

    categories = []
    for name, channels in parsed.groups.items():
        if not channels:
            logger.info("Dropping empty category: %s", name)
            continue
        categories.append(Category(name=name, channels=sorted(channels, key=lambda c: collation_key(c.name))))
    categories.sort(key=lambda c: collation_key(c.name))

    seen = {}
    for cat in categories:
        if cat.slug in seen and seen[cat.slug] != cat.name:
            logger.warning("Categories %r and %r share the key %r; the latter wins", seen[cat.slug], cat.name, cat.slug)
        seen[cat.slug] = cat.name

    grouped = group_by_type(categories)
    total_channels = sum(c.channel_count for c in categories)

    summary = {
        "lastUpdated": _utc_iso(),
        "totalChannels": total_channels,
        "totalCategories": len(categories),
        "version": CATALOG_VERSION,
        "lazyLoading": True,
        "sorting": {
            "enabled": True,
            "description": "Alphabetical ordering for categories and channels",
            "locale": COLLATION_LOCALE,
        },
        "types": {
            t: {"totalCategories": g["totalCategories"], "totalChannels": g["totalChannels"]}
            for t, g in grouped.items()
        },
    }

    return Catalog(
        categories=categories,
        grouped=grouped,
        summary=summary,
        original_stats={"totalChannels": parsed.total, "totalCategories": len(parsed.groups)},
    )
