from __future__ import annotations

import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import CatalogMissing, UnknownCategory, UnknownType
from .m3u_core import TYPE_NAMES, Catalog, slugify

logger = logging.getLogger(__name__)

SUMMARY_FILE = "metadata.json"
GROUPED_FILE = "grouped_categories.json"
CATEGORY_LIST_FILE = "categories_list.json"
CATEGORIES_DIR = "categories"
BACKUP_DIR = "backup"

# legacy labels from older playlists / clients
TYPE_ALIASES = {"canais": "channels", "filmes": "movies", "séries": "series"}


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def read_json(p: Path, default=None):
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return default


def write_json(p: Path, obj) -> None:
    """Write to a sibling temp file, then swap it in so readers never see half a document."""
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp, p)


def normalize_type(type_name: str) -> str:
    t = (type_name or "").strip().lower()
    t = TYPE_ALIASES.get(t, t)
    if t not in TYPE_NAMES:
        raise UnknownType(type_name)
    return t


class CatalogStore:
    """
    On-disk catalog: one summary document, one grouped-by-type document,
    a flat category list and one shard per category keyed by its slug.

    Every upload replaces all of it. Shards are written before the
    documents that reference them and the summary goes last, so a reader
    that finds a summary can trust every shard it points at.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.categories_dir = self.data_dir / CATEGORIES_DIR
        self.backup_dir = self.data_dir / BACKUP_DIR
        self.summary_path = self.data_dir / SUMMARY_FILE
        self.grouped_path = self.data_dir / GROUPED_FILE
        self.category_list_path = self.data_dir / CATEGORY_LIST_FILE
        ensure_dir(self.categories_dir)
        ensure_dir(self.backup_dir)

    # -------------------------
    # Writes
    # -------------------------
    def replace_catalog(self, catalog: Catalog) -> int:
        """Returns the number of documents written."""
        # readers must stop trusting the old catalog before its shards go away
        self.summary_path.unlink(missing_ok=True)
        if self.categories_dir.exists():
            shutil.rmtree(self.categories_dir)
        ensure_dir(self.categories_dir)

        for cat in catalog.categories:
            write_json(self.categories_dir / cat.file_name, cat.to_dict())

        last_updated = catalog.summary["lastUpdated"]
        write_json(self.grouped_path, {**catalog.grouped, "lastUpdated": last_updated})
        write_json(
            self.category_list_path,
            {
                "categories": [c.to_ref() for c in catalog.categories],
                "totalCategories": len(catalog.categories),
                "lastUpdated": last_updated,
                "sorted": True,
            },
        )
        write_json(self.summary_path, catalog.summary)

        written = len(catalog.categories) + 3
        logger.info(
            "Catalog replaced: %d channels in %d categories (%d files)",
            catalog.total_channels,
            catalog.total_categories,
            written,
        )
        return written

    def write_backup(self, catalog: Catalog) -> Path:
        ensure_dir(self.backup_dir)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        path = self.backup_dir / f"playlist_{stamp}.json"
        n = 0
        while path.exists():
            n += 1
            path = self.backup_dir / f"playlist_{stamp}_{n}.json"
        write_json(path, {"metadata": catalog.summary, "categories": [c.to_ref() for c in catalog.categories]})
        return path

    def prune_backups(self, keep: int) -> List[str]:
        backups = sorted(self.backup_dir.glob("playlist_*.json"), key=lambda p: p.name, reverse=True)
        removed = []
        for p in backups[max(keep, 0):]:
            p.unlink(missing_ok=True)
            removed.append(str(p))
        if removed:
            logger.info("Pruned %d old backups", len(removed))
        return removed

    # -------------------------
    # Reads
    # -------------------------
    def has_catalog(self) -> bool:
        return self.summary_path.exists()

    def get_summary(self) -> Dict[str, Any]:
        summary = read_json(self.summary_path)
        if summary is None:
            raise CatalogMissing()
        return summary

    def get_grouped(self) -> Dict[str, Any]:
        if not self.has_catalog():
            raise CatalogMissing()
        grouped = read_json(self.grouped_path)
        if grouped is None:
            raise CatalogMissing()
        return grouped

    def get_type_group(self, type_name: str) -> Dict[str, Any]:
        t = normalize_type(type_name)
        grouped = self.get_grouped()
        group = grouped.get(t)
        if group is None:
            raise CatalogMissing()
        return group

    def list_categories(self) -> Dict[str, Any]:
        if not self.has_catalog():
            raise CatalogMissing()
        listing = read_json(self.category_list_path)
        if listing is None:
            raise CatalogMissing()
        return listing

    def get_category(self, slug_or_name: str) -> Dict[str, Any]:
        data = read_json(self.categories_dir / f"{slugify(slug_or_name)}.json")
        if data is None:
            raise UnknownCategory(slug_or_name)
        return data

    def all_channels(self, type_name: str) -> List[Dict[str, Any]]:
        group = self.get_type_group(type_name)
        channels: List[Dict[str, Any]] = []
        for ref in group.get("categories") or []:
            shard: Optional[dict] = read_json(self.categories_dir / ref["fileName"])
            if shard is None:
                logger.warning("Shard %s listed under %s is missing", ref["fileName"], type_name)
                continue
            channels.extend(shard.get("channels") or [])
        return channels
