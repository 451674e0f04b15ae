from __future__ import annotations

import datetime as dt
import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import CacheReadError
from .utils import iso_date, parse_timestamp

logger = logging.getLogger(__name__)

CACHE_VERSION = 1


@dataclass(frozen=True)
class ProvenanceEntry:
    slug: str
    published: dt.datetime
    last_updated: dt.datetime

    def to_json(self) -> dict:
        return {
            "slug": self.slug,
            "published": iso_date(self.published),
            "lastUpdated": iso_date(self.last_updated),
        }

    @classmethod
    def from_json(cls, slug: str, data: dict) -> "ProvenanceEntry":
        return cls(
            slug=slug,
            published=parse_timestamp(data["published"]),
            last_updated=parse_timestamp(data.get("lastUpdated") or data["last_updated"]),
        )


def _records(data: object) -> list[tuple[str, dict]]:
    if isinstance(data, dict) and "entries" in data:
        data = data["entries"]
    if isinstance(data, dict):
        return [(str(slug), value) for slug, value in data.items()]
    if not isinstance(data, list):
        raise ValueError(f"expected a list or mapping, found {type(data).__name__}")
    records = []
    for item in data:
        # [slug, {...}] pairs as written by the old site build
        if isinstance(item, list) and len(item) == 2:
            records.append((str(item[0]), item[1]))
        elif isinstance(item, dict):
            records.append((str(item.get("slug", "")), item))
        else:
            raise ValueError(f"unexpected cache record: {item!r}")
    return records


def parse_cache(path: Path, text: str) -> dict[str, ProvenanceEntry]:
    try:
        data = json.loads(text)
        records = _records(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise CacheReadError(path, str(exc)) from exc
    entries = {}
    for slug, value in records:
        if not slug or not isinstance(value, dict):
            logger.warning("Skipping malformed cache record in %s: %r", path, value)
            continue
        try:
            entries[slug] = ProvenanceEntry.from_json(slug, value)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed cache record for %s in %s: %s", slug, path, exc)
    return entries


class ProvenanceCache:
    """Published/last-updated dates per slug, mirrored to one JSON file.

    Every mutation rewrites the whole file before returning. The file is
    meant to be committed alongside the content, so it is written
    pretty-printed and sorted by slug to keep diffs readable.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._entries = self._load()

    def _load(self) -> dict[str, ProvenanceEntry]:
        if not self.path.exists():
            logger.info("No provenance cache at %s, starting empty", self.path)
            return {}
        try:
            return parse_cache(self.path, self.path.read_text(encoding="utf-8"))
        except CacheReadError as exc:
            logger.warning("%s. Continuing with an empty cache.", exc)
            return {}
        except OSError as exc:
            logger.warning("Could not read %s (%s). Continuing with an empty cache.", self.path, exc)
            return {}

    def lookup(self, slug: str) -> Optional[ProvenanceEntry]:
        with self._lock:
            return self._entries.get(slug)

    def load_all(self) -> dict[str, ProvenanceEntry]:
        with self._lock:
            return dict(self._entries)

    def upsert(self, entry: ProvenanceEntry) -> bool:
        with self._lock:
            if self._entries.get(entry.slug) == entry:
                return False
            self._entries[entry.slug] = entry
            self._write()
        logger.info(
            "Cached %s: published %s, last updated %s",
            entry.slug,
            iso_date(entry.published),
            iso_date(entry.last_updated),
        )
        return True

    def remove(self, slug: str) -> bool:
        with self._lock:
            if slug not in self._entries:
                return False
            del self._entries[slug]
            self._write()
        logger.info("Removed %s from the provenance cache", slug)
        return True

    def _write(self) -> None:
        data = {
            "version": CACHE_VERSION,
            "entries": [self._entries[slug].to_json() for slug in sorted(self._entries)],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")
        os.replace(tmp_path, self.path)

    def __contains__(self, slug: object) -> bool:
        with self._lock:
            return slug in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
