"""Published and last-updated dates for content files.

Dates come from three places that each know only part of the story:

* the git history of the site, complete on a developer's machine and in a
  full CI checkout, truncated in a shallow production clone,
* the provenance cache, a JSON file committed with the content,
* the wall clock, for files that have not been committed yet.

A shallow clone still knows exactly which files changed in the newest
commit, so it may refresh ``last_updated`` for those. Everything older must
already be in the cache; when it is not, resolution fails instead of
inventing a date.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

from .cache import ProvenanceCache, ProvenanceEntry
from .config import EnvironmentClassification
from .errors import ProvenanceInconsistency
from .history import Revision, RevisionHistoryClient, sort_revisions, without_merges
from .utils import iso_date, utc_now

logger = logging.getLogger(__name__)

RULE_DRAFT = "draft"
RULE_FRESH = "fresh"
RULE_SINGLE = "single"
RULE_HISTORY = "history"
RULE_CACHED = "cached"


@dataclass(frozen=True)
class Provenance:
    slug: str
    published: dt.datetime
    last_updated: dt.datetime
    rule: str

    @property
    def is_draft(self) -> bool:
        return self.rule == RULE_DRAFT

    def to_json(self) -> dict:
        return {
            "published": iso_date(self.published),
            "lastUpdated": iso_date(self.last_updated),
            "draft": self.is_draft,
        }


@dataclass(frozen=True)
class Resolved:
    provenance: Provenance
    cache_write: Optional[ProvenanceEntry] = None
    cache_remove: bool = False


@dataclass(frozen=True)
class Inconsistent:
    slug: str
    path: str
    reason: str

    def error(self) -> ProvenanceInconsistency:
        return ProvenanceInconsistency(self.slug, self.path, self.reason)


Outcome = Union[Resolved, Inconsistent]

MISSING_FROM_CACHE = (
    "history is shallow and the cache has no entry for it; "
    "build once with full history and commit the cache before deploying"
)


class DateResolver:
    def __init__(
        self,
        history: RevisionHistoryClient,
        cache: ProvenanceCache,
        environment: EnvironmentClassification,
        cache_writable: Optional[bool] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ) -> None:
        self.history = history
        self.cache = cache
        self.environment = environment
        self.cache_writable = environment.writes_cache_by_default if cache_writable is None else cache_writable
        self.clock = clock or utc_now
        self._frontier: Optional[Revision] = None
        self._frontier_loaded = False
        self._frontier_lock = threading.Lock()
        self._slug_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._slug_locks_guard = threading.Lock()

    def frontier(self) -> Optional[Revision]:
        with self._frontier_lock:
            if not self._frontier_loaded:
                revisions = sort_revisions(without_merges(self.history.branch_revisions()))
                self._frontier = revisions[0] if revisions else None
                self._frontier_loaded = True
            return self._frontier

    def _slug_lock(self, slug: str) -> threading.Lock:
        with self._slug_locks_guard:
            return self._slug_locks[slug]

    def decide(
        self,
        slug: str,
        path: str,
        revisions: Sequence[Revision],
        frontier: Optional[Revision],
        cached: Optional[ProvenanceEntry],
        tracked: bool = True,
        now: Optional[dt.datetime] = None,
    ) -> Outcome:
        """Apply the decision table to already-gathered inputs.

        ``now`` is the capture time used for drafts; the clock is read only
        when it is omitted.
        """
        revisions = sort_revisions(without_merges(revisions))
        complete = self.environment.history_complete

        if not revisions:
            if not tracked or complete:
                now = now or self.clock()
                return Resolved(
                    Provenance(slug, now, now, RULE_DRAFT),
                    cache_remove=not tracked and cached is not None,
                )
            if cached is None:
                return Inconsistent(slug, path, f"no commits visible for a tracked file; {MISSING_FROM_CACHE}")
            return self._from_cache(slug, path, cached)

        newest = revisions[0]
        oldest = revisions[-1]
        is_frontier = frontier is not None and newest.commit_id == frontier.commit_id

        if len(revisions) == 1 and is_frontier:
            published = cached.published if cached is not None else newest.timestamp
            return self._fresh(slug, path, published, newest.timestamp, RULE_FRESH)

        if len(revisions) == 1:
            if not complete:
                if cached is None:
                    return Inconsistent(slug, path, f"its only visible commit is not the newest; {MISSING_FROM_CACHE}")
                return self._from_cache(slug, path, cached)
            published = cached.published if cached is not None else newest.timestamp
            return self._fresh(slug, path, published, newest.timestamp, RULE_SINGLE)

        if not complete and cached is None:
            return Inconsistent(slug, path, f"it has {len(revisions)} visible commits; {MISSING_FROM_CACHE}")
        published = cached.published if cached is not None else oldest.timestamp
        if complete or is_frontier or cached is None:
            last_updated = newest.timestamp
        else:
            last_updated = cached.last_updated
        return self._fresh(slug, path, published, last_updated, RULE_HISTORY)

    def _fresh(
        self, slug: str, path: str, published: dt.datetime, last_updated: dt.datetime, rule: str
    ) -> Outcome:
        if published > last_updated:
            return Inconsistent(
                slug,
                path,
                f"published {iso_date(published)} is after last update {iso_date(last_updated)}",
            )
        entry = ProvenanceEntry(slug, published, last_updated)
        return Resolved(Provenance(slug, published, last_updated, rule), cache_write=entry)

    def _from_cache(self, slug: str, path: str, cached: ProvenanceEntry) -> Outcome:
        if cached.published > cached.last_updated:
            return Inconsistent(slug, path, "cached published date is after its last update")
        return Resolved(Provenance(slug, cached.published, cached.last_updated, RULE_CACHED))

    def resolve(self, slug: str, path: str) -> Provenance:
        """Resolve the dates for one slug, updating the cache if allowed.

        Raises :class:`ProvenanceInconsistency` when the dates cannot be
        derived, and lets :class:`RevisionAccessError` from the history
        client propagate.
        """
        frontier = self.frontier()
        revisions = self.history.revisions_for(path)
        now = self.clock()
        tracked = True
        if not revisions:
            tracked = self.history.is_tracked(path)

        with self._slug_lock(slug):
            outcome = self.decide(slug, path, revisions, frontier, self.cache.lookup(slug), tracked=tracked, now=now)
            if isinstance(outcome, Inconsistent):
                raise outcome.error()
            provenance = outcome.provenance
            if provenance.is_draft:
                logger.info("%s has no commits yet, treating it as a draft", path)
            if outcome.cache_remove and self.cache_writable:
                logger.info("%s is no longer tracked, dropping its cache entry", path)
                self.cache.remove(slug)
            elif outcome.cache_write is not None and self.cache_writable:
                self.cache.upsert(outcome.cache_write)
        return provenance
