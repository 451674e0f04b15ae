from __future__ import annotations

import datetime as dt
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .config import EnvironmentClassification
from .content import ContentRecord, ContentStore
from .dates import RULE_DRAFT, DateResolver, Provenance
from .errors import RevisionAccessError
from .render import render_markdown, strip_tags
from .tags import TagVocabulary
from .utils import join_url

logger = logging.getLogger(__name__)

SUMMARY_LENGTH = 200


@dataclass(frozen=True)
class ResolvedRecord:
    record: ContentRecord
    provenance: Provenance
    html: str
    url: str
    summary: str

    @property
    def slug(self) -> str:
        return self.record.slug

    @property
    def published(self) -> dt.datetime:
        return self.provenance.published

    @property
    def last_updated(self) -> dt.datetime:
        return self.provenance.last_updated

    def to_dict(self) -> dict:
        data = {
            "slug": self.record.slug,
            "path": self.record.path,
            "title": self.record.title,
            "description": self.record.description,
            "summary": self.summary,
            "tags": list(self.record.tags),
            "url": self.url,
        }
        data.update(self.provenance.to_json())
        if self.record.social_image:
            data["socialImage"] = self.record.social_image
            data["socialImageAlt"] = self.record.social_image_alt or ""
        return data


def summarize(record: ContentRecord, html_content: str) -> str:
    if record.description:
        return record.description
    summary = strip_tags(html_content).strip().replace("\n", " ")
    return summary[:SUMMARY_LENGTH] + ("..." if len(summary) > SUMMARY_LENGTH else "")


class ContentAssembler:
    def __init__(
        self,
        store: ContentStore,
        resolver: DateResolver,
        vocabulary: Optional[TagVocabulary] = None,
        renderer: Callable[[str], str] = render_markdown,
        workers: int = 1,
        site_url: str = "",
        url_prefix: str = "blog",
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.vocabulary = vocabulary
        self.renderer = renderer
        self.workers = max(1, workers)
        self.site_url = site_url
        self.url_prefix = url_prefix

    def url_for(self, record: ContentRecord) -> str:
        if record.canonical_url:
            return record.canonical_url
        return join_url(self.site_url, f"{self.url_prefix}/{record.slug}")

    def dates_for(self, record: ContentRecord) -> Provenance:
        try:
            return self.resolver.resolve(record.slug, record.path)
        except RevisionAccessError as exc:
            if self.resolver.environment is not EnvironmentClassification.LOCAL_DEVELOPMENT:
                raise
            logger.warning("%s. Treating %s as a draft.", exc, record.path)
            now = self.resolver.clock()
            return Provenance(record.slug, now, now, RULE_DRAFT)

    def assemble(self, record: ContentRecord) -> ResolvedRecord:
        provenance = self.dates_for(record)
        html_content = self.renderer(record.raw_body)
        return ResolvedRecord(
            record=record,
            provenance=provenance,
            html=html_content,
            url=self.url_for(record),
            summary=summarize(record, html_content),
        )

    def load(self, slug: str) -> ResolvedRecord:
        record = self.store.read(slug)
        if self.vocabulary is not None:
            self.vocabulary.check(record)
        return self.assemble(record)

    def assemble_all(self) -> list[ResolvedRecord]:
        records = list(self.store)
        if self.vocabulary is not None:
            self.vocabulary.validate(records)

        workers = min(self.workers, len(records)) if records else 1
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                resolved = list(executor.map(self.assemble, records))
        else:
            resolved = [self.assemble(record) for record in records]
        return sort_newest_first(resolved)


def sort_newest_first(records: Iterable[ResolvedRecord]) -> list[ResolvedRecord]:
    ordered = sorted(records, key=lambda item: item.slug)
    return sorted(ordered, key=lambda item: item.published, reverse=True)


def published_before(records: Iterable[ResolvedRecord], moment: dt.datetime) -> list[ResolvedRecord]:
    return [item for item in records if not item.provenance.is_draft and item.published < moment]


def group_by_tag(records: Iterable[ResolvedRecord]) -> dict[str, list[ResolvedRecord]]:
    groups: dict[str, list[ResolvedRecord]] = {}
    for item in records:
        for tag in item.record.tags:
            groups.setdefault(tag, []).append(item)
    return dict(sorted(groups.items(), key=lambda pair: pair[0].lower()))
