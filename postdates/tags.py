from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .content import ContentRecord
from .errors import ValidationError


@dataclass(frozen=True)
class Tag:
    name: str
    short: str = ""
    long: str = ""

    def to_json(self) -> dict:
        return {"name": self.name, "description": {"short": self.short, "long": self.long}}


class TagVocabulary:
    """The closed list of tags content is allowed to use."""

    def __init__(self, tags: Iterable[Tag], source: str = "<memory>") -> None:
        self.tags = {tag.name: tag for tag in tags}
        self.source = source

    @classmethod
    def load(cls, path: Path) -> "TagVocabulary":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ValidationError("", str(path), f"Could not read tag vocabulary {path}: {exc}") from exc
        if not isinstance(data, list):
            raise ValidationError("", str(path), f"Tag vocabulary {path} must be a JSON list")
        tags = []
        for item in data:
            if isinstance(item, str):
                tags.append(Tag(item))
                continue
            if not isinstance(item, dict) or not item.get("name"):
                raise ValidationError("", str(path), f"Malformed tag in {path}: {item!r}")
            description = item.get("description") or {}
            if isinstance(description, str):
                description = {"short": description}
            tags.append(
                Tag(
                    name=str(item["name"]),
                    short=str(description.get("short", "")),
                    long=str(description.get("long", "")),
                )
            )
        return cls(tags, source=str(path))

    def __contains__(self, name: object) -> bool:
        return name in self.tags

    def __len__(self) -> int:
        return len(self.tags)

    def check(self, record: ContentRecord) -> None:
        for tag in record.tags:
            if tag not in self.tags:
                raise ValidationError(
                    tag,
                    record.path,
                    f'Tag "{tag}" in {record.path} not found in list of tags at {self.source}',
                )

    def validate(self, records: Iterable[ContentRecord]) -> None:
        for record in records:
            self.check(record)
