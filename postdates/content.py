from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import yaml

from .errors import ConfigError

FRONT_MATTER_FENCE = "---"
OPTIONAL_FIELDS = {
    "canonical_url": ("canonicalUrl", "canonical_url", "canonical"),
    "social_image": ("socialImage", "social_image", "image"),
    "social_image_alt": ("socialImageAlt", "social_image_alt", "imageAlt", "image_alt"),
}


@dataclass(frozen=True)
class ContentRecord:
    slug: str
    path: str
    title: str
    description: str
    tags: tuple[str, ...]
    raw_body: str
    canonical_url: Optional[str] = None
    social_image: Optional[str] = None
    social_image_alt: Optional[str] = None


def parse_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value if item is not None]
    else:
        text = str(value).strip()
        if text.startswith("[") and text.endswith("]"):
            text = text[1:-1]
        items = [item.strip().strip("'\"") for item in text.split(",")]
    seen = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return seen


def parse_front_matter(text: str) -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_FENCE:
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == FRONT_MATTER_FENCE:
            end = i
            break
    if end is None:
        return {}, clean_text

    meta = yaml.safe_load("\n".join(lines[1:end])) or {}
    if not isinstance(meta, dict):
        raise ValueError("front matter must be a mapping")
    body = "\n".join(lines[end + 1 :])
    return meta, body


def extract_title(meta: dict, body: str) -> tuple[str, str]:
    if meta.get("title"):
        return str(meta["title"]), body
    lines = body.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip() or "Untitled"
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    return "Untitled", body


def _optional(meta: dict, keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = meta.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


class ContentStore:
    """Markdown files under one content root, one file per slug.

    ``repo_root`` is used to express each file's path relative to the git
    repository, which is how the history client addresses it.
    """

    def __init__(self, root: Path, repo_root: Optional[Path] = None, suffix: str = ".md") -> None:
        self.root = Path(root)
        self.repo_root = Path(repo_root) if repo_root is not None else self.root.parent
        self.suffix = suffix

    def slugs(self) -> list[str]:
        if not self.root.exists():
            return []
        names = [path.name for path in self.root.iterdir() if path.is_file() and path.name.endswith(self.suffix)]
        return sorted(name[: -len(self.suffix)] for name in names)

    def file_for(self, slug: str) -> Path:
        return self.root / f"{slug}{self.suffix}"

    def relative_path(self, slug: str) -> str:
        path = self.file_for(slug)
        try:
            return path.resolve().relative_to(self.repo_root.resolve()).as_posix()
        except ValueError:
            return path.as_posix()

    def read(self, slug: str) -> ContentRecord:
        path = self.file_for(slug)
        text = path.read_text(encoding="utf-8")
        try:
            meta, body = parse_front_matter(text)
        except (yaml.YAMLError, ValueError) as exc:
            raise ConfigError(f"Invalid front matter in {path}: {exc}") from exc
        title, body = extract_title(meta, body)
        return ContentRecord(
            slug=slug,
            path=self.relative_path(slug),
            title=title,
            description=str(meta.get("description") or "").strip(),
            tags=tuple(parse_list(meta.get("tags"))),
            raw_body=body,
            canonical_url=_optional(meta, OPTIONAL_FIELDS["canonical_url"]),
            social_image=_optional(meta, OPTIONAL_FIELDS["social_image"]),
            social_image_alt=_optional(meta, OPTIONAL_FIELDS["social_image_alt"]),
        )

    def __iter__(self) -> Iterator[ContentRecord]:
        for slug in self.slugs():
            yield self.read(slug)
