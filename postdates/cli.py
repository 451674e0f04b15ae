from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path

from .assemble import ContentAssembler, ResolvedRecord, group_by_tag, published_before
from .cache import ProvenanceCache
from .config import check_environment, classify_environment, load_config, resolve_cache_writes
from .content import ContentStore
from .dates import DateResolver
from .errors import ConfigError, PostdatesError
from .history import DEFAULT_MERGE_PATTERN, GitHistory
from .render import highlight_css, write_json, write_text
from .tags import TagVocabulary
from .utils import parse_int, utc_now

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def resolve_path(value: str, base: Path) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = base / path
    return path


def build_workers(value: int) -> int:
    if value <= 0:
        value = os.cpu_count() or 1
    return max(1, min(value, 32))


def configure_logging(level_name: str) -> None:
    level = logging.getLevelName(str(level_name).strip().upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level: {level_name!r}")
    logging.basicConfig(level=level, format=LOG_FORMAT)


def write_output(output_dir: Path, records: list[ResolvedRecord]) -> None:
    write_json(output_dir / "content.json", [item.to_dict() for item in records])
    feed = published_before(records, utc_now())
    write_json(output_dir / "feed.json", [item.to_dict() for item in feed])
    for item in records:
        write_text(output_dir / "posts" / f"{item.slug}.html", item.html)
    tag_index = {tag: [item.slug for item in items] for tag, items in group_by_tag(records).items()}
    write_json(output_dir / "tags.json", tag_index)
    write_text(output_dir / "highlight.css", highlight_css())


def build_site(args: argparse.Namespace) -> list[ResolvedRecord]:
    project_root = Path(args.repo_root).resolve()
    posts_dir = resolve_path(args.posts, project_root)
    if not posts_dir.exists():
        raise ConfigError(f"Posts directory not found: {posts_dir}")

    environment = classify_environment(override=args.environment)
    history = GitHistory(
        project_root,
        branch=args.branch,
        merge_pattern=args.merge_pattern,
        origin_commit=args.origin_commit,
    )
    check_environment(environment, history.is_history_complete())
    cache = ProvenanceCache(resolve_path(args.cache_file, project_root))
    cache_writable = resolve_cache_writes(args.cache_writes, environment)
    logger.info(
        "Environment: %s (cache %s)",
        environment.value,
        "read-write" if cache_writable else "read-only",
    )

    resolver = DateResolver(history, cache, environment, cache_writable=cache_writable)
    vocabulary = None
    if args.tags_file:
        vocabulary = TagVocabulary.load(resolve_path(args.tags_file, project_root))
    assembler = ContentAssembler(
        ContentStore(posts_dir, repo_root=project_root),
        resolver,
        vocabulary=vocabulary,
        workers=build_workers(args.build_workers),
        site_url=args.site_url,
    )
    records = assembler.assemble_all()
    if not args.check:
        write_output(resolve_path(args.output, project_root), records)
    return records


def main(argv: list[str] | None = None) -> None:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument(
        "--config",
        default="site.toml",
        help="Path to site config file (TOML/YAML/JSON).",
    )
    pre_args, _ = pre_parser.parse_known_args(argv)
    try:
        config = load_config(Path(pre_args.config))
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)

    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        value = cfg_value(key, default)
        return default if value is None else str(value)

    def cfg_int(key: str, default: int) -> int:
        value = cfg_value(key, default)
        return parse_int(value, default)

    parser = argparse.ArgumentParser(description="Resolve post dates from git history and build content.")
    parser.add_argument("--config", default=pre_args.config, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--repo-root", default=cfg_str("repo_root", "."), help="Root of the site's git repository.")
    parser.add_argument("--posts", default=cfg_str("posts", "blog"), help="Directory containing Markdown posts.")
    parser.add_argument("--output", default=cfg_str("output", "dist"), help="Output directory for the build.")
    parser.add_argument(
        "--cache-file",
        default=cfg_str("cache_file", "caches/posts.json"),
        help="Path to the provenance cache JSON.",
    )
    parser.add_argument(
        "--tags-file",
        default=cfg_str("tags_file", "tags/data.json"),
        help="Path to the tag vocabulary JSON (empty to skip tag validation).",
    )
    parser.add_argument("--branch", default=cfg_str("branch", "HEAD"), help="Branch whose history is tracked.")
    parser.add_argument(
        "--origin-commit",
        default=cfg_str("origin_commit", ""),
        help="First commit of the repository; its absence marks a shallow clone.",
    )
    parser.add_argument(
        "--merge-pattern",
        default=cfg_str("merge_pattern", DEFAULT_MERGE_PATTERN),
        help="Regular expression for commit subjects that count as merges.",
    )
    parser.add_argument(
        "--environment",
        default=cfg_str("environment", "auto"),
        help="Build environment: auto, development, full or shallow.",
    )
    parser.add_argument(
        "--cache-writes",
        default=cfg_str("cache_writes", "auto"),
        help="Whether the cache may be updated: auto, true or false.",
    )
    parser.add_argument(
        "--build-workers",
        default=cfg_int("build_workers", 0),
        type=int,
        help="Number of worker threads for resolving and rendering (0 = auto).",
    )
    parser.add_argument("--site-url", default=cfg_str("site_url", ""), help="Public site URL for post links.")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Resolve and validate everything without writing output.",
    )
    parser.add_argument(
        "--log-level",
        default=cfg_str("log_level", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    args = parser.parse_args(argv)

    start = time.perf_counter()
    try:
        configure_logging(args.log_level)
        records = build_site(args)
    except PostdatesError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    elapsed = time.perf_counter() - start
    drafts = sum(1 for item in records if item.provenance.is_draft)
    print(f"Resolved {len(records)} posts ({drafts} drafts) in {elapsed:.2f}s.")
    if not args.check:
        print(f"Content written to: {args.output}")
