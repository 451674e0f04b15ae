from __future__ import annotations

import enum
import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import yaml

from .errors import ConfigError, EnvironmentMismatch
from .utils import parse_bool

try:
    import tomllib as toml
except ImportError:
    try:
        import tomli as toml
    except ImportError:  # pragma: no cover - optional dependency
        toml = None

logger = logging.getLogger(__name__)

VERCEL_ENVS = {"preview", "production"}


class EnvironmentClassification(enum.Enum):
    LOCAL_DEVELOPMENT = "development"
    FULL_HISTORY_BUILD = "full"
    SHALLOW_HISTORY_BUILD = "shallow"

    @property
    def history_complete(self) -> bool:
        return self is not EnvironmentClassification.SHALLOW_HISTORY_BUILD

    @property
    def writes_cache_by_default(self) -> bool:
        return self is not EnvironmentClassification.SHALLOW_HISTORY_BUILD

    @classmethod
    def parse(cls, value: str) -> "EnvironmentClassification":
        text = value.strip().lower()
        aliases = {
            "dev": cls.LOCAL_DEVELOPMENT,
            "local": cls.LOCAL_DEVELOPMENT,
            "ci": cls.FULL_HISTORY_BUILD,
            "production": cls.SHALLOW_HISTORY_BUILD,
            "preview": cls.SHALLOW_HISTORY_BUILD,
        }
        if text in aliases:
            return aliases[text]
        for member in cls:
            if member.value == text or member.name.lower() == text:
                return member
        raise ConfigError(f"Unknown environment: {value!r}")


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        if toml is None:
            raise ConfigError("TOML config requires tomllib (Python 3.11+) or tomli.")
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config must be a mapping: {path}")
    return data


def classify_environment(
    environ: Optional[Mapping[str, str]] = None, override: str = "auto"
) -> EnvironmentClassification:
    """Work out which kind of build this process is.

    An explicit ``override`` (or ``POSTDATES_ENV``) wins. Otherwise a Vercel
    build is a shallow clone, ``NODE_ENV=development`` or ``POSTDATES_DEV``
    marks a local development server, and anything else is a build with
    full history.
    """
    environ = os.environ if environ is None else environ
    override = (override or "auto").strip()
    if override.lower() != "auto":
        return EnvironmentClassification.parse(override)
    explicit = (environ.get("POSTDATES_ENV") or "").strip()
    if explicit and explicit.lower() != "auto":
        return EnvironmentClassification.parse(explicit)

    vercel = environ.get("VERCEL_ENV")
    if vercel:
        if vercel not in VERCEL_ENVS:
            raise EnvironmentMismatch("shallow", f"unexpected VERCEL_ENV: {vercel!r}")
        return EnvironmentClassification.SHALLOW_HISTORY_BUILD

    if environ.get("NODE_ENV") == "development" or parse_bool(environ.get("POSTDATES_DEV")):
        return EnvironmentClassification.LOCAL_DEVELOPMENT
    return EnvironmentClassification.FULL_HISTORY_BUILD


def check_environment(environment: EnvironmentClassification, history_complete: bool) -> None:
    if environment.history_complete and not history_complete:
        raise EnvironmentMismatch(
            environment.value,
            "the origin commit is not reachable (is this a shallow clone?)",
        )
    if not environment.history_complete and history_complete:
        logger.warning("Found the origin commit but was expecting a shallow clone; dates still come from the cache")


def resolve_cache_writes(value: object, environment: EnvironmentClassification) -> bool:
    if value is None or (isinstance(value, str) and value.strip().lower() in {"", "auto"}):
        return environment.writes_cache_by_default
    return parse_bool(value)
