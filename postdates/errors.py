from __future__ import annotations

from pathlib import Path


class PostdatesError(Exception):
    """Base class for every error the build reports to the user."""


class ConfigError(PostdatesError):
    pass


class RevisionAccessError(PostdatesError):
    def __init__(self, command: str, detail: str) -> None:
        self.command = command
        self.detail = detail
        super().__init__(f"Could not read git history ({command}): {detail}")


class ProvenanceInconsistency(PostdatesError):
    """Dates for a slug cannot be derived without guessing.

    Raised when a shallow clone needs a cache entry that was never written
    while full history was still visible.
    """

    def __init__(self, slug: str, path: str, reason: str) -> None:
        self.slug = slug
        self.path = path
        self.reason = reason
        super().__init__(f"Inconsistent provenance for {slug!r} ({path}): {reason}")


class CacheReadError(PostdatesError):
    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Unreadable provenance cache {path}: {detail}")


class ValidationError(PostdatesError):
    def __init__(self, tag: str, path: str, message: str = "") -> None:
        self.tag = tag
        self.path = path
        super().__init__(message or f'Tag "{tag}" in {path} not found in the tag vocabulary')


class EnvironmentMismatch(PostdatesError):
    def __init__(self, expected: str, detail: str) -> None:
        self.expected = expected
        self.detail = detail
        super().__init__(f"Environment looks wrong for a {expected} build: {detail}")
