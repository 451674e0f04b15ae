from __future__ import annotations

import datetime as dt
import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Protocol

from .errors import RevisionAccessError
from .utils import parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_MERGE_PATTERN = r"^Merge (branch|pull request|remote-tracking branch)\b"

FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
LOG_FORMAT = f"--format=%H{FIELD_SEP}%P{FIELD_SEP}%aI{FIELD_SEP}%s{RECORD_SEP}"


@dataclass(frozen=True)
class Revision:
    commit_id: str
    timestamp: dt.datetime
    is_merge: bool = False
    message: str = ""


class RevisionHistoryClient(Protocol):
    def revisions_for(self, path: str) -> list[Revision]:
        """Non-merge revisions touching ``path``, newest first."""

    def branch_revisions(self) -> list[Revision]:
        """Non-merge revisions of the tracked branch, newest first."""

    def is_history_complete(self) -> bool:
        ...

    def is_tracked(self, path: str) -> bool:
        ...


def sort_revisions(revisions: Iterable[Revision]) -> list[Revision]:
    return sorted(revisions, key=lambda rev: rev.timestamp, reverse=True)


def without_merges(revisions: Iterable[Revision]) -> list[Revision]:
    return [rev for rev in revisions if not rev.is_merge]


def compile_merge_pattern(pattern: Optional[str]) -> Optional[re.Pattern]:
    if not pattern:
        return None
    return re.compile(pattern)


def parse_log(text: str, merge_pattern: Optional[re.Pattern] = None) -> list[Revision]:
    """Parse ``git log`` output produced with :data:`LOG_FORMAT`.

    A commit counts as a merge when it has more than one parent or its
    subject matches ``merge_pattern``. Merges are kept here and flagged;
    callers filter them.
    """
    revisions = []
    for record in text.split(RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue
        parts = record.split(FIELD_SEP)
        if len(parts) != 4:
            raise ValueError(f"unexpected git log record: {record!r}")
        commit_id, parents, timestamp, subject = parts
        is_merge = len(parents.split()) > 1
        if merge_pattern is not None and merge_pattern.search(subject):
            is_merge = True
        revisions.append(
            Revision(
                commit_id=commit_id.strip(),
                timestamp=parse_timestamp(timestamp),
                is_merge=is_merge,
                message=subject,
            )
        )
    return revisions


class GitHistory:
    """History of a local git checkout, read through the ``git`` binary."""

    def __init__(
        self,
        repo_root: Path,
        branch: str = "HEAD",
        merge_pattern: Optional[str] = DEFAULT_MERGE_PATTERN,
        origin_commit: Optional[str] = None,
        git: str = "git",
    ) -> None:
        self.repo_root = Path(repo_root)
        self.branch = branch or "HEAD"
        self.merge_pattern = compile_merge_pattern(merge_pattern)
        self.origin_commit = (origin_commit or "").strip() or None
        self.git = git
        self._boundaries: Optional[frozenset[str]] = None

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        command = [self.git, *args]
        logger.debug("Running %s", " ".join(command))
        try:
            return subprocess.run(
                command,
                cwd=str(self.repo_root),
                capture_output=True,
                text=True,
                encoding="utf-8",
            )
        except OSError as exc:
            raise RevisionAccessError(" ".join(command), str(exc)) from exc

    def _git(self, *args: str) -> str:
        result = self._run(*args)
        if result.returncode != 0:
            raise RevisionAccessError(
                " ".join([self.git, *args]),
                result.stderr.strip() or f"exit status {result.returncode}",
            )
        return result.stdout

    def _log(self, *extra: str) -> list[Revision]:
        output = self._git("log", LOG_FORMAT, self.branch, *extra)
        try:
            revisions = parse_log(output, self.merge_pattern)
        except ValueError as exc:
            raise RevisionAccessError("git log", str(exc)) from exc
        return sort_revisions(without_merges(revisions))

    def shallow_boundaries(self) -> frozenset[str]:
        if self._boundaries is None:
            shallow_file = Path(self._git("rev-parse", "--git-path", "shallow").strip())
            if not shallow_file.is_absolute():
                shallow_file = self.repo_root / shallow_file
            if shallow_file.exists():
                lines = shallow_file.read_text(encoding="utf-8").split()
                self._boundaries = frozenset(line.strip() for line in lines if line.strip())
            else:
                self._boundaries = frozenset()
        return self._boundaries

    def revisions_for(self, path: str) -> list[Revision]:
        boundaries = self.shallow_boundaries()
        revisions = self._log("--", path)
        # a boundary commit's diff against its missing parent lists every file
        return [rev for rev in revisions if rev.commit_id not in boundaries]

    def branch_revisions(self) -> list[Revision]:
        return self._log()

    def is_tracked(self, path: str) -> bool:
        return bool(self._git("ls-files", "--", path).strip())

    def is_history_complete(self) -> bool:
        if self.origin_commit:
            self._git("rev-parse", "--git-dir")
            result = self._run("cat-file", "-e", f"{self.origin_commit}^{{commit}}")
            return result.returncode == 0
        answer = self._git("rev-parse", "--is-shallow-repository").strip()
        if answer in {"true", "false"}:
            return answer == "false"
        return not self.shallow_boundaries()
