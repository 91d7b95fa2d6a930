"""
Per-user lines-of-code cache and the reconciliation that keeps it current.

Cache file layout (UTF-8, one entry per line):

    lines 1..CACHE_COMMENT_LINES   header, preserved verbatim across saves
    remaining lines                <sha256(owner/name)> <commitCount> <myCommits> <additions> <deletions>

Record lines with fewer than five fields or non-integer counts are skipped
on load. Records are keyed by the hash of the repository's current name, so
a renamed repository shows up as one deleted hash plus one new repository.
"""

from __future__ import annotations
import os
import hashlib
import tempfile
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from github_api import ALL_AFFILIATIONS

CACHE_COMMENT_LINES = 7
DEFAULT_HEADER = [
    "# Cache File for LOC / Commit Stats",
    "# Format: sha256(repo) totalCommits myCommits additions deletions",
    "# Records are rewritten on every run; header lines are kept as-is.",
    "# comment",
    "# comment",
    "# comment",
    "# comment",
]


def repo_hash(full_name: str) -> str:
    return hashlib.sha256(full_name.encode("utf-8")).hexdigest()


def cache_path_for(user_name: str, cache_dir: str = "cache") -> str:
    return os.path.join(cache_dir, hashlib.sha256(user_name.encode("utf-8")).hexdigest() + ".txt")


@dataclass
class CacheRecord:
    hash: str
    commit_count: int = 0  # all authors, default branch
    my_commits: int = 0
    additions: int = 0
    deletions: int = 0

    def to_line(self) -> str:
        return f"{self.hash} {self.commit_count} {self.my_commits} {self.additions} {self.deletions}"

    @classmethod
    def from_line(cls, line: str) -> Optional["CacheRecord"]:
        fields = line.split()
        if len(fields) < 5:
            return None
        try:
            counts = [int(v) for v in fields[1:5]]
        except ValueError:
            return None
        return cls(fields[0], *counts)


class CacheStore:
    """Flat-file store for one user's CacheRecords."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Tuple[List[str], List[CacheRecord]]:
        if not os.path.exists(self.path):
            return list(DEFAULT_HEADER), []
        # undecodable bytes become malformed lines and are skipped below
        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.read().split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        header = lines[:CACHE_COMMENT_LINES]
        header += DEFAULT_HEADER[len(header):]
        by_hash: Dict[str, CacheRecord] = {}
        for line in lines[CACHE_COMMENT_LINES:]:
            record = CacheRecord.from_line(line)
            if record is not None:
                by_hash[record.hash] = record
        return header, list(by_hash.values())

    def save(self, header: Sequence[str], records: Sequence[CacheRecord]):
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        lines = list(header) + [r.to_line() for r in records]
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".cache-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write("\n".join(lines) + "\n")
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise


@dataclass
class RepoChange:
    name: str
    old_commits: int
    new_commits: int
    additions_delta: int
    deletions_delta: int

    def __str__(self) -> str:
        return f"{self.name} ({self.old_commits}->{self.new_commits})"


@dataclass
class ChangeSummary:
    new_repos: List[str] = field(default_factory=list)
    deleted_hashes: List[str] = field(default_factory=list)
    changed: List[RepoChange] = field(default_factory=list)

    @property
    def lines_added(self) -> int:
        return sum(c.additions_delta for c in self.changed)

    @property
    def lines_removed(self) -> int:
        return sum(c.deletions_delta for c in self.changed)

    def is_empty(self) -> bool:
        return not (self.new_repos or self.deleted_hashes or self.changed)


@dataclass
class ReconcileResult:
    records: List[CacheRecord]
    additions: int
    deletions: int
    my_commits: int
    cached: bool
    summary: ChangeSummary
    recounted: List[str] = field(default_factory=list)

    @property
    def net(self) -> int:
        return self.additions - self.deletions


def reconcile(fetcher, store: CacheStore, author_id: str,
              affiliations: Sequence[str] = ALL_AFFILIATIONS, force: bool = False,
              log_fn: Optional[Callable[[str], None]] = None) -> ReconcileResult:
    """Bring the cache in line with the user's current repositories.

    fetcher provides list_repositories, total_commit_count and
    author_commit_stats (see github_api.GitHubFetcher). A repository is
    recounted when it has no cached record, when force is set, or when its
    total commit count moved; otherwise its cached record is reused as-is.
    Any fetch error propagates before the store is written.
    """
    header, old_records = store.load()
    old_map = {r.hash: r for r in old_records}

    repos = fetcher.list_repositories(affiliations)

    new_records: List[CacheRecord] = []
    hash_to_repo: Dict[str, str] = {}
    recounted: List[str] = []
    for full in repos:
        h = repo_hash(full)
        if h in hash_to_repo:
            continue
        hash_to_repo[h] = full
        owner, name = full.split("/", 1)

        total = fetcher.total_commit_count(owner, name)
        old = old_map.get(h)
        if force or old is None or total != old.commit_count:
            my_commits, additions, deletions = fetcher.author_commit_stats(owner, name, author_id)
            record = CacheRecord(h, total, my_commits, additions, deletions)
            recounted.append(full)
        else:
            record = old
        if log_fn is not None:
            log_fn(f"[LOC] {full}: total={record.commit_count} my_commits={record.my_commits} "
                   f"add={record.additions} del={record.deletions} from_cache={record is old}")
        new_records.append(record)

    summary = ChangeSummary()
    for record in new_records:
        old = old_map.get(record.hash)
        if old is None:
            summary.new_repos.append(hash_to_repo[record.hash])
        elif old.commit_count != record.commit_count:
            summary.changed.append(RepoChange(
                hash_to_repo[record.hash], old.commit_count, record.commit_count,
                record.additions - old.additions, record.deletions - old.deletions))
    summary.deleted_hashes = [r.hash for r in old_records if r.hash not in hash_to_repo]

    store.save(header, new_records)

    return ReconcileResult(
        records=new_records,
        additions=sum(r.additions for r in new_records),
        deletions=sum(r.deletions for r in new_records),
        my_commits=sum(r.my_commits for r in new_records),
        # only the set size is compared; a one-for-one swap still counts as cached
        cached=len(new_records) == len(old_records) and not force,
        summary=summary,
        recounted=recounted,
    )
