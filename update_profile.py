#!/usr/bin/env python3
"""
Dynamic profile card updater.

Features:
- Age
- Repo / contributed repo count
- Star count
- Follower count
- Contributions (commit graph)
- Lines of Code (add/del/net; heavy, backed by the per-user LOC cache)

Environment Variables:
  ACCESS_TOKEN             : Personal token. Falls back to GITHUB_TOKEN in Actions.
  USER_NAME                : GitHub login. Defaults to actor / repository owner.
  DATE_OF_BIRTH            : YYYY-MM-DD. BIRTHDATE is accepted as an alias.
  DO_HEAVY                 : '1' => run LOC cache reconciliation. '0' => skip it.
  FORCE_CACHE              : '1' => recount every repository.
  DEBUG                    : '1' => print [DEBUG] lines.
  GQL_MAX_RETRIES          : attempts per GraphQL call (default 3).
  GQL_RETRY_BACKOFF        : backoff base in seconds (default 1.5).
  CACHE_DIR                : LOC cache directory (default 'cache').
  SVG_FILES                : comma-separated templates (default dark_mode.svg,light_mode.svg).

SVG IDs updated:
  age_data, repo_data, star_data, commit_data, contrib_data, follower_data,
  loc_data, loc_add, loc_del (and their *_dots leaders)
"""

from __future__ import annotations
import os
import sys
import time
import datetime
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from dateutil import relativedelta
from lxml import etree

import github_api
import loc_cache
import svg_update

DEFAULT_SVG_FILES = ["dark_mode.svg", "light_mode.svg"]


class ConfigError(Exception):
    pass


@dataclass
class Config:
    user_name: str
    access_token: str
    birthdate: datetime.datetime
    do_heavy: bool = True
    force_cache: bool = False
    debug: bool = False
    max_retries: int = 3
    retry_backoff: float = 1.5
    cache_dir: str = "cache"
    svg_files: Optional[List[str]] = None


def load_config(env: Mapping[str, str] = os.environ) -> Config:
    repository = env.get("GITHUB_REPOSITORY", "")
    default_owner = repository.split("/")[0] if "/" in repository else ""
    user_name = env.get("USER_NAME") or env.get("GITHUB_ACTOR") or default_owner
    if not user_name:
        raise ConfigError("Cannot infer USER_NAME. Set USER_NAME env variable.")
    token = env.get("ACCESS_TOKEN") or env.get("GITHUB_TOKEN")
    if not token:
        raise ConfigError("missing required environment variable ACCESS_TOKEN")

    dob = env.get("DATE_OF_BIRTH") or env.get("BIRTHDATE")
    if not dob:
        raise ConfigError("DATE_OF_BIRTH is not set (expected YYYY-MM-DD)")
    try:
        birthdate = datetime.datetime.strptime(dob, "%Y-%m-%d")
    except ValueError:
        raise ConfigError(f"Invalid DATE_OF_BIRTH {dob!r}. Expected YYYY-MM-DD.")

    try:
        max_retries = int(env.get("GQL_MAX_RETRIES", "3"))
        retry_backoff = float(env.get("GQL_RETRY_BACKOFF", "1.5"))
    except ValueError as e:
        raise ConfigError(f"Invalid retry setting: {e}")

    svg_files = [s.strip() for s in env.get("SVG_FILES", "").split(",") if s.strip()]
    return Config(
        user_name=user_name,
        access_token=token,
        birthdate=birthdate,
        do_heavy=env.get("DO_HEAVY", "1") == "1",
        force_cache=env.get("FORCE_CACHE", "0") == "1",
        debug=env.get("DEBUG", "0") == "1",
        max_retries=max_retries,
        retry_backoff=retry_backoff,
        cache_dir=env.get("CACHE_DIR", "cache"),
        svg_files=svg_files or list(DEFAULT_SVG_FILES),
    )


# ------------------ Utility Functions ------------------
def plural(n: int) -> str:
    return "s" if n != 1 else ""


def rel_age(birthday: datetime.datetime, today: Optional[datetime.datetime] = None) -> str:
    today = today or datetime.datetime.today()
    diff = relativedelta.relativedelta(today.date(), birthday.date())
    years, months, days = (diff.years, diff.months, diff.days) if today.date() >= birthday.date() else (0, 0, 0)
    return f"{years} year{plural(years)}, {months} month{plural(months)}, {days} day{plural(days)}"


class Timer:
    """Prints how long a phase took."""

    def __init__(self, phase: str, extra: str = ""):
        self.phase = phase
        self.extra = extra

    def __enter__(self):
        self.t0 = time.time()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            suffix = f" {self.extra}" if self.extra else ""
            print(f"[TIME] {self.phase}: {time.time() - self.t0:.4f}s{suffix}")
        return False


def log_summary(result: loc_cache.ReconcileResult):
    summary = result.summary
    if summary.new_repos:
        print(f"[INFO] new repos: {summary.new_repos}")
    if summary.deleted_hashes:
        print(f"[INFO] deleted repos: {summary.deleted_hashes}")
    if summary.changed:
        print(f"[INFO] repos with changed commits: {[str(c) for c in summary.changed]} "
              f"lines_added={summary.lines_added} lines_removed={summary.lines_removed}")


def build_elements(age: str, commits: int, stars: int, repos: int, contrib: int,
                   followers: int, loc: Optional[loc_cache.ReconcileResult]) -> Dict[str, str]:
    elements = {
        "age_data": age,
        "commit_data": svg_update.format_int(commits),
        "star_data": svg_update.format_int(stars),
        "repo_data": svg_update.format_int(repos),
        "contrib_data": svg_update.format_int(contrib),
        "follower_data": svg_update.format_int(followers),
    }
    if loc is not None:
        elements.update({
            "loc_data": svg_update.format_int(loc.net),
            "loc_add": svg_update.format_int(loc.additions),
            "loc_del": svg_update.format_int(loc.deletions),
        })
    else:
        # heavy scan skipped
        elements.update({"loc_data": "--", "loc_add": "0", "loc_del": "0"})
    return elements


def update_svgs(svg_files: List[str], elements: Dict[str, str]):
    for svg_file in svg_files:
        if not os.path.exists(svg_file):
            print(f"[WARN] {svg_file} not found; skipping.")
            continue
        svg_update.svg_overwrite(svg_file, elements)


# ------------------ Main ------------------
def run(cfg: Config) -> int:
    def debug(msg: str):
        if cfg.debug:
            print(f"[DEBUG] {msg}")

    client = github_api.GraphQLClient(cfg.access_token, cfg.max_retries, cfg.retry_backoff, log_fn=debug)
    phase = "account_data"
    try:
        print("Collecting stats...")
        t0 = time.time()
        with Timer(phase):
            user_id, created = github_api.user_getter(client, cfg.user_name)

        phase = "age_calculation"
        with Timer(phase):
            age_str = rel_age(cfg.birthdate)

        phase = "graph_commits"
        with Timer(phase):
            commits = github_api.graph_commits(
                client, cfg.user_name, github_api.parse_github_datetime(created),
                datetime.datetime.now(datetime.timezone.utc))

        phase = "repos_and_stars"
        with Timer(phase):
            owned_repos, stars, contrib_repos = github_api.get_repos_and_stars(client, cfg.user_name)

        loc = None
        if cfg.do_heavy:
            phase = "loc_cache_builder"
            print("Running heavy scan (LOC)...")
            store = loc_cache.CacheStore(loc_cache.cache_path_for(cfg.user_name, cfg.cache_dir))
            timer = Timer(phase)
            with timer:
                loc = loc_cache.reconcile(github_api.GitHubFetcher(client, cfg.user_name), store,
                                          user_id, force=cfg.force_cache, log_fn=debug)
                timer.extra = f"cached={str(loc.cached).lower()}"
            log_summary(loc)

        phase = "follower_count"
        with Timer(phase):
            followers = github_api.get_followers(client, cfg.user_name)
    except (github_api.GraphQLError, OSError) as e:
        print(f"[ERROR] {phase} failed: {e}", file=sys.stderr)
        return 1
    except (KeyError, TypeError, ValueError) as e:
        # payload without an errors block but missing the expected fields
        print(f"[ERROR] {phase} failed: unexpected response ({type(e).__name__}: {e})", file=sys.stderr)
        return 1

    elements = build_elements(age_str, commits, stars, owned_repos, contrib_repos, followers, loc)
    try:
        update_svgs(cfg.svg_files or DEFAULT_SVG_FILES, elements)
    except (OSError, etree.XMLSyntaxError) as e:
        print(f"[ERROR] svg_overwrite failed: {e}", file=sys.stderr)
        return 1

    print("Done in {:.2f}s".format(time.time() - t0))
    print("GraphQL query counts:", client.counter.snapshot())
    print(f"Total GraphQL calls: {client.counter.total()}")
    return 0


def main() -> int:
    try:
        cfg = load_config()
    except ConfigError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    return run(cfg)


if __name__ == "__main__":
    raise SystemExit(main())
