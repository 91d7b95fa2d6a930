"""
GitHub GraphQL access for the profile card.

GraphQLClient owns the HTTP transport and the per-run query counters.
The module-level query functions take a client as their first argument;
GitHubFetcher binds a client to the three calls the LOC cache needs.
"""

from __future__ import annotations
import time
import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

GRAPHQL_URL = "https://api.github.com/graphql"

OWNER = "OWNER"
COLLABORATOR = "COLLABORATOR"
ORGANIZATION_MEMBER = "ORGANIZATION_MEMBER"
ALL_AFFILIATIONS = (OWNER, COLLABORATOR, ORGANIZATION_MEMBER)

REPO_LIST_PAGE_SIZE = 60
HISTORY_PAGE_SIZE = 100


class GraphQLError(RuntimeError):
    """Raised when a query fails at the HTTP or GraphQL level."""


class QueryCounter:
    """Counts GraphQL calls per operation for one run."""

    def __init__(self):
        self.counts: Dict[str, int] = {}

    def increment(self, name: str):
        self.counts[name] = self.counts.get(name, 0) + 1

    def total(self) -> int:
        return sum(self.counts.values())

    def snapshot(self) -> Dict[str, int]:
        return dict(self.counts)


class GraphQLClient:
    def __init__(self, token: Optional[str], max_retries: int = 3, retry_backoff: float = 1.5,
                 timeout: int = 40, log_fn: Optional[Callable[[str], None]] = None):
        self.headers: Dict[str, str] = {}
        if token:
            self.headers['authorization'] = f'token {token}'
            # Accept header helps GitHub route appropriately
            self.headers['Accept'] = 'application/vnd.github+json'
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff
        self.timeout = timeout
        self.log_fn = log_fn
        self.counter = QueryCounter()

    def log(self, msg: str):
        if self.log_fn is not None:
            self.log_fn(msg)

    def _backoff(self, attempt: int):
        time.sleep(self.retry_backoff ** attempt)

    def query(self, query: str, variables: Dict[str, Any], tag: str) -> Dict[str, Any]:
        """POST one query and return the decoded body.

        Retries on 502, GraphQL rate-limit messages and network errors;
        anything else raises GraphQLError straight away.
        """
        self.counter.increment(tag)
        for attempt in range(1, self.max_retries + 1):
            try:
                r = requests.post(
                    GRAPHQL_URL,
                    json={"query": query, "variables": variables},
                    headers=self.headers,
                    timeout=self.timeout
                )
            except requests.RequestException as e:
                transient = isinstance(e, (requests.Timeout, requests.ConnectionError))
                if transient and attempt < self.max_retries:
                    self.log(f"{tag}: network error {e}, retry {attempt}")
                    self._backoff(attempt)
                    continue
                raise GraphQLError(f"{tag} failed: {e}") from e
            if r.status_code == 502 and attempt < self.max_retries:  # transient
                self.log(f"{tag}: 502 Bad Gateway, retry {attempt}")
                self._backoff(attempt)
                continue
            if r.status_code != 200:
                raise GraphQLError(f"{tag} failed: {r.status_code} {r.text[:300]}")
            try:
                data = r.json()
            except ValueError as e:
                raise GraphQLError(f"{tag} returned invalid JSON: {r.text[:300]}") from e
            if data.get('errors'):
                messages = ' | '.join(e.get('message', '') for e in data['errors'])
                if 'rate limit' in messages.lower() and attempt < self.max_retries:
                    self.log(f"{tag}: rate limit encountered, backoff retry {attempt}")
                    self._backoff(attempt)
                    continue
                raise GraphQLError(f"{tag} GraphQL errors: {messages}")
            return data
        raise GraphQLError(f"{tag} failed after {self.max_retries} attempts")


# ------------------ Profile queries ------------------
def user_getter(client: GraphQLClient, login: str) -> Tuple[str, str]:
    """Return (node id, createdAt) for the login."""
    query = """
    query($login: String!){
      user(login: $login){
        id
        createdAt
      }
    }"""
    data = client.query(query, {"login": login}, "user_getter")
    u = data["data"]["user"]
    if u is None:
        raise GraphQLError(f"user_getter: no such user {login!r}")
    return u["id"], u["createdAt"]


def get_followers(client: GraphQLClient, login: str) -> int:
    query = """
    query($login: String!){
      user(login: $login){
        followers { totalCount }
      }
    }"""
    data = client.query(query, {"login": login}, "follower_getter")
    return data["data"]["user"]["followers"]["totalCount"]


def parse_github_datetime(value: str) -> datetime.datetime:
    return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))


def graph_commits(client: GraphQLClient, login: str, start: Optional[datetime.datetime],
                  end: datetime.datetime) -> int:
    """Sum contribution calendar totals between start and end.

    The API caps a contributionsCollection window at one year, so the range
    is walked in yearly steps. A missing start means the year before end.
    """
    query = """
    query($login: String!, $from: DateTime!, $to: DateTime!){
      user(login: $login){
        contributionsCollection(from: $from, to: $to){
          contributionCalendar{ totalContributions }
        }
      }
    }"""
    if start is None:
        start = end.replace(year=end.year - 1)
    if end < start:
        return 0
    total = 0
    cur = start
    while cur < end:
        try:
            nxt = cur.replace(year=cur.year + 1)
        except ValueError:  # Feb 29
            nxt = cur.replace(year=cur.year + 1, day=28)
        if nxt > end:
            nxt = end
        data = client.query(query, {"login": login, "from": cur.isoformat(), "to": nxt.isoformat()},
                            "graph_commits")
        coll = data["data"]["user"]["contributionsCollection"]
        total += coll["contributionCalendar"]["totalContributions"]
        cur = nxt
    return total


def get_repos_and_stars(client: GraphQLClient, login: str) -> Tuple[int, int, int]:
    """
    Returns (owned_repo_count, total_stars_on_owned, contributed_repo_count)
    contributed_repo_count counts OWNER + COLLABORATOR + ORGANIZATION_MEMBER
    """
    owned_query = """
    query($login: String!, $cursor: String){
      user(login: $login){
        repositories(first: 100, after: $cursor, ownerAffiliations: OWNER){
          totalCount
          edges{
            node{
              stargazers{ totalCount }
              nameWithOwner
            }
          }
          pageInfo{ endCursor hasNextPage }
        }
      }
    }"""
    stars = 0
    total_count = 0
    cursor = None
    while True:
        data = client.query(owned_query, {"login": login, "cursor": cursor}, "repos_stars")
        repos = data["data"]["user"]["repositories"]
        total_count = repos["totalCount"]
        for e in repos["edges"]:
            stars += e["node"]["stargazers"]["totalCount"]
        if not repos["pageInfo"]["hasNextPage"]:
            break
        cursor = repos["pageInfo"]["endCursor"]

    contrib_query = """
    query($login: String!){
      user(login: $login){
        repositories(first: 1, ownerAffiliations: [OWNER, COLLABORATOR, ORGANIZATION_MEMBER]){
          totalCount
        }
      }
    }"""
    data = client.query(contrib_query, {"login": login}, "repos_stars")
    contributed_total = data["data"]["user"]["repositories"]["totalCount"]

    return total_count, stars, contributed_total


# ------------------ LOC cache collaborators ------------------
def list_repositories(client: GraphQLClient, login: str, affiliations: Sequence[str]) -> List[str]:
    """All nameWithOwner strings visible under the affiliations, in API order."""
    query = """
    query($login: String!, $cursor: String, $affs: [RepositoryAffiliation]){
      user(login: $login){
        repositories(first: %d, after: $cursor, ownerAffiliations: $affs){
          edges{
            node{ nameWithOwner }
          }
          pageInfo{ endCursor hasNextPage }
        }
      }
    }""" % REPO_LIST_PAGE_SIZE
    cursor = None
    full_names: List[str] = []
    while True:
        data = client.query(query, {"login": login, "cursor": cursor, "affs": list(affiliations)},
                            "cache_builder")
        repos = data["data"]["user"]["repositories"]
        for e in repos["edges"]:
            full_names.append(e["node"]["nameWithOwner"])
        if not repos["pageInfo"]["hasNextPage"]:
            break
        cursor = repos["pageInfo"]["endCursor"]
    return full_names


def get_repo_commit_total(client: GraphQLClient, owner: str, repo: str) -> int:
    query = """
    query($owner: String!, $repo: String!){
      repository(owner: $owner, name: $repo){
        defaultBranchRef{
          target{
            ... on Commit {
              history(first: 0){ totalCount }
            }
          }
        }
      }
    }"""
    data = client.query(query, {"owner": owner, "repo": repo}, "repo_total_commits")
    repository = data["data"]["repository"]
    ref = repository["defaultBranchRef"] if repository else None
    if not ref:
        return 0
    return ref["target"]["history"]["totalCount"]


def scan_author_history(client: GraphQLClient, owner: str, repo: str,
                        author_id: str) -> Tuple[int, int, int]:
    """Return (my_commits, additions, deletions) on the default branch for one author."""
    query = """
    query($owner: String!, $repo: String!, $cursor: String, $author: CommitAuthor){
      repository(owner: $owner, name: $repo){
        defaultBranchRef{
          target{
            ... on Commit {
              history(first: %d, after: $cursor, author: $author){
                totalCount
                edges{
                  node{
                    additions
                    deletions
                  }
                }
                pageInfo{ hasNextPage endCursor }
              }
            }
          }
        }
      }
    }""" % HISTORY_PAGE_SIZE
    my_commits = additions = deletions = 0
    cursor = None
    while True:
        variables = {"owner": owner, "repo": repo, "cursor": cursor, "author": {"id": author_id}}
        data = client.query(query, variables, "recursive_loc")
        repository = data["data"]["repository"]
        ref = repository["defaultBranchRef"] if repository else None
        if not ref:
            break
        history = ref["target"]["history"]
        my_commits = history["totalCount"]
        for edge in history["edges"]:
            additions += edge["node"]["additions"]
            deletions += edge["node"]["deletions"]
        if not history["pageInfo"]["hasNextPage"]:
            break
        cursor = history["pageInfo"]["endCursor"]
    return my_commits, additions, deletions


class GitHubFetcher:
    """Binds a client and login to the calls loc_cache.reconcile makes."""

    def __init__(self, client: GraphQLClient, login: str):
        self.client = client
        self.login = login

    def list_repositories(self, affiliations: Sequence[str]) -> List[str]:
        return list_repositories(self.client, self.login, affiliations)

    def total_commit_count(self, owner: str, name: str) -> int:
        return get_repo_commit_total(self.client, owner, name)

    def author_commit_stats(self, owner: str, name: str, author_id: str) -> Tuple[int, int, int]:
        return scan_author_history(self.client, owner, name, author_id)
