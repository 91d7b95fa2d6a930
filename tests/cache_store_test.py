"""LOC cache file handling.
Run: pytest -q
"""
import hashlib
import os

from loc_cache import (CACHE_COMMENT_LINES, DEFAULT_HEADER, CacheRecord, CacheStore,
                       cache_path_for, repo_hash)


def test_missing_file_is_a_cold_start(tmp_path):
    header, records = CacheStore(str(tmp_path / "nope.txt")).load()
    assert header == DEFAULT_HEADER
    assert len(header) == CACHE_COMMENT_LINES
    assert records == []


def test_save_creates_directory_and_preserves_header(tmp_path):
    path = tmp_path / "cache" / "deep" / "u.txt"
    store = CacheStore(str(path))
    header = [f"# custom {i}" for i in range(CACHE_COMMENT_LINES)]
    records = [CacheRecord("aa", 1, 2, 3, 4), CacheRecord("bb", 5, 6, 7, 8)]

    store.save(header, records)

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[:CACHE_COMMENT_LINES] == header
    assert lines[CACHE_COMMENT_LINES:] == ["aa 1 2 3 4", "bb 5 6 7 8"]
    assert store.load() == (header, records)
    assert os.listdir(path.parent) == ["u.txt"]


def test_malformed_lines_are_skipped(tmp_path):
    path = tmp_path / "u.txt"
    body = DEFAULT_HEADER + ["abc 1 2 3 4", "def 1 2", "ghi 1 x 3 4", ""]
    path.write_text("\n".join(body), encoding="utf-8")

    header, records = CacheStore(str(path)).load()

    assert header == DEFAULT_HEADER
    assert records == [CacheRecord("abc", 1, 2, 3, 4)]


def test_duplicate_hash_keeps_one_record(tmp_path):
    path = tmp_path / "u.txt"
    body = DEFAULT_HEADER + ["abc 1 1 1 1", "zzz 2 2 2 2", "abc 9 9 9 9"]
    path.write_text("\n".join(body) + "\n", encoding="utf-8")

    _, records = CacheStore(str(path)).load()

    assert records == [CacheRecord("abc", 9, 9, 9, 9), CacheRecord("zzz", 2, 2, 2, 2)]


def test_short_file_gets_default_header_padding(tmp_path):
    path = tmp_path / "u.txt"
    path.write_text("# only one line\n", encoding="utf-8")

    header, records = CacheStore(str(path)).load()

    assert header == ["# only one line"] + DEFAULT_HEADER[1:]
    assert records == []


def test_undecodable_line_is_skipped(tmp_path):
    path = tmp_path / "u.txt"
    good = "\n".join(DEFAULT_HEADER + ["abc 1 2 3 4"]) + "\n"
    path.write_bytes(good.encode("utf-8") + b"\xff\xfe garbage\n")

    header, records = CacheStore(str(path)).load()

    assert header == DEFAULT_HEADER
    assert records == [CacheRecord("abc", 1, 2, 3, 4)]


def test_cache_path_is_derived_from_user_name():
    expected = hashlib.sha256(b"octocat").hexdigest() + ".txt"
    assert cache_path_for("octocat", "cache") == os.path.join("cache", expected)
    assert cache_path_for("octocat") != cache_path_for("octodog")


def test_repo_hash_is_sha256_of_full_name():
    assert repo_hash("me/repo") == hashlib.sha256(b"me/repo").hexdigest()
