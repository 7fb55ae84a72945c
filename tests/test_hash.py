"""Tests for bgenerator.utils.hashing (provenance digests and seeds)."""

import numpy as np

from bgenerator.utils import hashing


def test_sha256_bytes_known_value():
    assert hashing.sha256_bytes(b"") == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_sha256_file_matches_bytes(tmp_path):
    path = tmp_path / "data.bin"
    payload = bytes(range(256)) * 100
    path.write_bytes(payload)
    assert hashing.sha256_file(path, chunk_size=1000) == hashing.sha256_bytes(payload)


def test_sha256_file_different_content(tmp_path):
    a, b = tmp_path / "a", tmp_path / "b"
    a.write_bytes(b"one")
    b.write_bytes(b"two")
    assert hashing.sha256_file(a) != hashing.sha256_file(b)


def test_sha256_array_consistent_and_shape_sensitive():
    arr = np.arange(4, dtype=np.uint8)
    assert hashing.sha256_array(arr) == hashing.sha256_array(arr.copy())
    assert hashing.sha256_array(arr.reshape(4, 1)) != hashing.sha256_array(arr.reshape(1, 4))
    assert hashing.sha256_array(arr) != hashing.sha256_array(arr.astype(np.int32))


def test_sha256_array_non_contiguous():
    arr = np.arange(16, dtype=np.uint8).reshape(4, 4)
    view = arr[:, ::2]
    assert hashing.sha256_array(view) == hashing.sha256_array(np.ascontiguousarray(view))


def test_seed_from_str_stable_and_bounded():
    s1 = hashing.seed_from_str("paper-v2")
    assert s1 == hashing.seed_from_str("paper-v2")
    assert s1 != hashing.seed_from_str("paper-v3")
    assert 0 <= s1 < 2 ** 31
    assert hashing.seed_from_str("paper-v2", seed_base=1) != s1
