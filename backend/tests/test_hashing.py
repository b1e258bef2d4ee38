"""Tests for content hashing helpers."""

import hashlib

from factanchor.hashing import content_hash, digest_length, is_hash_string, sha256_text


class TestContentHash:
    def test_sha256_of_utf8(self) -> None:
        assert content_hash("abc") == hashlib.sha256(b"abc").hexdigest()

    def test_no_normalization(self) -> None:
        """Whitespace and case are significant."""
        assert content_hash("Acme") != content_hash("acme")
        assert content_hash("Acme") != content_hash("Acme ")

    def test_non_ascii_hashes_utf8_bytes(self) -> None:
        assert content_hash("København") == hashlib.sha256("København".encode("utf-8")).hexdigest()

    def test_alternative_algorithm(self) -> None:
        assert content_hash("abc", "sha512") == hashlib.sha512(b"abc").hexdigest()

    def test_sha256_text_matches_content_hash(self) -> None:
        assert sha256_text("x") == content_hash("x")


class TestHashShape:
    def test_digest_length(self) -> None:
        assert digest_length("sha256") == 64
        assert digest_length("sha512") == 128

    def test_accepts_real_digest(self) -> None:
        assert is_hash_string(content_hash("anything"))

    def test_rejects_wrong_length_or_case(self) -> None:
        digest = content_hash("anything")
        assert not is_hash_string(digest[:-1])
        assert not is_hash_string(digest.upper())

    def test_rejects_non_strings(self) -> None:
        assert not is_hash_string(None)
        assert not is_hash_string(123)
