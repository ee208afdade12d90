"""Tests for approval token utilities (``repair_kernel.utils.tokens``)."""

from uuid import UUID

import pytest

from repair_kernel.utils.tokens import (
    MIN_TOKEN_BYTES,
    build_approval_url,
    generate_token,
    hash_token,
    verify_token,
)

JOB_ID = UUID("7d9f2b1e-0c3a-4e5f-9a8b-1c2d3e4f5a6b")


class TestGenerateToken:

    def test_default_is_128_bits_hex(self):
        token = generate_token()
        assert len(token) == 2 * MIN_TOKEN_BYTES
        int(token, 16)

    def test_larger_tokens(self):
        assert len(generate_token(32)) == 64

    def test_too_short_rejected(self):
        with pytest.raises(ValueError):
            generate_token(8)

    def test_tokens_are_unique(self):
        assert len({generate_token() for _ in range(200)}) == 200


class TestHashing:

    def test_hash_is_hex_sha256(self):
        digest = hash_token("abc", "secret")
        assert len(digest) == 64
        assert digest == hash_token("abc", b"secret")

    def test_hash_depends_on_secret(self):
        assert hash_token("abc", "secret-1") != hash_token("abc", "secret-2")

    def test_hash_is_not_the_token(self):
        assert hash_token("abc", "secret") != "abc"

    def test_verify_roundtrip(self):
        token = generate_token()
        stored = hash_token(token, "s3cret")
        assert verify_token(token, "s3cret", stored)

    def test_verify_rejects_wrong_token_and_secret(self):
        token = generate_token()
        stored = hash_token(token, "s3cret")
        assert not verify_token(generate_token(), "s3cret", stored)
        assert not verify_token(token, "other", stored)

    @pytest.mark.parametrize("token,stored", [(None, "x" * 64), ("", "x" * 64), ("abc", None)])
    def test_verify_rejects_missing_values(self, token, stored):
        assert not verify_token(token, "s3cret", stored)

    @pytest.mark.parametrize("token", ["\ud800abc", "caf\u00e9" * 8])
    def test_verify_rejects_non_ascii_tokens(self, token):
        assert not verify_token(token, "s3cret", "0" * 64)


class TestApprovalUrl:

    def test_format(self):
        url = build_approval_url("https://shop.example.test", JOB_ID, "deadbeef")
        assert url == f"https://shop.example.test/approve/{JOB_ID}?t=deadbeef"

    def test_trailing_slash_removed(self):
        url = build_approval_url("https://shop.example.test/", JOB_ID, "ab")
        assert url == f"https://shop.example.test/approve/{JOB_ID}?t=ab"

    def test_token_is_quoted(self):
        url = build_approval_url("http://x.test", JOB_ID, "a/b c")
        assert url.endswith("?t=a%2Fb%20c")
