"""
Unit tests for password hashing, JWTs and URL token helpers.
"""

from datetime import timedelta

from paperly.core.security import (
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_url_token,
    hash_password,
    hash_token,
    verify_password,
)


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("correct horse")
        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestJwt:
    def test_access_token_round_trip(self):
        token = create_access_token("user-1", {"role": "admin"})
        payload = decode_token(token, TOKEN_TYPE_ACCESS)
        assert payload["sub"] == "user-1"
        assert payload["role"] == "admin"
        assert payload["type"] == TOKEN_TYPE_ACCESS

    def test_refresh_token_is_not_an_access_token(self):
        token = create_refresh_token("user-1")
        assert decode_token(token, TOKEN_TYPE_ACCESS) is None
        assert decode_token(token, TOKEN_TYPE_REFRESH)["sub"] == "user-1"

    def test_access_token_is_not_a_refresh_token(self):
        token = create_access_token("user-1")
        assert decode_token(token, TOKEN_TYPE_REFRESH) is None

    def test_expired_token_is_rejected(self):
        token = create_access_token("user-1", expires_delta=timedelta(seconds=-1))
        assert decode_token(token) is None

    def test_tokens_issued_together_differ(self):
        assert create_refresh_token("user-1") != create_refresh_token("user-1")


class TestUrlTokens:
    def test_generated_token_is_64_hex_chars(self):
        token = generate_url_token()
        assert len(token) == 64
        int(token, 16)

    def test_generated_tokens_are_unique(self):
        assert len({generate_url_token() for _ in range(50)}) == 50

    def test_hash_is_deterministic_sha256(self):
        assert hash_token("abc") == hash_token("abc")
        assert len(hash_token("abc")) == 64
        assert hash_token("abc") != hash_token("abd")
