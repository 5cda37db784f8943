"""
Tests for the redemption token codec.
"""
import hashlib
import uuid

from shopper_rewards.utils.tokens import TokenKind, classify, generate_token, hash_token


class TestGenerateToken:
    """Tests for generate_token."""

    def test_token_is_32_hex_chars(self):
        """Raw tokens carry 16 random bytes, hex encoded."""
        raw, _ = generate_token()
        assert len(raw) == 32
        int(raw, 16)

    def test_hash_is_sha256_of_raw_token(self):
        """The stored hash is the SHA-256 hex digest of the raw token."""
        raw, token_hash = generate_token()
        assert token_hash == hashlib.sha256(raw.encode()).hexdigest()
        assert hash_token(raw) == token_hash

    def test_tokens_are_unique(self):
        """A batch of tokens never repeats."""
        hashes = {generate_token()[1] for _ in range(500)}
        assert len(hashes) == 500


class TestClassify:
    """Tests for classify."""

    def test_uuid_is_opaque_id(self):
        assert classify(str(uuid.uuid4())) is TokenKind.OPAQUE_ID

    def test_uppercase_uuid_is_opaque_id(self):
        assert classify(str(uuid.uuid4()).upper()) is TokenKind.OPAQUE_ID

    def test_generated_token_is_raw_token(self):
        raw, _ = generate_token()
        assert classify(raw) is TokenKind.RAW_TOKEN

    def test_long_hex_with_dashes_is_raw_token(self):
        """Only the canonical 8-4-4-4-12 shape counts as an id."""
        assert classify('0123456789abcdef-0123456789abcdef-0123') is TokenKind.RAW_TOKEN

    def test_surrounding_whitespace_ignored(self):
        assert classify(f'  {uuid.uuid4()}\n') is TokenKind.OPAQUE_ID
