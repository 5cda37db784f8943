"""
Redemption token codec.

Raw tokens are only ever embedded in the QR code URL. The ledger stores the
SHA-256 digest, so a copy of the database cannot be used to redeem codes.

Usage:
    from shopper_rewards.utils.tokens import generate_token, classify, TokenKind

    raw_token, token_hash = generate_token()

    if classify(identifier) is TokenKind.RAW_TOKEN:
        qr_code = QRCode.query.filter_by(token_hash=hash_token(identifier)).first()
"""
import hashlib
import re
import secrets
from enum import Enum
from typing import Tuple

# 16 random bytes -> 32 hex characters (128 bits of entropy)
TOKEN_BYTES = 16

# Canonical opaque id shape (ledger primary keys are UUID4 strings)
_OPAQUE_ID_PATTERN = re.compile(
    r'^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$'
)


class TokenKind(str, Enum):
    """How a token/id string supplied by a caller should be looked up."""
    RAW_TOKEN = 'raw_token'
    OPAQUE_ID = 'opaque_id'


def hash_token(raw_token: str) -> str:
    """One-way lookup hash for a raw token."""
    return hashlib.sha256(raw_token.encode('utf-8')).hexdigest()


def generate_token() -> Tuple[str, str]:
    """
    Mint a new redemption token.

    Returns:
        Tuple of (raw_token, token_hash)
    """
    raw_token = secrets.token_hex(TOKEN_BYTES)
    return raw_token, hash_token(raw_token)


def classify(identifier: str) -> TokenKind:
    """
    Decide whether an identifier is a raw token or a ledger id.

    Anything shaped like a UUID is a direct ledger id; everything else is
    treated as a raw token and must be hashed before lookup.
    """
    if _OPAQUE_ID_PATTERN.match(identifier.strip()):
        return TokenKind.OPAQUE_ID
    return TokenKind.RAW_TOKEN
