"""Security utilities - password hashing and JWT signing/verification"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Union
import base64
import binascii
import hashlib
import hmac
import secrets

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings

# Parameters of legacy scrypt password records.
_LEGACY_SCRYPT_N = 16384
_LEGACY_SCRYPT_R = 8
_LEGACY_SCRYPT_P = 1
_LEGACY_SCRYPT_KEYLEN = 64

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _password_bytes(password: str) -> bytes:
    # bcrypt reads at most 72 bytes; digest first so every byte of the password counts.
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password (salt embedded)
    """
    return bcrypt.hashpw(
        _password_bytes(password),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode("utf-8")


def _verify_legacy_scrypt(plain_password: str, hashed_password: str) -> bool:
    digest_hex, sep, salt = hashed_password.partition(".")
    if not sep or not salt or "." in salt:
        return False
    try:
        expected = binascii.unhexlify(digest_hex)
    except (binascii.Error, ValueError):
        return False
    if len(expected) != _LEGACY_SCRYPT_KEYLEN:
        return False
    supplied = hashlib.scrypt(
        plain_password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=_LEGACY_SCRYPT_N,
        r=_LEGACY_SCRYPT_R,
        p=_LEGACY_SCRYPT_P,
        dklen=_LEGACY_SCRYPT_KEYLEN,
    )
    return hmac.compare_digest(expected, supplied)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Malformed hash records count as a mismatch rather than an error.

    Args:
        plain_password: Plain text password
        hashed_password: bcrypt record, or a legacy ``<hex digest>.<salt>`` scrypt record

    Returns:
        bool: True if password matches
    """
    if not hashed_password:
        return False
    if hashed_password.startswith("$2"):
        try:
            return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
        except ValueError:
            return False
    return _verify_legacy_scrypt(plain_password, hashed_password)


@dataclass(frozen=True)
class TokenValid:
    """Successful verification carrying the decoded claims."""
    claims: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenInvalid:
    """Failed verification; reason is one of expired, invalid, wrong_type, malformed."""
    reason: str


TokenVerification = Union[TokenValid, TokenInvalid]


def _encode(claims: Dict[str, Any], secret: str, token_type: str, expires_in: int) -> str:
    now = datetime.utcnow()
    to_encode = claims.copy()
    to_encode.update({
        "typ": token_type,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    })
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(data: Dict[str, Any], secret: str, expires_in: int) -> str:
    """
    Create JWT access token

    Args:
        data: Identity claims to embed
        secret: Access-token signing key
        expires_in: Lifetime in seconds

    Returns:
        str: Encoded JWT token
    """
    claims = dict(data)
    claims["jti"] = secrets.token_urlsafe(32)
    return _encode(claims, secret, ACCESS_TOKEN_TYPE, expires_in)


def create_refresh_token(data: Dict[str, Any], secret: str, expires_in: int) -> str:
    """Create JWT refresh token; callers embed the random token id in ``data``."""
    return _encode(data, secret, REFRESH_TOKEN_TYPE, expires_in)


def decode_token(token: str, secret: str, expected_type: str) -> TokenVerification:
    """
    Decode and verify JWT token

    Checks signature, expiry and the ``typ`` claim only; no store lookup.

    Args:
        token: JWT token string
        secret: Signing key the token must verify against
        expected_type: "access" or "refresh"

    Returns:
        TokenValid with claims, or TokenInvalid with a reason
    """
    if not token or not isinstance(token, str):
        return TokenInvalid("malformed")
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        return TokenInvalid("expired")
    except JWTError:
        return TokenInvalid("invalid")

    if payload.get("typ") != expected_type:
        return TokenInvalid("wrong_type")
    if not payload.get("sub"):
        return TokenInvalid("malformed")
    return TokenValid(payload)


def token_expiry(token: str) -> datetime:
    """Naive UTC expiry of a token this service just signed."""
    claims = jwt.get_unverified_claims(token)
    return datetime.utcfromtimestamp(int(claims["exp"]))
