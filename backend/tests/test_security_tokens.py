import binascii
import hashlib

from app.core.security import (
    TokenInvalid,
    TokenValid,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)

ACCESS_SECRET = "access-secret-for-unit-tests"
REFRESH_SECRET = "refresh-secret-for-unit-tests"


def test_password_round_trip():
    hashed = get_password_hash("Password1")
    assert hashed != "Password1"
    assert verify_password("Password1", hashed)
    assert not verify_password("Password2", hashed)


def test_long_passwords_sharing_a_prefix_do_not_match():
    shared = "A" * 72
    hashed = get_password_hash(shared + "y")
    assert verify_password(shared + "y", hashed)
    assert not verify_password(shared + "x", hashed)
    assert not verify_password(shared, hashed)


def test_multibyte_password_round_trip():
    password = "p\u00e4ssw\u00f6rd-\u6f22\u5b57" * 6
    assert verify_password(password, get_password_hash(password))


def test_password_hashes_are_salted():
    assert get_password_hash("Password1") != get_password_hash("Password1")


def test_legacy_scrypt_record_verifies():
    salt = "9f2c1a7be04d"
    digest = hashlib.scrypt(b"Password1", salt=salt.encode("utf-8"), n=16384, r=8, p=1, dklen=64)
    record = f"{binascii.hexlify(digest).decode()}.{salt}"
    assert verify_password("Password1", record)
    assert not verify_password("password1", record)


def test_malformed_hash_records_do_not_match():
    for record in ("", "nonsense", "zz.salt", "abcd.salt", "$2b$not-a-bcrypt-record", "aa.bb.cc"):
        assert not verify_password("Password1", record)


def test_access_token_round_trip():
    token = create_access_token({"sub": "7", "username": "alice", "role": "user"}, ACCESS_SECRET, 60)
    verification = decode_token(token, ACCESS_SECRET, "access")
    assert isinstance(verification, TokenValid)
    assert verification.claims["sub"] == "7"
    assert verification.claims["typ"] == "access"
    assert verification.claims["jti"]


def test_access_tokens_issued_together_differ():
    claims = {"sub": "7"}
    assert create_access_token(claims, ACCESS_SECRET, 60) != create_access_token(claims, ACCESS_SECRET, 60)


def test_refresh_token_is_not_an_access_token():
    refresh = create_refresh_token({"sub": "1", "tid": "abc"}, ACCESS_SECRET, 60)
    assert decode_token(refresh, ACCESS_SECRET, "access") == TokenInvalid("wrong_type")


def test_token_signed_with_other_secret_is_invalid():
    token = create_refresh_token({"sub": "1", "tid": "abc"}, REFRESH_SECRET, 60)
    assert decode_token(token, ACCESS_SECRET, "refresh") == TokenInvalid("invalid")


def test_expired_token():
    token = create_access_token({"sub": "1"}, ACCESS_SECRET, -10)
    assert decode_token(token, ACCESS_SECRET, "access") == TokenInvalid("expired")


def test_garbage_and_empty_tokens():
    assert decode_token("not.a.jwt", ACCESS_SECRET, "access") == TokenInvalid("invalid")
    assert decode_token("", ACCESS_SECRET, "access") == TokenInvalid("malformed")


def test_token_without_subject_is_malformed():
    token = create_access_token({"username": "nobody"}, ACCESS_SECRET, 60)
    assert decode_token(token, ACCESS_SECRET, "access") == TokenInvalid("malformed")
