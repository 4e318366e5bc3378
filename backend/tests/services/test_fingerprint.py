import hashlib

from attribution.services.codes import is_valid_code, normalize_code
from attribution.services.fingerprint import Fingerprint, hash_value


def test_hash_value_is_sha256_hex() -> None:
    assert hash_value(b"203.0.113.7") == hashlib.sha256(b"203.0.113.7").hexdigest()


def test_salt_changes_the_digest() -> None:
    plain = Fingerprint.from_raw("203.0.113.7", "curl/8.0")
    salted = Fingerprint.from_raw("203.0.113.7", "curl/8.0", salt="pepper")

    assert plain.ip_hash != salted.ip_hash
    assert salted.ip_hash == hash_value(b"pepper203.0.113.7")
    assert plain.is_complete and salted.is_complete


def test_missing_values_are_not_hashed() -> None:
    fingerprint = Fingerprint.from_raw("203.0.113.7", "")

    assert fingerprint.ua_hash is None
    assert not fingerprint.is_complete


def test_code_normalization() -> None:
    assert normalize_code("  abcdef12\n") == "ABCDEF12"
    assert normalize_code("   ") is None
    assert normalize_code(None) is None
    assert is_valid_code("ABCDEF12")
    assert is_valid_code("A1B2C3D4E5F6G7H8")
    assert not is_valid_code("A1B2C3D4E5F6G7H8X")
    assert not is_valid_code("ABCDE")
    assert not is_valid_code("abcdef12")
