"""웹훅 서명 검증 테스트"""
import hashlib
import hmac

from calevid.utils.signature import compute_signature, secrets_match, verify_signature


BODY = b'{"event":"charge.success","data":{"reference":"abc123","amount":15000}}'


def test_compute_signature_matches_hmac_sha512():
    expected = hmac.new(b"secret", BODY, hashlib.sha512).hexdigest()
    assert compute_signature(BODY, "secret") == expected


def test_verify_signature_accepts_own_digest():
    assert verify_signature(BODY, "secret", compute_signature(BODY, "secret"))


def test_verify_signature_accepts_uppercase_hex():
    assert verify_signature(BODY, "secret", compute_signature(BODY, "secret").upper())


def test_single_bit_flip_in_body_fails():
    signature = compute_signature(BODY, "secret")
    mutated = bytearray(BODY)
    mutated[10] ^= 0x01
    assert not verify_signature(bytes(mutated), "secret", signature)


def test_reserialized_body_fails():
    """공백만 달라도 서명은 일치하지 않는다"""
    signature = compute_signature(BODY, "secret")
    assert not verify_signature(BODY.replace(b",", b", "), "secret", signature)


def test_wrong_secret_fails():
    assert not verify_signature(BODY, "other", compute_signature(BODY, "secret"))


def test_missing_signature_or_secret_fails():
    assert not verify_signature(BODY, "secret", None)
    assert not verify_signature(BODY, "secret", "")
    assert not verify_signature(BODY, "", compute_signature(BODY, "secret"))


def test_non_ascii_signature_header_is_rejected():
    assert not verify_signature(BODY, "secret", "ü" * 128)


def test_secrets_match():
    assert secrets_match("abc", "abc")
    assert not secrets_match("abd", "abc")
    assert not secrets_match(None, "abc")
    assert not secrets_match("", "")
