"""
웹훅 서명 / 공유 시크릿 검증 유틸리티
"""
import hashlib
import hmac
from typing import Optional


def compute_signature(raw: bytes, secret: str) -> str:
    """원본 바이트에 대한 HMAC-SHA512 hex digest"""
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha512).hexdigest()


def verify_signature(raw: bytes, secret: str, signature: Optional[str]) -> bool:
    """x-paystack-signature 검증

    반드시 수신한 바이트 그대로를 넣어야 한다. JSON을 다시 직렬화하면 해시가 달라진다.
    """
    if not secret or not signature:
        return False
    expected = compute_signature(raw, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().lower().encode("utf-8"))


def secrets_match(provided: Optional[str], expected: str) -> bool:
    """상수 시간 공유 시크릿 비교"""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
