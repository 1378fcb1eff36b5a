"""크레딧 적용 RPC HTTP 클라이언트

웹훅 수신 후 사이트(`SITE_BASE_URL + CREDIT_APPLY_PATH`)에 크레딧 적용을 위임한다.
고정 타임아웃 + 네트워크 오류/408/429/5xx 에 한해 제한된 횟수만 재시도한다.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from calevid.core.interfaces import ICreditApplier
from calevid.core.responses import (
    AuthenticationException,
    DelegateUnreachableException,
    InvalidAmountException,
    SubjectNotFoundException,
)
from calevid.schemas.ledger import ApplyResult


logger = logging.getLogger(__name__)


class HttpCreditApplier(ICreditApplier):
    """크레딧 적용 엔드포인트 비동기 클라이언트"""

    RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        url: str,
        secret: str,
        timeout: float = 15.0,
        *,
        max_retries: int = 2,
        backoff_factor: float = 0.5,
    ) -> None:
        if not secret or not secret.strip():
            raise ValueError("크레딧 적용 공유 시크릿이 설정되지 않았습니다.")
        if not url or not url.strip():
            raise ValueError("크레딧 적용 URL이 설정되지 않았습니다.")

        self.url = url.strip()
        self.secret = secret
        self.timeout = timeout
        self.max_retries = max(0, int(max_retries))
        self.backoff_factor = max(0.0, float(backoff_factor))

    def _build_payload(self, reference: str, subject: str, credits: int) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "secret": self.secret,
            "credits": int(credits),
            "reference": reference,
        }
        if "@" in subject:
            payload["email"] = subject
        else:
            payload["user_id"] = subject
        return payload

    async def apply_credits(self, reference: str, subject: str, credits: int) -> ApplyResult:
        payload = self._build_payload(reference, subject, credits)
        headers = {
            "User-Agent": "Calevid-Webhook/1.0",
            "Accept": "application/json",
        }

        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request("POST", self.url, headers=headers, json=payload)
            except httpx.RequestError as exc:
                logger.warning(
                    "[CREDIT_APPLY] network error reference=%s attempt=%s error=%s",
                    reference,
                    attempt + 1,
                    exc,
                )

                if attempt == self.max_retries:
                    raise DelegateUnreachableException("크레딧 적용 엔드포인트에 연결하지 못했습니다.") from exc

                await self._sleep_backoff(attempt)
                continue

            if response.status_code >= 400:
                body = self._safe_json(response)

                if self._is_retryable_status(response.status_code) and attempt < self.max_retries:
                    logger.warning(
                        "[CREDIT_APPLY] retry reference=%s status=%s attempt=%s",
                        reference,
                        response.status_code,
                        attempt + 1,
                    )
                    await self._sleep_backoff(attempt)
                    continue

                logger.error(
                    "[CREDIT_APPLY] request failed reference=%s status=%s body=%s",
                    reference,
                    response.status_code,
                    body,
                )
                raise self._map_error(response.status_code, body, subject)

            result = self._parse_result(response, reference, credits)
            logger.info(
                "[CREDIT_APPLY] site responded reference=%s status=%s balance=%s",
                reference,
                result.status,
                result.new_balance,
            )
            return result

        # 이 지점에 도달했다면 모든 재시도가 실패한 것
        raise DelegateUnreachableException("크레딧 적용 요청이 반복적으로 실패했습니다.")

    async def _sleep_backoff(self, attempt: int) -> None:
        """재시도 전 지수 백오프 딜레이"""

        delay = self.backoff_factor * (2**attempt)
        if delay > 0:
            await asyncio.sleep(delay)

    def _is_retryable_status(self, status_code: int) -> bool:
        """HTTP 상태 코드 기준 재시도 가능 여부"""

        return status_code in self.RETRYABLE_STATUS

    @staticmethod
    def _parse_result(response: httpx.Response, reference: str, credits: int) -> ApplyResult:
        """2xx 응답은 JSON 객체이고 status 가 applied/already_processed 일 때만 성공"""

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            logger.error(
                "[CREDIT_APPLY] non-JSON success response reference=%s status=%s content_type=%s",
                reference,
                response.status_code,
                response.headers.get("content-type"),
            )
            raise DelegateUnreachableException("크레딧 적용 응답을 해석할 수 없습니다.")

        data = body.get("data") if isinstance(body.get("data"), dict) else body
        try:
            return ApplyResult.from_dict({"reference": reference, "credits_applied": credits, **data})
        except (TypeError, ValueError) as exc:
            logger.error(
                "[CREDIT_APPLY] unexpected success response reference=%s status=%s error=%s",
                reference,
                response.status_code,
                exc,
            )
            raise DelegateUnreachableException("크레딧 적용 결과를 확인할 수 없습니다.") from exc

    @staticmethod
    def _map_error(status_code: int, body: Dict[str, Any], subject: str) -> Exception:
        message: Optional[str] = body.get("message") if isinstance(body, dict) else None
        if status_code == 401:
            return AuthenticationException(message or "크레딧 적용 시크릿이 거부되었습니다")
        if status_code == 404:
            return SubjectNotFoundException(subject)
        if status_code in (400, 422):
            return InvalidAmountException(message or "크레딧 적용 요청이 거부되었습니다")
        return DelegateUnreachableException(message or f"크레딧 적용 실패 (status={status_code})")

    @staticmethod
    def _safe_json(response: httpx.Response) -> Dict[str, Any]:
        """JSON 파싱 실패 시 안전하게 fallback"""

        try:
            payload = response.json()
            return payload if isinstance(payload, dict) else {"data": payload}
        except Exception:
            return {"message": response.text}
