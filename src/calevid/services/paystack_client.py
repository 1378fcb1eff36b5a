"""Paystack REST API 클라이언트"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx


logger = logging.getLogger(__name__)


class PaystackAPIError(RuntimeError):
    """Paystack API 오류"""

    def __init__(
        self,
        message: str,
        status_code: int,
        payload: Optional[Dict[str, Any]] = None,
        *,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}
        self.code = code

    @property
    def is_network_error(self) -> bool:
        return self.code == "network_error"


class PaystackClient:
    """Paystack 거래 검증 비동기 클라이언트"""

    STATUS_MESSAGES: Dict[int, str] = {
        400: "Paystack API 요청 파라미터가 올바르지 않습니다.",
        401: "Paystack API 인증에 실패했습니다.",
        404: "Paystack 거래를 찾을 수 없습니다.",
        429: "Paystack API 호출이 제한되었습니다. 잠시 후 다시 시도하세요.",
        500: "Paystack API 서버 오류가 발생했습니다.",
    }

    RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout: float = 30.0,
        *,
        max_retries: int = 1,
        backoff_factor: float = 0.5,
    ) -> None:
        if not secret_key or not secret_key.strip():
            raise ValueError("Paystack 시크릿 키가 설정되지 않았습니다.")

        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, int(max_retries))
        self.backoff_factor = max(0.0, float(backoff_factor))

    async def _request(self, method: str, path: str) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, headers=headers)
            except httpx.RequestError as exc:
                logger.warning(
                    "[PAYSTACK] API request network error: %s %s attempt=%s error=%s",
                    method,
                    path,
                    attempt + 1,
                    exc,
                )

                if attempt == self.max_retries:
                    raise PaystackAPIError(
                        "Paystack API 네트워크 오류가 발생했습니다.",
                        status_code=0,
                        payload={"message": str(exc)},
                        code="network_error",
                    ) from exc

                await self._sleep_backoff(attempt)
                continue

            if response.status_code >= 400:
                payload = self._safe_json(response)

                if response.status_code in self.RETRYABLE_STATUS and attempt < self.max_retries:
                    logger.warning(
                        "[PAYSTACK] API request retry: %s %s status=%s attempt=%s",
                        method,
                        path,
                        response.status_code,
                        attempt + 1,
                    )
                    await self._sleep_backoff(attempt)
                    continue

                message = payload.get("message") if isinstance(payload.get("message"), str) else None
                logger.error(
                    "[PAYSTACK] API request failed: %s %s status=%s message=%s",
                    method,
                    path,
                    response.status_code,
                    message,
                )
                raise PaystackAPIError(
                    message or self.STATUS_MESSAGES.get(response.status_code, "Paystack API 요청에 실패했습니다"),
                    response.status_code,
                    payload,
                    code="network_error" if response.status_code in self.RETRYABLE_STATUS else None,
                )

            try:
                payload = response.json()
            except Exception as exc:
                logger.error("[PAYSTACK] API 응답 파싱 실패: %s", exc)
                raise PaystackAPIError(
                    "Paystack API 응답을 파싱하지 못했습니다",
                    response.status_code,
                    payload={"message": str(exc)},
                    code="parse_error",
                ) from exc
            return payload if isinstance(payload, dict) else {"data": payload}

        raise PaystackAPIError("Paystack API 요청이 반복적으로 실패했습니다.", status_code=0, code="network_error")

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """거래 검증 (GET /transaction/verify/{reference})"""

        return await self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")

    async def _sleep_backoff(self, attempt: int) -> None:
        """재시도 전 지수 백오프 딜레이"""

        delay = self.backoff_factor * (2**attempt)
        if delay > 0:
            await asyncio.sleep(delay)

    @staticmethod
    def _safe_json(response: httpx.Response) -> Dict[str, Any]:
        """JSON 파싱 실패 시 안전하게 fallback"""

        try:
            payload = response.json()
            return payload if isinstance(payload, dict) else {"data": payload}
        except Exception:
            return {"message": response.text}
