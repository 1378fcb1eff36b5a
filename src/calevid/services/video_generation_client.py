"""영상 생성(fal) API 클라이언트

프롬프트를 그대로 모델 엔드포인트에 전달하고 결과 URL만 돌려준다.
크레딧 차감은 이 경로에서 처리하지 않는다.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from calevid.core.responses import ExternalServiceException, ValidationException


logger = logging.getLogger(__name__)


class VideoGenerationClient:
    """fal 동기 실행 API 클라이언트"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://fal.run",
        model: str = "fal-ai/ovi",
        timeout: float = 300.0,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("FAL_KEY가 설정되지 않았습니다.")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model.strip("/")
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.model}"

    async def generate(self, prompt: str) -> Dict[str, Any]:
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationException("프롬프트가 필요합니다", error_code="MISSING_PROMPT")

        headers = {
            "Authorization": f"Key {self.api_key}",
            "Accept": "application/json",
        }

        logger.info("[VIDEO] generation requested model=%s prompt_len=%s", self.model, len(prompt))
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request("POST", self.endpoint, headers=headers, json={"prompt": prompt})
        except httpx.RequestError as exc:
            logger.error("[VIDEO] network error: %s", exc)
            raise ExternalServiceException("fal", "영상 생성 API에 연결하지 못했습니다") from exc

        if response.status_code >= 400:
            logger.error("[VIDEO] generation failed status=%s body=%s", response.status_code, response.text[:500])
            raise ExternalServiceException("fal", f"영상 생성 실패 (status={response.status_code})")

        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalServiceException("fal", "영상 생성 API 응답을 파싱하지 못했습니다") from exc

        video = body.get("video") if isinstance(body, dict) else None
        video_url = video.get("url") if isinstance(video, dict) else None
        if not video_url:
            logger.error("[VIDEO] response missing video url")
            raise ExternalServiceException("fal", "영상 URL이 응답에 없습니다")

        request_id = body.get("request_id") or response.headers.get("x-fal-request-id")
        logger.info("[VIDEO] generation done request_id=%s", request_id)
        return {"video_url": video_url, "request_id": request_id}
