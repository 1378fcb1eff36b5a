"""영상 생성 프록시 라우터"""
from fastapi import APIRouter, Depends

from calevid.core.factory import ServiceFactory
from calevid.core.responses import success_response
from calevid.schemas import VideoGenerateRequest
from calevid.services.video_generation_client import VideoGenerationClient

router = APIRouter(tags=["video"])


@router.post("/generate-video")
async def generate_video(
    payload: VideoGenerateRequest,
    client: VideoGenerationClient = Depends(ServiceFactory.get_video_client),
):
    result = await client.generate(payload.prompt)
    return success_response(data=result, message="영상이 생성되었습니다")
