# Routers package
from . import (
    credits_router,
    payments_router,
    paystack_router,
    video_router,
)

__all__ = [
    "credits_router",
    "payments_router",
    "paystack_router",
    "video_router",
]
