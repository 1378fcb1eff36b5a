"""
플랜별 영상 생성 한도 설정
"""
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class PlanTier:
    """플랜 티어"""
    plan_id: str
    usage_limit: int  # 플랜 기간 동안 생성 가능한 영상 수


class PlanConfig:
    """플랜 설정 관리자"""

    PLANS: Dict[str, PlanTier] = {
        "starter": PlanTier(plan_id="starter", usage_limit=15),
        "standard": PlanTier(plan_id="standard", usage_limit=25),
        "pro": PlanTier(plan_id="pro", usage_limit=50),
    }

    @classmethod
    def get_plan(cls, plan_id: Optional[str]) -> Optional[PlanTier]:
        """알 수 없는 플랜이면 None"""
        if not plan_id:
            return None
        return cls.PLANS.get(plan_id.strip().lower())

    @classmethod
    def is_valid_plan(cls, plan_id: Optional[str]) -> bool:
        return cls.get_plan(plan_id) is not None
