"""
공통 응답 모델 및 예외 클래스
"""
from typing import Generic, TypeVar, Optional, Any
from pydantic import BaseModel, ConfigDict


T = TypeVar('T')

class APIResponse(BaseModel, Generic[T]):
    """표준 API 응답 모델"""
    status: str  # "success" or "error"
    data: Optional[T] = None
    message: Optional[str] = None
    error_code: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "success",
                "data": {"status": "applied", "new_balance": 3},
                "message": "크레딧이 적용되었습니다"
            }
        }
    )

# 커스텀 예외 클래스들
class BusinessException(Exception):
    """비즈니스 로직 예외"""
    def __init__(self, message: str, error_code: str = None, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

class AuthenticationException(BusinessException):
    """인증 관련 예외 (잘못된 서명/시크릿)"""
    def __init__(self, message: str = "인증에 실패했습니다"):
        super().__init__(message, "AUTH_FAILED", 401)

class AuthorizationException(BusinessException):
    """권한 없음 (결제자와 대상 사용자 불일치 등)"""
    def __init__(self, message: str = "권한이 없습니다", error_code: str = "FORBIDDEN"):
        super().__init__(message, error_code, 403)

class MalformedPayloadException(BusinessException):
    """파싱할 수 없는 요청 본문"""
    def __init__(self, message: str = "요청 본문을 파싱할 수 없습니다"):
        super().__init__(message, "MALFORMED_PAYLOAD", 400)

class NotFoundException(BusinessException):
    """리소스 찾을 수 없음 예외"""
    def __init__(self, message: str = "요청한 리소스를 찾을 수 없습니다", error_code: str = "NOT_FOUND"):
        super().__init__(message, error_code, 404)

class SubjectNotFoundException(NotFoundException):
    """크레딧을 적용할 사용자를 찾지 못함"""
    def __init__(self, subject: str = None):
        message = f"사용자를 찾을 수 없습니다: {subject}" if subject else "사용자를 찾을 수 없습니다"
        super().__init__(message, "SUBJECT_NOT_FOUND")
        self.subject = subject

class ValidationException(BusinessException):
    """입력 검증 예외"""
    def __init__(self, message: str = "입력 데이터가 유효하지 않습니다", errors: list = None, error_code: str = "VALIDATION_ERROR"):
        super().__init__(message, error_code, 422)
        self.errors = errors or []

class InvalidAmountException(ValidationException):
    """0 이하의 크레딧 계산 결과"""
    def __init__(self, message: str = "크레딧 수량이 유효하지 않습니다"):
        super().__init__(message, error_code="INVALID_AMOUNT")

class ExternalServiceException(BusinessException):
    """외부 서비스 호출 예외"""
    def __init__(self, service_name: str, message: str = None, error_code: str = "EXTERNAL_SERVICE_ERROR"):
        msg = message or f"{service_name} 서비스 호출에 실패했습니다"
        super().__init__(msg, error_code, 502)
        self.service_name = service_name

class DelegateUnreachableException(ExternalServiceException):
    """크레딧 적용 대상(저장소/사이트)에 도달하지 못함"""
    def __init__(self, message: str = None):
        super().__init__("credit-apply", message, "DELEGATE_UNREACHABLE")

# 응답 헬퍼 함수들
def success_response(data: Any = None, message: str = "성공") -> APIResponse:
    """성공 응답 생성"""
    return APIResponse(status="success", data=data, message=message)

def error_response(
    message: str = "오류가 발생했습니다",
    error_code: str = None,
    data: Any = None
) -> APIResponse:
    """오류 응답 생성"""
    return APIResponse(
        status="error",
        message=message,
        error_code=error_code,
        data=data
    )

