from typing import Optional, Dict, Any, List
from fastapi import HTTPException, status
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """표준 에러 응답 모델"""
    success: bool = False
    error: str
    code: str
    details: Optional[Dict[str, Any]] = None


class ValidationError(BaseModel):
    """검증 에러 세부사항"""
    field: str
    message: str
    value: Optional[Any] = None


# =============================================================================
# 커스텀 예외 클래스들
# =============================================================================

class BaseCustomException(HTTPException):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(status_code=status_code, detail=message)

    def to_dict(self) -> Dict[str, Any]:
        """예외를 응답 envelope 딕셔너리로 변환"""
        return ErrorResponse(
            error=self.message,
            code=self.code,
            details=self.details
        ).model_dump()


class ValidationException(BaseCustomException):
    """입력 검증 실패 예외"""
    def __init__(
        self,
        message: str = "Validation failed",
        validation_errors: Optional[List[ValidationError]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.validation_errors = validation_errors or []
        if self.validation_errors:
            details = {
                **(details or {}),
                "validation_errors": [error.model_dump() for error in self.validation_errors]
            }
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message=message,
            details=details
        )


class AuthenticationException(BaseCustomException):
    """인증 실패 예외"""
    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="authentication_error",
            message=message,
            details=details
        )


class AuthorizationException(BaseCustomException):
    """권한 부족 예외 (접근 거부 / 작업 권한 없음 / 금지된 작업)"""
    def __init__(
        self,
        message: str = "Access denied",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="authorization_error",
            message=message,
            details=details
        )


class ResourceNotFoundException(BaseCustomException):
    """리소스를 찾을 수 없음 예외"""
    def __init__(
        self,
        resource: str = "Resource",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if message is None:
            message = f"{resource} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="resource_not_found",
            message=message,
            details=details or {"resource": resource}
        )


class ConflictException(BaseCustomException):
    """리소스 충돌 예외"""
    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="resource_conflict",
            message=message,
            details=details
        )


# =============================================================================
# 에러 헬퍼 함수들
# =============================================================================

def create_error_response(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    """표준 에러 응답 생성"""
    return ErrorResponse(error=message, code=code, details=details)


# =============================================================================
# 자주 사용되는 에러 팩토리 함수들
# =============================================================================

def user_not_found_error(user_id: Optional[int] = None):
    """사용자를 찾을 수 없음 에러"""
    details = {"user_id": user_id} if user_id else None
    return ResourceNotFoundException("User", details=details)


def room_not_found_error(room_id: Optional[int] = None):
    details = {"room_id": room_id} if room_id else None
    return ResourceNotFoundException("Room", details=details)


def message_not_found_error(message_id: Optional[int] = None):
    details = {"message_id": message_id} if message_id else None
    return ResourceNotFoundException("Message", details=details)


def invalid_credentials_error():
    """잘못된 인증 정보 에러"""
    return AuthenticationException("Invalid credentials")


def email_already_exists_error():
    """이메일 중복 에러"""
    return ConflictException("Email already registered")


def invalid_token_error():
    """잘못된 토큰 에러"""
    return AuthenticationException("Invalid or expired token")


def access_denied_error():
    """채팅방 참여자가 아닌 경우"""
    return AuthorizationException("Access denied to this room")
