import traceback
from typing import Callable
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.errors import (
    BaseCustomException,
    ValidationException,
    ValidationError,
    create_error_response,
)
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def _error_json(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(code, message, details).model_dump()
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    통합 에러 처리 미들웨어

    예외 핸들러가 처리하지 못한 데이터베이스 에러와 예상하지 못한 예외를
    표준화된 에러 응답으로 변환합니다.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except IntegrityError as e:
            # 데이터베이스 무결성 제약 조건 위반 (동시 요청으로 인한 중복 등)
            error_detail = str(e.orig) if hasattr(e, 'orig') else str(e)
            logger.warning(f"Integrity error on {request.method} {request.url.path}: {error_detail}")

            return _error_json(
                status.HTTP_409_CONFLICT,
                "resource_conflict",
                "Resource conflict",
                {"detail": error_detail} if settings.debug else None
            )

        except OperationalError as e:
            # 데이터베이스 연결/작업 에러
            error_detail = str(e.orig) if hasattr(e, 'orig') else str(e)
            logger.error(f"Database error: {type(e).__name__}: {error_detail}")

            return _error_json(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "database_error",
                "Database connection or operation failed",
                {"detail": error_detail} if settings.debug else None
            )

        except Exception as e:
            # 예상하지 못한 모든 에러들
            error_detail = None
            if settings.debug:
                error_detail = {
                    "exception": str(e),
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }

            logger.error(f"Unhandled exception: {type(e).__name__}: {e}", exc_info=True)

            return _error_json(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "internal_server_error",
                "An unexpected error occurred",
                error_detail
            )


async def custom_exception_handler(request: Request, exc: BaseCustomException) -> JSONResponse:
    """우리가 정의한 커스텀 예외들"""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """HTTPException을 표준 형식으로 변환"""
    if isinstance(exc, BaseCustomException):
        return await custom_exception_handler(request, exc)

    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        code = "authentication_error"
    elif exc.status_code == status.HTTP_404_NOT_FOUND:
        code = "resource_not_found"
    else:
        code = "http_error"

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            code,
            exc.detail if isinstance(exc.detail, str) else "HTTP error occurred",
            {"detail": exc.detail} if not isinstance(exc.detail, str) else None
        ).model_dump(),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """요청 본문/파라미터 검증 에러"""
    validation_errors = []
    for error in exc.errors():
        field_name = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        value = error.get("input")
        validation_errors.append(
            ValidationError(
                field=field_name,
                message=error["msg"],
                value=value if isinstance(value, (str, int, float, bool)) else None
            )
        )

    return await custom_exception_handler(
        request,
        ValidationException("Request validation failed", validation_errors=validation_errors)
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(BaseCustomException, custom_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
