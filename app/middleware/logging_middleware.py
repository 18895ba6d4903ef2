"""
요청 로깅 미들웨어

요청마다 request id 를 부여하고 (X-Request-ID 가 오면 그대로 사용)
처리 결과와 소요 시간을 구조화 로그로 남깁니다.
"""

import time
import uuid
from typing import Callable, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import get_logger, set_request_context, clear_request_context, log_api_call

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def client_ip(request: Request) -> Optional[str]:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


def current_user_id(request: Request) -> Optional[int]:
    """get_current_user 가 request.state 에 남긴 사용자 ID"""
    user = getattr(request.state, "user", None)
    return getattr(user, "id", None)


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 로깅 미들웨어"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        set_request_context(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                f"Unhandled error on {request.method} {request.url.path}",
                extra={
                    "event_type": "api_error",
                    "duration_ms": self._elapsed_ms(started),
                    "client_ip": client_ip(request),
                }
            )
            raise
        else:
            response.headers[REQUEST_ID_HEADER] = request_id
            log_api_call(
                logger,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=self._elapsed_ms(started),
                user_id=current_user_id(request),
                client_ip=client_ip(request),
            )
            return response
        finally:
            clear_request_context()

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)
