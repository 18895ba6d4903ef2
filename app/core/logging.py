"""
구조화된 로깅 시스템

운영 환경에서는 한 줄짜리 JSON 로그를, 디버그 모드에서는 사람이 읽기 쉬운 로그를 출력합니다.
요청 ID 와 사용자 ID 는 ContextVar 로 전달되어 모든 로그 레코드에 자동으로 붙습니다.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional
from contextvars import ContextVar
from pathlib import Path

from app.core.config import settings

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[int]] = ContextVar('user_id', default=None)

# LogRecord 기본 속성 (extra 로 전달된 값만 골라내기 위함)
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "redis", "aiomysql")


class StructuredFormatter(logging.Formatter):
    """JSON 로그 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = {"request_id": request_id_var.get(), "user_id": user_id_var.get()}
        entry.update({key: value for key, value in context.items() if value is not None})

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        extra = {
            key: value for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith('_')
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, ensure_ascii=False, default=str)


def _build_handlers() -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    if settings.debug:
        console.setFormatter(logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s'))
    else:
        console.setFormatter(StructuredFormatter())
    handlers: List[logging.Handler] = [console]

    if settings.log_to_file:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        for filename, level in (("app.log", logging.INFO), ("error.log", logging.ERROR)):
            handler = logging.FileHandler(log_dir / filename, encoding='utf-8')
            handler.setLevel(level)
            handler.setFormatter(StructuredFormatter())
            handlers.append(handler)

    return handlers


def setup_logging():
    """루트 로거 초기화 (애플리케이션 시작 시 한 번 호출)"""
    root = logging.getLogger()
    root.setLevel(settings.log_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in _build_handlers():
        root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_request_context(request_id: str, user_id: Optional[int] = None):
    request_id_var.set(request_id)
    if user_id is not None:
        user_id_var.set(user_id)


def set_user_context(user_id: int):
    user_id_var.set(user_id)


def clear_request_context():
    request_id_var.set(None)
    user_id_var.set(None)


# =============================================================================
# Event Helpers
# =============================================================================

def _log_event(logger: logging.Logger, level: int, event_type: str, text: str, **fields):
    logger.log(level, text, extra={"event_type": event_type, **fields})


def log_api_call(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    user_id: Optional[int] = None,
    **extra
):
    """API 호출 로그 (5xx 는 ERROR, 4xx 는 WARNING)"""
    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    _log_event(
        logger, level, "api_call", f"{method} {path} -> {status_code} ({duration_ms}ms)",
        method=method, path=path, status_code=status_code, duration_ms=duration_ms, user_id=user_id, **extra
    )


def log_authentication_event(
    logger: logging.Logger,
    event: str,
    user_id: Optional[int] = None,
    email: Optional[str] = None,
    success: bool = True,
    **extra
):
    outcome = "ok" if success else "failed"
    _log_event(
        logger, logging.INFO if success else logging.WARNING, "authentication", f"auth.{event} {outcome}",
        event=event, user_id=user_id, email=email, success=success, **extra
    )


def log_websocket_event(
    logger: logging.Logger,
    event: str,
    user_id: int,
    channel: Optional[str] = None,
    **extra
):
    text = f"ws.{event} user={user_id}" + (f" channel={channel}" if channel else "")
    _log_event(logger, logging.INFO, "websocket", text, event=event, user_id=user_id, channel=channel, **extra)


def log_broadcast_event(
    logger: logging.Logger,
    event: str,
    channel: str,
    recipients: Optional[int] = None,
    **extra
):
    _log_event(
        logger, logging.DEBUG, "broadcast", f"broadcast {event} -> {channel}",
        event=event, channel=channel, recipients=recipients, **extra
    )


def log_file_operation(
    logger: logging.Logger,
    operation: str,
    file_path: str,
    user_id: Optional[int],
    file_size: Optional[int] = None,
    **extra
):
    _log_event(
        logger, logging.INFO, "file_operation", f"file.{operation} {file_path}",
        operation=operation, file_path=file_path, user_id=user_id, file_size=file_size, **extra
    )


def log_security_event(
    logger: logging.Logger,
    event: str,
    severity: str = "medium",
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    **extra
):
    """보안 관련 이벤트 (항상 WARNING)"""
    _log_event(
        logger, logging.WARNING, "security", f"security.{event} severity={severity}",
        event=event, severity=severity, user_id=user_id, ip_address=ip_address, **extra
    )
