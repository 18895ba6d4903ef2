"""
File upload service layer for handling file operations.

Handles message attachments and profile avatars stored under settings.upload_dir.
Stored paths are relative to the upload directory (e.g. "attachments/<uuid>.pdf")
and are served publicly under /storage.
"""

import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from app.core.config import settings
from app.core.errors import ValidationException, ValidationError
from app.core.logging import get_logger, log_file_operation

logger = get_logger(__name__)


# =============================================================================
# File Upload Configuration
# =============================================================================

# 허용된 이미지 파일 확장자 (아바타)
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

ATTACHMENTS_DIR = "attachments"
AVATARS_DIR = "avatars"

CHUNK_SIZE = 64 * 1024


@dataclass
class StoredAttachment:
    """디스크에 저장된 업로드 파일 정보"""
    path: str
    original_name: str
    size: int


# =============================================================================
# File Utilities
# =============================================================================

def get_upload_root() -> Path:
    return Path(settings.upload_dir)


def ensure_upload_directories():
    """업로드 디렉토리들이 존재하는지 확인하고 생성"""
    root = get_upload_root()
    for sub_dir in (ATTACHMENTS_DIR, AVATARS_DIR):
        (root / sub_dir).mkdir(parents=True, exist_ok=True)


def get_file_extension(filename: str) -> str:
    """파일 확장자 추출"""
    return Path(filename).suffix.lower()


def generate_unique_filename(original_filename: str) -> str:
    """고유한 파일명 생성"""
    return f"{uuid.uuid4().hex}{get_file_extension(original_filename)}"


def resolve_path(relative_path: str) -> Optional[Path]:
    """저장 경로를 실제 파일 경로로 변환 (업로드 디렉토리 밖을 가리키면 None)"""
    root = get_upload_root().resolve()
    candidate = (root / relative_path).resolve()
    if root != candidate and root not in candidate.parents:
        return None
    return candidate


def _size_error(field: str, max_size: int) -> ValidationException:
    limit_mb = max_size // (1024 * 1024)
    return ValidationException(
        f"File size exceeds maximum limit of {limit_mb}MB",
        validation_errors=[
            ValidationError(field=field, message=f"File must be no larger than {limit_mb}MB")
        ]
    )


# =============================================================================
# File Upload Operations
# =============================================================================

async def _store_upload(
    file: UploadFile,
    sub_dir: str,
    max_size: int,
    field: str,
    user_id: int,
    allowed_extensions: Optional[Set[str]] = None
) -> StoredAttachment:
    if not file.filename:
        raise ValidationException(
            "No file provided",
            validation_errors=[ValidationError(field=field, message="No file provided")]
        )

    if allowed_extensions is not None and get_file_extension(file.filename) not in allowed_extensions:
        allowed = ", ".join(sorted(allowed_extensions))
        raise ValidationException(
            f"Invalid file type. Allowed extensions: {allowed}",
            validation_errors=[ValidationError(field=field, message="Invalid file type", value=file.filename)]
        )

    # 선언된 크기가 있으면 먼저 거절
    if file.size is not None and file.size > max_size:
        raise _size_error(field, max_size)

    ensure_upload_directories()
    relative_path = f"{sub_dir}/{generate_unique_filename(file.filename)}"
    file_path = get_upload_root() / relative_path

    written = 0
    try:
        async with aiofiles.open(file_path, "wb") as f:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                # 실제 파일 크기 검증
                if written > max_size:
                    raise _size_error(field, max_size)
                await f.write(chunk)
    except Exception:
        if file_path.exists():
            os.remove(file_path)
        raise

    log_file_operation(logger, "upload", relative_path, user_id, file_size=written)
    return StoredAttachment(path=relative_path, original_name=file.filename, size=written)


async def save_attachment(file: UploadFile, user_id: int) -> StoredAttachment:
    """메시지 첨부파일 저장 (최대 settings.max_attachment_size)"""
    return await _store_upload(
        file,
        ATTACHMENTS_DIR,
        settings.max_attachment_size,
        field="attachment",
        user_id=user_id
    )


async def save_avatar(file: UploadFile, user_id: int) -> StoredAttachment:
    """프로필 이미지 저장 (이미지 파일만, 최대 settings.max_avatar_size)"""
    return await _store_upload(
        file,
        AVATARS_DIR,
        settings.max_avatar_size,
        field="avatar",
        user_id=user_id,
        allowed_extensions=ALLOWED_IMAGE_EXTENSIONS
    )


async def file_exists(relative_path: Optional[str]) -> bool:
    if not relative_path:
        return False
    file_path = resolve_path(relative_path)
    return file_path is not None and await aiofiles.os.path.isfile(file_path)


async def delete_file(relative_path: Optional[str], user_id: Optional[int] = None) -> bool:
    """저장된 파일 삭제. 파일이 없으면 False"""
    if not await file_exists(relative_path):
        return False

    try:
        await aiofiles.os.remove(resolve_path(relative_path))
    except OSError as e:
        logger.warning(f"Failed to delete file {relative_path}: {e}")
        return False

    log_file_operation(logger, "delete", relative_path, user_id)
    return True
