from datetime import timedelta
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    invalid_credentials_error,
    email_already_exists_error,
    invalid_token_error,
)
from app.core.logging import get_logger, log_authentication_event, set_user_context
from app.core.validators import (
    Validator,
    validate_user_registration,
    validate_user_login,
)
from app.database.mysql import get_async_session
from app.models.users import User
from app.schemas.user import (
    AuthResponse,
    RoomSummary,
    Token,
    UserCreate,
    UserLogin,
    UserResponse,
    UserWithRooms,
)
from app.services import auth_service, file_service, presence_service
from app.utils.auth import (
    get_password_hash,
    create_access_token,
    decode_access_token,
    token_expires_at,
)

logger = get_logger(__name__)

# OAuth2 설정
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")
router = APIRouter(prefix="/auth", tags=["Authentication"])


async def get_token_payload(
        token: str = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_async_session)
) -> dict:
    """
    Bearer 토큰 검증 (만료/위조/로그아웃된 토큰은 401)
    """
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        raise invalid_token_error()

    jti = payload.get("jti")
    if jti and await auth_service.is_token_revoked(db, jti):
        raise invalid_token_error()

    return payload


async def get_current_user(
        request: Request,
        payload: dict = Depends(get_token_payload),
        db: AsyncSession = Depends(get_async_session)
) -> User:
    """
    현재 인증된 사용자 조회

    인증된 요청마다 오프라인으로 기록된 사용자를 온라인으로 전환합니다.
    """
    user = await auth_service.find_user_by_id(db, int(payload["sub"]))
    if not user:
        raise invalid_token_error()

    request.state.user = user
    set_user_context(user.id)

    await presence_service.mark_online(db, user)

    return user


def _issue_token(user: User) -> tuple:
    access_token_expires = timedelta(hours=settings.access_token_expire_hours)
    access_token = create_access_token(
        data={"sub": str(user.id), "email": user.email},
        expires_delta=access_token_expires
    )
    return access_token, access_token_expires


@router.post("/register",
             response_model=AuthResponse,
             status_code=status.HTTP_201_CREATED)
async def register(
        user_data: UserCreate,
        db: AsyncSession = Depends(get_async_session)
) -> AuthResponse:
    """
    사용자 회원가입 후 바로 사용할 수 있는 토큰 발급
    """

    # 입력 검증
    validate_user_registration(
        user_data.name,
        user_data.email,
        user_data.password,
        user_data.password_confirmation
    )

    # 비즈니스 로직: 이메일 중복 확인
    if await auth_service.is_email_exists(db, user_data.email):
        raise email_already_exists_error()

    # 비밀번호 해싱 및 사용자 생성
    user = await auth_service.create_user(
        db=db,
        name=user_data.name.strip(),
        email=user_data.email,
        password_hash=get_password_hash(user_data.password)
    )

    access_token, _ = _issue_token(user)
    log_authentication_event(logger, "register", user_id=user.id, email=user.email)

    return AuthResponse(user=UserResponse.model_validate(user), token=access_token)


@router.post("/login", response_model=AuthResponse)
async def login(
        user_data: UserLogin,
        db: AsyncSession = Depends(get_async_session)
) -> AuthResponse:
    """
    사용자 로그인 (JSON 형식, 클라이언트 앱용)
    """

    # 입력 검증
    validate_user_login(user_data.email, user_data.password)

    # 사용자 인증
    user = await auth_service.authenticate_user_by_email(
        db,
        user_data.email,
        user_data.password
    )
    if not user:
        log_authentication_event(logger, "login", email=user_data.email, success=False)
        raise invalid_credentials_error()

    access_token, _ = _issue_token(user)
    await presence_service.set_status(db, user, True, broadcast_always=True)
    log_authentication_event(logger, "login", user_id=user.id, email=user.email)

    return AuthResponse(user=UserResponse.model_validate(user), token=access_token)


@router.post("/token", response_model=Token)
async def login_oauth2(
        form_data: OAuth2PasswordRequestForm = Depends(),
        db: AsyncSession = Depends(get_async_session)
) -> Token:
    """
    사용자 로그인 (OAuth2 표준, Swagger UI용)

    - Swagger UI의 "Authorize" 버튼 전용
    - application/x-www-form-urlencoded 형식
    - username 필드에 email 입력
    """
    validate_user_login(form_data.username, form_data.password)

    user = await auth_service.authenticate_user_by_email(db, form_data.username, form_data.password)
    if not user:
        raise invalid_credentials_error()

    access_token, access_token_expires = _issue_token(user)
    await presence_service.set_status(db, user, True, broadcast_always=True)

    return Token(
        access_token=access_token,
        token_type="bearer",
        expires_in=int(access_token_expires.total_seconds())
    )


@router.post("/logout")
async def logout(
        payload: dict = Depends(get_token_payload),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_async_session)
) -> dict:
    """
    사용자 로그아웃 (토큰 폐기 후 오프라인 처리)
    """
    if payload.get("jti"):
        await auth_service.revoke_token(db, payload["jti"], current_user.id, token_expires_at(payload))

    await presence_service.mark_offline(db, current_user)
    log_authentication_event(logger, "logout", user_id=current_user.id)

    return {"message": "Successfully logged out"}


@router.get("/user", response_model=UserWithRooms)
async def get_me(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_async_session)
) -> UserWithRooms:
    """현재 사용자 정보 (참여 중인 채팅방 포함)"""
    rooms = await auth_service.get_user_rooms(db, current_user.id)
    return UserWithRooms(
        **UserResponse.model_validate(current_user).model_dump(),
        rooms=[RoomSummary.model_validate(room) for room in rooms]
    )


@router.put("/profile", response_model=UserResponse)
async def update_profile(
        name: str = Form(...),
        avatar: Optional[UploadFile] = File(None),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_async_session)
) -> UserResponse:
    """
    프로필 수정 (multipart: name, avatar 이미지 선택)
    """
    name = Validator.validate_user_name(name)

    avatar_path = None
    previous_avatar = current_user.avatar
    if avatar is not None and avatar.filename:
        stored = await file_service.save_avatar(avatar, current_user.id)
        avatar_path = stored.path

    user = await auth_service.update_profile(db, current_user, name, avatar_path)

    if avatar_path and previous_avatar:
        await file_service.delete_file(previous_avatar, current_user.id)

    return UserResponse.model_validate(user)
