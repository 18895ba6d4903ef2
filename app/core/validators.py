import re
from typing import Optional, List, Any, Union, Iterable

from .errors import ValidationException, ValidationError

MAX_MESSAGE_LENGTH = 2000
MAX_REACTION_LENGTH = 10
MAX_ROOM_NAME_LENGTH = 255
MAX_ROOM_DESCRIPTION_LENGTH = 500
MAX_USER_NAME_LENGTH = 255
MIN_PASSWORD_LENGTH = 8
MIN_SEARCH_LENGTH = 2
MAX_SEARCH_LENGTH = 255

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def _invalid(summary: str, field: str, *messages: str, value: Any = None) -> ValidationException:
    """필드 하나에 대한 ValidationException 생성 (세부 메시지가 없으면 summary 사용)"""
    return ValidationException(
        summary,
        validation_errors=[
            ValidationError(field=field, message=message, value=value)
            for message in (messages or (summary,))
        ]
    )


class Validator:
    """입력 검증 유틸리티

    모든 메서드는 검증에 실패하면 ValidationException(422) 을 발생시키고,
    성공하면 (필요시 정리된) 값을 그대로 돌려줍니다.
    """

    @staticmethod
    def validate_required(value: Any, field_name: str) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise _invalid(f"{field_name} is required", field_name, "This field is required")
        return value

    @staticmethod
    def validate_string_length(
        value: str,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None
    ) -> str:
        if min_length is not None and len(value) < min_length:
            raise _invalid(
                f"{field_name} is too short", field_name,
                f"Must be at least {min_length} characters long", value=len(value)
            )
        if max_length is not None and len(value) > max_length:
            raise _invalid(
                f"{field_name} is too long", field_name,
                f"Must be no more than {max_length} characters long", value=len(value)
            )
        return value

    @staticmethod
    def validate_email_format(email: Optional[str], field_name: str = "email") -> str:
        if not email or not EMAIL_PATTERN.match(email):
            raise _invalid("Invalid email format", field_name, value=email)
        return email

    @staticmethod
    def validate_password_strength(password: str, field_name: str = "password") -> str:
        """비밀번호 규칙: 8자 이상, 영문자와 숫자를 모두 포함"""
        problems = []
        if len(password) < MIN_PASSWORD_LENGTH:
            problems.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if not re.search(r'[a-zA-Z]', password):
            problems.append("Password must contain at least one letter")
        if not re.search(r'\d', password):
            problems.append("Password must contain at least one digit")

        if problems:
            raise _invalid("Password does not meet security requirements", field_name, *problems)
        return password

    @staticmethod
    def validate_positive_integer(value: Union[int, str], field_name: str) -> int:
        try:
            number = int(value)
        except (ValueError, TypeError):
            number = 0
        if number <= 0:
            raise _invalid(f"{field_name} must be a positive integer", field_name, value=value)
        return number

    @staticmethod
    def validate_message_text(text: Optional[str], has_attachment: bool = False, field_name: str = "message") -> str:
        """메시지 본문 (첨부파일이 있으면 빈 본문 허용)"""
        text = text or ""
        if not text.strip() and not has_attachment:
            raise _invalid("Message cannot be empty", field_name)
        if len(text) > MAX_MESSAGE_LENGTH:
            raise _invalid(
                "Message is too long", field_name,
                f"Message must be no more than {MAX_MESSAGE_LENGTH} characters", value=len(text)
            )
        return text

    @staticmethod
    def validate_reaction(reaction: Optional[str], field_name: str = "reaction") -> str:
        Validator.validate_required(reaction, field_name)
        return Validator.validate_string_length(reaction, field_name, max_length=MAX_REACTION_LENGTH)

    @staticmethod
    def validate_room_name(name: Optional[str], field_name: str = "name") -> str:
        Validator.validate_required(name, field_name)
        return Validator.validate_string_length(name.strip(), field_name, max_length=MAX_ROOM_NAME_LENGTH)

    @staticmethod
    def validate_room_description(description: Optional[str], field_name: str = "description") -> Optional[str]:
        if description is None:
            return None
        return Validator.validate_string_length(description, field_name, max_length=MAX_ROOM_DESCRIPTION_LENGTH)

    @staticmethod
    def validate_participant_ids(participant_ids: Optional[Iterable[Any]], field_name: str = "participants") -> List[int]:
        ids = list(participant_ids or [])
        if not ids:
            raise _invalid("At least one participant is required", field_name)
        return [Validator.validate_positive_integer(value, f"{field_name}.{index}") for index, value in enumerate(ids)]

    @staticmethod
    def validate_search_query(query: Optional[str], field_name: str = "query") -> str:
        Validator.validate_required(query, field_name)
        return Validator.validate_string_length(
            query.strip(), field_name, min_length=MIN_SEARCH_LENGTH, max_length=MAX_SEARCH_LENGTH
        )

    @staticmethod
    def validate_user_name(name: Optional[str], field_name: str = "name") -> str:
        Validator.validate_required(name, field_name)
        return Validator.validate_string_length(name.strip(), field_name, max_length=MAX_USER_NAME_LENGTH)


def validate_user_registration(name: str, email: str, password: str, password_confirmation: Optional[str]):
    """회원가입 입력 검증"""
    Validator.validate_user_name(name)
    Validator.validate_email_format(email)
    Validator.validate_password_strength(password)

    if password_confirmation is not None and password != password_confirmation:
        raise _invalid("Password confirmation does not match", "password_confirmation")


def validate_user_login(email: str, password: str):
    Validator.validate_email_format(email)
    Validator.validate_required(password, "password")
