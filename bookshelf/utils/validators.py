import re
from typing import Optional

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AccountValidator:
    """Checks for registration input. Each method returns an error message or None."""

    USERNAME_MIN = 3
    USERNAME_MAX = 30
    PASSWORD_MIN = 6

    @staticmethod
    def normalize_email(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        return raw.strip().lower()

    @staticmethod
    def normalize_username(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        return raw.strip()

    @staticmethod
    def check_email(email: str) -> Optional[str]:
        if not _EMAIL_RE.match(email):
            return "Please provide a valid email"
        return None

    @staticmethod
    def check_username(username: str) -> Optional[str]:
        if not AccountValidator.USERNAME_MIN <= len(username) <= AccountValidator.USERNAME_MAX:
            return (
                f"Username must be between {AccountValidator.USERNAME_MIN} "
                f"and {AccountValidator.USERNAME_MAX} characters"
            )
        return None

    @staticmethod
    def check_password(password: str) -> Optional[str]:
        if len(password) < AccountValidator.PASSWORD_MIN:
            return f"Password must be at least {AccountValidator.PASSWORD_MIN} characters"
        return None


class TextValidator:
    """Very basic text checks shared by the repository and the proxy."""

    @staticmethod
    def is_blank(text: Optional[str]) -> bool:
        if text is None:
            return True
        return not str(text).strip()
