"""
Form validation rules shared by the request schemas.

Every rule runs before a request is built, so a rejected form never
reaches the network.
"""
import re

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")

PASSWORD_MIN_LENGTH = 6
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
FULL_NAME_MIN_LENGTH = 2
PROJECT_TITLE_MIN_LENGTH = 3
PROJECT_DESCRIPTION_MIN_LENGTH = 10
COMMENT_MIN_LENGTH = 1
COMMENT_MAX_LENGTH = 1000

# Sentinel strings that leak from unset identifiers upstream
INVALID_IDENTIFIERS = frozenset({"null", "undefined"})


def blank_to_none(value: str | None) -> str | None:
    """Return None for missing or whitespace-only strings."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def validate_email(email: str) -> str:
    """Validate email format and return it trimmed."""
    email = email.strip()
    if not email:
        raise ValueError("Email is required")
    if not EMAIL_PATTERN.match(email):
        raise ValueError(f"Invalid email format: '{email}'")
    return email


def validate_password(password: str) -> str:
    """Validate minimum password length."""
    if not password:
        raise ValueError("Password is required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    return password


def validate_username(username: str | None) -> str | None:
    """
    Validate username length and characters.

    Format: letters, digits and underscores, 3 to 30 characters.
    Empty values are treated as not provided.
    """
    username = blank_to_none(username)
    if username is None:
        return None
    username = username.strip()
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValueError(f"Username must be at least {USERNAME_MIN_LENGTH} characters")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValueError(f"Username cannot be longer than {USERNAME_MAX_LENGTH} characters")
    if not USERNAME_PATTERN.match(username):
        raise ValueError(
            f"Invalid username: '{username}'. Use letters, numbers and underscores only.",
        )
    return username


def validate_full_name(full_name: str | None) -> str | None:
    """Validate full name length after trimming; empty means not provided."""
    full_name = blank_to_none(full_name)
    if full_name is None:
        return None
    full_name = full_name.strip()
    if len(full_name) < FULL_NAME_MIN_LENGTH:
        raise ValueError(f"Full name must be at least {FULL_NAME_MIN_LENGTH} characters")
    return full_name


def normalize_tech_stack(tech_stack: list[str]) -> list[str]:
    """Trim entries, drop blanks and duplicates, keeping first-seen order."""
    normalized: list[str] = []
    for tech in tech_stack:
        tech = tech.strip()
        if tech and tech not in normalized:
            normalized.append(tech)
    return normalized


def is_valid_identifier(value: str | None) -> bool:
    """Check an identifier is present and not a leaked sentinel string."""
    if not value or not value.strip():
        return False
    return value.strip() not in INVALID_IDENTIFIERS
