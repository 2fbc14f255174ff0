"""Shape and format checks run before any database access.

Every ``validate_*`` function takes the raw request payload and returns a dict
mapping field name to message; an empty dict means the payload is valid.
"""
import re
from typing import Any

from .models import ROLES, ROLE_ALIASES

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
UPPERCASE_RE = re.compile(r"[A-Z]")
SPECIAL_RE = re.compile(r"[^A-Za-z0-9]")

NAME_MIN, NAME_MAX = 20, 60
ADDRESS_MAX = 400
PASSWORD_MIN, PASSWORD_MAX = 8, 16
# largest value a signed 64-bit INTEGER column can hold
MAX_ID = 2**63 - 1


def as_int(value: Any) -> int | None:
    """Whole number from an int or an ASCII digit string; None otherwise.

    Values outside the signed 64-bit range are treated as invalid.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and re.fullmatch(r"[0-9]+", value.strip()):
        value = int(value.strip())
    if not isinstance(value, int) or abs(value) > MAX_ID:
        return None
    return value


def _text(data: dict, key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def normalize_role(role: str | None) -> str | None:
    if role is None:
        return None
    return ROLE_ALIASES.get(role, role)


def email_error(email: str) -> str | None:
    if not email:
        return "Email is required"
    if not EMAIL_RE.match(email):
        return "Email is invalid"
    return None


def password_error(password: Any) -> str | None:
    if not isinstance(password, str) or not password:
        return "Password is required"
    if not PASSWORD_MIN <= len(password) <= PASSWORD_MAX:
        return f"Password must be {PASSWORD_MIN}-{PASSWORD_MAX} characters long"
    if not UPPERCASE_RE.search(password):
        return "Password must include at least one uppercase letter"
    if not SPECIAL_RE.search(password):
        return "Password must include at least one special character"
    return None


def validate_registration(data: dict) -> dict[str, str]:
    errors: dict[str, str] = {}

    name = _text(data, "name")
    if not name:
        errors["name"] = "Name is required"
    elif not NAME_MIN <= len(name) <= NAME_MAX:
        errors["name"] = f"Name must be between {NAME_MIN} and {NAME_MAX} characters"

    msg = email_error(_text(data, "email"))
    if msg:
        errors["email"] = msg

    address = _text(data, "address")
    if not address:
        errors["address"] = "Address is required"
    elif len(address) > ADDRESS_MAX:
        errors["address"] = f"Address must not exceed {ADDRESS_MAX} characters"

    msg = password_error(data.get("password"))
    if msg:
        errors["password"] = msg

    role = data.get("role")
    if not role:
        errors["role"] = "Role is required"
    elif normalize_role(role) not in ROLES:
        errors["role"] = "Role must be one of: " + ", ".join(ROLES)

    return errors


def validate_login(data: dict) -> dict[str, str]:
    errors: dict[str, str] = {}
    msg = email_error(_text(data, "email"))
    if msg:
        errors["email"] = msg
    password = data.get("password")
    if not isinstance(password, str) or not password:
        errors["password"] = "Password is required"
    return errors


def validate_password_update(data: dict) -> dict[str, str]:
    errors: dict[str, str] = {}
    user_id = as_int(data.get("userId"))
    if user_id is None or user_id < 1:
        errors["userId"] = "User ID is required"
    old = data.get("oldPassword")
    if not isinstance(old, str) or not old:
        errors["oldPassword"] = "Current password is required"
    msg = password_error(data.get("newPassword"))
    if msg:
        errors["newPassword"] = msg
    return errors


def validate_store(data: dict) -> dict[str, str]:
    errors: dict[str, str] = {}
    name = _text(data, "name")
    if not name:
        errors["name"] = "Store name is required"
    elif len(name) > NAME_MAX:
        errors["name"] = f"Store name must not exceed {NAME_MAX} characters"
    msg = email_error(_text(data, "email"))
    if msg:
        errors["email"] = msg
    address = _text(data, "address")
    if not address:
        errors["address"] = "Address is required"
    elif len(address) > ADDRESS_MAX:
        errors["address"] = f"Address must not exceed {ADDRESS_MAX} characters"
    return errors


def is_valid_rating(value: Any) -> bool:
    """Ratings are whole numbers 1..5; digit strings are accepted for form posts."""
    value = as_int(value)
    return value is not None and 1 <= value <= 5
