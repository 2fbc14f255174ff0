import pytest

from storerate.validators import (
    MAX_ID,
    as_int,
    is_valid_rating,
    validate_login,
    validate_password_update,
    validate_registration,
    validate_store,
)

VALID = {
    "name": "A Perfectly Valid Name",
    "email": "valid@example.com",
    "address": "1 Valid Road",
    "password": "Valid@123",
    "role": "user",
}


def test_valid_registration_has_no_errors():
    assert validate_registration(VALID) == {}
    assert validate_registration(dict(VALID, role="contractor")) == {}


@pytest.mark.parametrize("field,value", [
    ("name", "Too short"),
    ("name", "x" * 61),
    ("email", "no-at-sign"),
    ("email", "a@b"),
    ("address", ""),
    ("address", "x" * 401),
    ("password", "Short@1"),
    ("password", "Waytoolong@123456"),
    ("password", "nouppercase@1"),
    ("password", "NoSpecial123"),
    ("role", "superuser"),
    ("role", None),
])
def test_registration_field_errors(field, value):
    errors = validate_registration(dict(VALID, **{field: value}))
    assert list(errors) == [field]


def test_login_validation():
    assert validate_login({"email": "a@b.co", "password": "x"}) == {}
    assert set(validate_login({})) == {"email", "password"}


def test_password_update_validation():
    ok = {"userId": 3, "oldPassword": "anything", "newPassword": "Valid@123"}
    assert validate_password_update(ok) == {}
    assert validate_password_update(dict(ok, userId="3")) == {}
    assert set(validate_password_update(dict(ok, userId=True))) == {"userId"}
    assert set(validate_password_update(dict(ok, userId=0))) == {"userId"}
    assert set(validate_password_update(dict(ok, newPassword="weak"))) == {"newPassword"}
    assert set(validate_password_update({})) == {"userId", "oldPassword", "newPassword"}


def test_store_validation():
    assert validate_store({"name": "Shop", "email": "s@shop.io", "address": "1 Road"}) == {}
    assert set(validate_store({})) == {"name", "email", "address"}


@pytest.mark.parametrize("value,expected", [
    (1, True), (5, True), ("3", True), (" 4 ", True),
    (0, False), (6, False), (2.5, False), (3.0, False), ("3.0", False),
    ("", False), (None, False), (True, False), ("²", False),
])
def test_is_valid_rating(value, expected):
    assert is_valid_rating(value) is expected


@pytest.mark.parametrize("value,expected", [
    (7, 7), ("42", 42), (" 8 ", 8), (str(MAX_ID), MAX_ID),
    (MAX_ID + 1, None), ("9" * 25, None), (-(10**30), None), (True, None), ("1e3", None),
])
def test_as_int_stays_within_64_bits(value, expected):
    assert as_int(value) == expected


def test_password_update_rejects_oversized_user_id():
    errors = validate_password_update({"userId": "9" * 25, "oldPassword": "Old@1234", "newPassword": "Newer@1234"})
    assert "userId" in errors
