from datetime import timedelta

import pytest
from jose import JWTError

from parallel_life.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    is_valid_email,
    password_strength_error,
    verify_password,
)


def test_password_hashing():
    password = "secret_parallel_life"
    hashed = get_password_hash(password)

    assert hashed != password #Hashed should not be the plain
    assert verify_password(password, hashed) is True
    assert verify_password("wrong_life", hashed) is False


def test_malformed_hash():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_token_round_trip():
    token = create_access_token({"sub": "someone@parallel.life"})
    assert decode_access_token(token)["sub"] == "someone@parallel.life"


def test_expired_token():
    token = create_access_token({"sub": "someone@parallel.life"}, expires_delta=timedelta(minutes=-1))
    with pytest.raises(JWTError):
        decode_access_token(token)


@pytest.mark.parametrize("password, problem", [
    ("Short1", "at least 8"),
    ("NOLOWERCASE1", "lowercase"),
    ("nouppercase1", "uppercase"),
    ("NoDigitsHere", "digit"),
])
def test_weak_passwords(password, problem):
    assert problem in password_strength_error(password)


def test_strong_password():
    assert password_strength_error("Parallel1ife") is None


def test_email_format():
    assert is_valid_email("someone@parallel.life")
    assert not is_valid_email("someone@parallel")
    assert not is_valid_email("some one@parallel.life")
