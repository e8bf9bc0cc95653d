"""Tests for one-time password reset codes."""

import datetime
from types import SimpleNamespace

import pytest

from Security.password_reset import (
    ERROR_EXPIRED_CODE,
    ERROR_NO_CODE,
    ERROR_WRONG_CODE,
    PasswordResetCodes,
    ResetCodeError,
)


@pytest.fixture
def user():
    return SimpleNamespace(reset_code_hash=None, reset_code_expires_at=None)


@pytest.fixture
def codes(clock):
    return PasswordResetCodes(ttl_minutes=10, clock=clock)


def test_issue_stores_only_a_hash(codes, user, clock):
    code = codes.issue(user)

    assert len(code) == 6 and code.isdigit()
    assert user.reset_code_hash != code
    assert user.reset_code_expires_at == clock.now + datetime.timedelta(minutes=10)
    codes.verify(user, code)


def test_reissue_replaces_previous_code(codes, user):
    first = codes.issue(user)
    second = codes.issue(user)

    codes.verify(user, second)
    if first != second:
        with pytest.raises(ResetCodeError, match=ERROR_WRONG_CODE):
            codes.verify(user, first)


@pytest.mark.parametrize("missing", [None, "no-code"])
def test_missing_user_or_code(codes, user, missing):
    target = None if missing is None else user

    with pytest.raises(ResetCodeError, match=ERROR_NO_CODE):
        codes.verify(target, "123456")


def test_wrong_code_is_checked_before_expiry(codes, user, clock):
    code = codes.issue(user)
    clock.advance(minutes=30)
    wrong = "000000" if code != "000000" else "111111"

    with pytest.raises(ResetCodeError, match=ERROR_WRONG_CODE):
        codes.verify(user, wrong)


def test_code_valid_until_expiry(codes, user, clock):
    code = codes.issue(user)

    clock.advance(minutes=10)
    codes.verify(user, code)

    clock.advance(seconds=1)
    with pytest.raises(ResetCodeError, match=ERROR_EXPIRED_CODE):
        codes.verify(user, code)


def test_clear(codes, user):
    code = codes.issue(user)

    codes.clear(user)

    assert user.reset_code_hash is None
    assert user.reset_code_expires_at is None
    with pytest.raises(ResetCodeError, match=ERROR_NO_CODE):
        codes.verify(user, code)
