"""
renograte/test_workflow.py

Signup, email verification, password reset and password change flows at the
service layer.

Run:
    pytest renograte/test_workflow.py -v
"""

from datetime import timedelta

import pytest

from renograte.errors import Conflict, InvalidInput, NotFound
from renograte.tokens import TokenKind, TokenStatus, inspect_token, issue_token, utcnow
from renograte.users import get_user_by_email, verify_password
from renograte.workflow import (
    ResetOutcome,
    VerifyOutcome,
    change_password,
    check_reset_token,
    request_password_reset,
    resend_verification,
    reset_password,
    signup,
    verify_email,
)


class TestSignup:
    def test_signup_creates_unverified_user_and_mails_link(self, conn, mailer):
        result = signup(conn, mailer, "Alice", "  Alice@Example.com ", "password123")

        assert result.email_sent
        assert result.user["email"] == "alice@example.com"
        assert result.user["role"] == "user"
        assert result.user["email_verified"] is None
        assert mailer.sent[-1]["to"] == "alice@example.com"
        assert inspect_token(conn, mailer.last_token(), TokenKind.VERIFICATION).ok

    def test_duplicate_email(self, conn, mailer):
        signup(conn, mailer, "Alice", "alice@example.com", "password123")
        with pytest.raises(Conflict):
            signup(conn, mailer, "Alice Again", "ALICE@example.com", "password456")

    def test_short_password(self, conn, mailer):
        with pytest.raises(InvalidInput):
            signup(conn, mailer, "Alice", "alice@example.com", "short")
        assert get_user_by_email(conn, "alice@example.com") is None

    def test_mail_failure_keeps_user(self, conn, mailer):
        mailer.fail = True
        result = signup(conn, mailer, "Alice", "alice@example.com", "password123")
        assert not result.email_sent
        assert get_user_by_email(conn, "alice@example.com") is not None

    def test_name_is_escaped_in_mail(self, conn, mailer):
        signup(conn, mailer, '<a href="http://evil.example">x</a>', "alice@example.com", "password123")

        body = mailer.sent[-1]["body"]
        assert "Hello &lt;a href=&quot;http://evil.example&quot;&gt;x&lt;/a&gt;," in body
        assert '<a href="http://evil.example">' not in body


class TestVerifyEmail:
    def test_verify_stamps_user(self, conn, mailer):
        signup(conn, mailer, "Alice", "alice@example.com", "password123")

        assert verify_email(conn, mailer.last_token()) == VerifyOutcome.VERIFIED
        assert get_user_by_email(conn, "alice@example.com")["email_verified"] is not None

    def test_second_verification_leaves_stamp_unchanged(self, conn, mailer):
        signup(conn, mailer, "Alice", "alice@example.com", "password123")
        verify_email(conn, mailer.last_token())
        stamped = get_user_by_email(conn, "alice@example.com")["email_verified"]

        token = issue_token(conn, "alice@example.com", TokenKind.VERIFICATION)

        assert verify_email(conn, token) == VerifyOutcome.ALREADY_VERIFIED
        assert get_user_by_email(conn, "alice@example.com")["email_verified"] == stamped

    def test_same_link_twice(self, conn, mailer):
        signup(conn, mailer, "Alice", "alice@example.com", "password123")
        token = mailer.last_token()

        assert verify_email(conn, token) == VerifyOutcome.VERIFIED
        assert verify_email(conn, token) == VerifyOutcome.INVALID

    def test_expired_link(self, conn):
        token = issue_token(conn, "alice@example.com", TokenKind.VERIFICATION, now=utcnow() - timedelta(days=2))
        assert verify_email(conn, token) == VerifyOutcome.EXPIRED

    def test_token_for_missing_user(self, conn):
        token = issue_token(conn, "ghost@example.com", TokenKind.VERIFICATION)
        assert verify_email(conn, token) == VerifyOutcome.USER_NOT_FOUND


class TestResendVerification:
    def test_resend_replaces_token(self, conn, mailer):
        signup(conn, mailer, "Alice", "alice@example.com", "password123")
        first = mailer.last_token()

        assert resend_verification(conn, mailer, "alice@example.com")
        second = mailer.last_token()

        assert first != second
        assert verify_email(conn, first) == VerifyOutcome.INVALID
        assert verify_email(conn, second) == VerifyOutcome.VERIFIED

    def test_unknown_email(self, conn, mailer):
        with pytest.raises(NotFound):
            resend_verification(conn, mailer, "nobody@example.com")

    def test_already_verified(self, conn, make_user, mailer):
        make_user(email="alice@example.com", verified=True)
        with pytest.raises(InvalidInput):
            resend_verification(conn, mailer, "alice@example.com")


class TestPasswordReset:
    def test_reset_flow(self, conn, make_user, mailer):
        make_user(email="alice@example.com", password="oldpassword")
        request_password_reset(conn, mailer, "alice@example.com")
        token = mailer.last_token()

        assert check_reset_token(conn, token).email == "alice@example.com"
        assert reset_password(conn, token, "newpassword") == ResetOutcome.RESET
        assert reset_password(conn, token, "anotherpassword") == ResetOutcome.INVALID

        user = get_user_by_email(conn, "alice@example.com")
        assert verify_password("newpassword", user["password_hash"])
        assert not verify_password("oldpassword", user["password_hash"])

    def test_unknown_email_sends_nothing(self, conn, mailer):
        request_password_reset(conn, mailer, "nobody@example.com")
        assert mailer.sent == []

    def test_expired_token(self, conn, make_user):
        make_user(email="alice@example.com")
        token = issue_token(conn, "alice@example.com", TokenKind.RESET, now=utcnow() - timedelta(minutes=61))

        assert check_reset_token(conn, token).status == TokenStatus.EXPIRED
        assert reset_password(conn, token, "newpassword") == ResetOutcome.INVALID

    def test_expired_token_on_reset(self, conn, make_user):
        make_user(email="alice@example.com")
        token = issue_token(conn, "alice@example.com", TokenKind.RESET, now=utcnow() - timedelta(hours=3))
        assert reset_password(conn, token, "newpassword") == ResetOutcome.EXPIRED

    def test_short_password_leaves_token(self, conn, make_user):
        make_user(email="alice@example.com")
        token = issue_token(conn, "alice@example.com", TokenKind.RESET)

        with pytest.raises(InvalidInput):
            reset_password(conn, token, "short")
        assert inspect_token(conn, token, TokenKind.RESET).ok

    def test_failed_update_rolls_back_token(self, conn):
        """The token survives when the password write finds no user."""
        token = issue_token(conn, "ghost@example.com", TokenKind.RESET)

        with pytest.raises(NotFound):
            reset_password(conn, token, "newpassword")
        assert inspect_token(conn, token, TokenKind.RESET).ok


class TestChangePassword:
    def test_change_password(self, conn, make_user):
        user = make_user(email="alice@example.com", password="oldpassword")

        change_password(conn, user.id, "oldpassword", "newpassword")

        stored = get_user_by_email(conn, "alice@example.com")
        assert verify_password("newpassword", stored["password_hash"])
        assert not verify_password("oldpassword", stored["password_hash"])

    def test_wrong_current_password(self, conn, make_user):
        user = make_user(email="alice@example.com", password="oldpassword")

        with pytest.raises(InvalidInput) as excinfo:
            change_password(conn, user.id, "not-my-password", "newpassword")

        assert excinfo.value.message == "Current password is incorrect"
        assert verify_password("oldpassword", get_user_by_email(conn, "alice@example.com")["password_hash"])

    def test_short_new_password(self, conn, make_user):
        user = make_user(email="alice@example.com", password="oldpassword")
        with pytest.raises(InvalidInput):
            change_password(conn, user.id, "oldpassword", "short")

    def test_missing_user(self, conn):
        with pytest.raises(NotFound):
            change_password(conn, 999, "oldpassword", "newpassword")
