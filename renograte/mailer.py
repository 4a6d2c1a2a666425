"""
renograte/mailer.py

Outgoing mail for verification and password-reset links.

send() returns False instead of raising so callers can decide how a delivery
failure surfaces (signup still succeeds, resend-verification reports 500).
Without SMTP_HOST in dev the link is printed to the console.
"""

from __future__ import annotations

import html
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from renograte import config


class Mailer:
    """SMTP delivery using the settings in renograte.config."""

    def send(self, to_email: str, subject: str, body_html: str) -> bool:
        if not config.SMTP_HOST:
            if config.IS_DEV:
                print(f"[MAIL] (console) to={to_email} subject={subject!r}\n{body_html}")
                return True
            print("[MAIL] SMTP_HOST not configured; cannot send mail")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = config.EMAIL_FROM
        msg["To"] = to_email
        msg.attach(MIMEText(body_html, "html"))

        try:
            with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as server:
                if config.SMTP_USE_TLS:
                    server.starttls()
                if config.SMTP_USER and config.SMTP_PASSWORD:
                    server.login(config.SMTP_USER, config.SMTP_PASSWORD)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            print(f"[MAIL] Delivery failed: to={to_email}, subject={subject!r}, error={e}")
            return False

        print(f"[MAIL] Sent: to={to_email}, subject={subject!r}")
        return True

    def send_verification_email(self, to_email: str, name: Optional[str], token: str) -> bool:
        url = f"{config.APP_BASE_URL}/verify-email?token={token}"
        body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2>Welcome to Renograte!</h2>
          <p>Hello {html.escape(name or 'there')},</p>
          <p>Thank you for signing up. Please verify your email address by clicking the link below:</p>
          <p><a href="{url}">Verify Email Address</a></p>
          <p>This link will expire in {config.VERIFICATION_TOKEN_HOURS} hours.</p>
          <p>If you didn't create an account with us, you can safely ignore this email.</p>
          <p>Best regards,<br>The Renograte Team</p>
        </div>
        """
        return self.send(to_email, "Verify your email address", body)

    def send_password_reset_email(self, to_email: str, name: Optional[str], token: str) -> bool:
        url = f"{config.APP_BASE_URL}/reset-password?token={token}"
        body = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2>Reset Your Password</h2>
          <p>Hello {html.escape(name or 'there')},</p>
          <p>We received a request to reset your password. Click the link below to create a new password:</p>
          <p><a href="{url}">Reset Password</a></p>
          <p>This link will expire in {config.RESET_TOKEN_MINUTES} minutes.</p>
          <p>If you didn't request a password reset, you can safely ignore this email.</p>
          <p>Best regards,<br>The Renograte Team</p>
        </div>
        """
        return self.send(to_email, "Reset Your Password", body)


_mailer = Mailer()


def get_mailer() -> Mailer:
    """FastAPI dependency; tests override it with a recording mailer."""
    return _mailer
