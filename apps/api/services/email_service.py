"""
Email Service

Sends verification codes and account invitations over SMTP.
Every SMTP call is bounded by EXTERNAL_API_TIMEOUT. Callers decide whether a
failed delivery blocks their operation; this service only reports it.
"""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from core.config import settings
import logging

logger = logging.getLogger(__name__)

BRAND = "Footballers Insight"


def _wrap(title: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h2 style="color: #e3ca76;">{title}</h2>'
        f"{body}"
        f'<p style="color: #888; font-size: 12px; margin-top: 30px;">{BRAND} Team</p>'
        "</div>"
    )


def _code_block(code: str) -> str:
    return (
        '<div style="background-color: #1a1a1a; padding: 20px; text-align: center; '
        'margin: 20px 0; border-radius: 8px;">'
        f'<h1 style="color: #e3ca76; font-size: 32px; letter-spacing: 8px; margin: 0;">{code}</h1>'
        "</div>"
    )


def _credentials_block(email: str, password: str) -> str:
    return (
        '<div style="background-color: #1a1a1a; padding: 20px; margin: 20px 0; border-radius: 8px;">'
        f'<p style="color: #ffffff;"><strong>Email:</strong> {email}</p>'
        f'<p style="color: #ffffff;"><strong>Password:</strong> '
        f'<span style="font-family: monospace;">{password}</span></p>'
        "</div>"
    )


class EmailService:
    """Service for sending emails"""

    def __init__(self):
        self.smtp_server = settings.SMTP_SERVER
        self.smtp_port = settings.SMTP_PORT
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL
        self.from_name = settings.FROM_NAME
        self.enabled = settings.EMAIL_ENABLED
        self.timeout = settings.EXTERNAL_API_TIMEOUT
        self.login_url = f"{settings.WEB_APP_BASE_URL.rstrip('/')}/login"

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Returns True if sent (or intentionally suppressed because email is
        disabled), False if delivery failed.
        """
        if not self.enabled:
            logger.info(f"Email disabled, would send to {to_email}: {subject}")
            return True

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain'))
            msg.attach(MIMEText(html_content, 'html'))

            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                if self.smtp_username and self.smtp_password:
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                f"Error sending email to {to_email}: {str(e)}",
                extra={"extra_fields": {"event": "email_send_failed", "subject": subject}},
            )
            return False

    def send_verification_email(self, to_email: str, code: str, name: str) -> bool:
        body = (
            f"<p>Hi {name},</p>"
            "<p>Thank you for signing up. Please verify your email address by entering the following code:</p>"
            f"{_code_block(code)}"
            "<p>If you didn't create an account, please ignore this email.</p>"
        )
        text = f"Hi {name},\n\nYour {BRAND} verification code is {code}.\n"
        return self.send_email(
            to_email,
            f"Verify your {BRAND} account",
            _wrap(f"Welcome to {BRAND}!", body),
            text,
        )

    def send_email_change_code(self, to_email: str, code: str, name: str) -> bool:
        body = (
            f"<p>Hi {name},</p>"
            "<p>Enter this code to confirm your new email address:</p>"
            f"{_code_block(code)}"
            "<p>If you didn't request this change, you can ignore this email.</p>"
        )
        text = f"Hi {name},\n\nYour email change code is {code}.\n"
        return self.send_email(
            to_email,
            f"Confirm your new {BRAND} email",
            _wrap("Confirm your email", body),
            text,
        )

    def send_staff_invitation(
        self,
        to_email: str,
        name: str,
        role: str,
        company_name: str,
        password: str,
    ) -> bool:
        body = (
            f"<p>Hi {name},</p>"
            f"<p>You've been invited to join <strong>{company_name}</strong> as {'an' if role == 'admin' else 'a'} "
            f"{role} on {BRAND}.</p>"
            "<p>Your account has been created with the following credentials:</p>"
            f"{_credentials_block(to_email, password)}"
            f'<p><a href="{self.login_url}">Log in</a> to get started. '
            "You will be asked to choose a new password.</p>"
        )
        text = (
            f"Hi {name},\n\nYou've been invited to join {company_name} on {BRAND}.\n"
            f"Email: {to_email}\nPassword: {password}\nLog in: {self.login_url}\n"
        )
        return self.send_email(
            to_email,
            f"You've been invited to join {company_name} on {BRAND}",
            _wrap(f"Welcome to {BRAND}!", body),
            text,
        )

    def send_player_invitation(
        self,
        to_email: str,
        name: str,
        player_name: str,
        team_name: str,
        password: Optional[str] = None,
    ) -> bool:
        """Invite a supervising account. Without a password the account already exists."""
        if password:
            body = (
                f"<p>Hi {name},</p>"
                f"<p><strong>{player_name}</strong> has been added to <strong>{team_name}</strong>.</p>"
                "<p>Your account has been created with the following credentials:</p>"
                f"{_credentials_block(to_email, password)}"
                f'<p><a href="{self.login_url}">Log in</a> to set your password and complete '
                f"{player_name}'s profile.</p>"
            )
            title = f"Welcome to {BRAND}!"
        else:
            body = (
                f"<p>Hi {name},</p>"
                f"<p><strong>{player_name}</strong> has been added to <strong>{team_name}</strong>.</p>"
                f'<p><a href="{self.login_url}">Log in</a> to complete {player_name}\'s profile '
                "(date of birth, gender, dominant foot).</p>"
            )
            title = "New Player Added"
        return self.send_email(
            to_email,
            f"{player_name} has been added to {team_name} on {BRAND}",
            _wrap(title, body),
        )


# Singleton instance
email_service = EmailService()
