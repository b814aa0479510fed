import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from agap.shared import config

logger = logging.getLogger("email_service")

RESET_TEMPLATE = """Hello {name},

Someone asked to reset the password of your AGAP account.
Open the link below to choose a new password:

{reset_url}

The link expires in 1 hour. If you did not ask for this, you can ignore this email.

AGAP
"""

ACCOUNT_STATUS_TEMPLATES = {
    "approved": (
        "Your AGAP responder account was approved",
        "Hello {name},\n\nAn administrator approved your responder account. "
        "You can now sign in to the AGAP dashboard at {login_url}.\n\nAGAP\n",
    ),
    "rejected": (
        "Your AGAP responder account request",
        "Hello {name},\n\nAn administrator reviewed your responder account request and did not approve it. "
        "Contact your local DRRM office if you think this is a mistake.\n\nAGAP\n",
    ),
}


class EmailService:
    """Plain-text notifications over SMTP with STARTTLS"""

    def __init__(self, server: Optional[str] = None, port: Optional[int] = None,
                 username: Optional[str] = None, password: Optional[str] = None,
                 from_email: Optional[str] = None):
        self.smtp_server = server or config.SMTP_SERVER
        self.smtp_port = port or config.SMTP_PORT
        self.smtp_username = username or config.SMTP_USERNAME
        self.smtp_password = password or config.SMTP_PASSWORD
        self.from_email = from_email or config.FROM_EMAIL or self.smtp_username

    @property
    def configured(self) -> bool:
        return bool(self.smtp_username and self.smtp_password)

    def build_message(self, to_email: str, subject: str, text: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(text)
        return msg

    def send(self, to_email: str, subject: str, text: str) -> bool:
        if not self.configured:
            logger.warning("SMTP credentials not configured. Email not sent.")
            return False
        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(self.build_message(to_email, subject, text))
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{subject}' to {to_email}: {e}")
            return False
        logger.info(f"Sent '{subject}' to {to_email}")
        return True

    def send_password_reset_email(self, to_email: str, reset_token: str, name: str) -> bool:
        reset_url = f"{config.FRONTEND_URL}/forgot-password?token={reset_token}"
        return self.send(to_email, "Password Reset Request - AGAP", RESET_TEMPLATE.format(name=name, reset_url=reset_url))

    def send_account_status_email(self, to_email: str, name: str, account_status: str) -> bool:
        template = ACCOUNT_STATUS_TEMPLATES.get(account_status)
        if not template:
            return False
        subject, text = template
        return self.send(to_email, subject, text.format(name=name, login_url=f"{config.FRONTEND_URL}/login"))


email_service = EmailService()


async def send_password_reset_email(to_email: str, reset_token: str, name: str) -> bool:
    return await run_in_threadpool(email_service.send_password_reset_email, to_email, reset_token, name)


async def send_account_status_email(to_email: str, name: str, account_status: str) -> bool:
    return await run_in_threadpool(email_service.send_account_status_email, to_email, name, account_status)
