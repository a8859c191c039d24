"""
Email notification client.

Used by the login flow for OTP delivery and device approval requests.
Failures are logged and reported in the returned dict, never raised:
callers decide whether a failed send matters to them.
"""
import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Any, Dict, Iterable, List, Union

logger = logging.getLogger(__name__)

Recipients = Union[str, Iterable[str]]


def _as_list(to: Recipients) -> List[str]:
    if isinstance(to, str):
        to = [to]
    return [addr.strip() for addr in to if addr and addr.strip()]


class EmailNotifier:
    """SMTP client. One instance per process, built from settings."""

    def __init__(
        self,
        host: str,
        port: int = 25,
        username: str = "",
        password: str = "",
        use_tls: bool = False,
        sender: str = "no-reply@localhost",
        timeout: float = 15.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "EmailNotifier":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            sender=settings.mail_from,
        )

    async def send(self, to: Recipients, subject: str, body: str) -> Dict[str, Any]:
        recipients = _as_list(to)
        if not recipients:
            return {"success": False, "error": "No recipients"}
        try:
            await asyncio.to_thread(self._deliver, recipients, subject, body)
            return {"success": True, "recipients": recipients}
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email '{subject}' to {recipients} failed: {e}")
            return {"success": False, "error": str(e)}

    def _deliver(self, recipients: List[str], subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = ", ".join(recipients)
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    # ==================== LOGIN FLOW MESSAGES ====================

    async def send_login_otp(self, to: Recipients, admin_email: str, code: str, ttl_minutes: int) -> Dict[str, Any]:
        body = (
            f"A login was requested for {admin_email}.\n\n"
            f"One-time code: {code}\n\n"
            f"This code expires in {ttl_minutes} minutes and can be used once."
        )
        return await self.send(to, "Login verification code", body)

    async def send_approval_request(
        self, to: Recipients, admin_email: str, ip_address: str,
        device_info: str, location: str, login_attempt_id: int,
    ) -> Dict[str, Any]:
        body = (
            f"{admin_email} is trying to log in from a new device.\n\n"
            f"IP address: {ip_address or '--'}\n"
            f"Device: {device_info or '--'}\n"
            f"Location: {location or 'Unknown'}\n"
            f"Login attempt: #{login_attempt_id}\n\n"
            f"Approve or block this device from the admin dashboard."
        )
        return await self.send(to, "New device login needs approval", body)

    async def send_device_approved(self, to: Recipients) -> Dict[str, Any]:
        body = "Your new device has been approved. You can now log in from it."
        return await self.send(to, "Device approved", body)

    async def send_registration_otp(self, to: Recipients, code: str, ttl_minutes: int) -> Dict[str, Any]:
        body = (
            f"Your account verification code is {code}.\n\n"
            f"It expires in {ttl_minutes} minutes."
        )
        return await self.send(to, "Verify your account", body)

    async def send_password_reset_otp(self, to: Recipients, code: str, ttl_minutes: int) -> Dict[str, Any]:
        body = (
            f"Your password reset code is {code}.\n\n"
            f"It expires in {ttl_minutes} minutes. If you did not request a reset, ignore this email."
        )
        return await self.send(to, "Password reset code", body)
