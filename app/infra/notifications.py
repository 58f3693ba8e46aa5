"""
Notification Service

Alerts the business owner when a conversation is handed over to a
human: SMS through the Twilio REST API and e-mail through SMTP.
Delivery failures are collected in the result and never raised to the
scheduling engine.
"""

import asyncio
import html
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class NotificationError(Exception):
    """Raised when an SMS or e-mail cannot be delivered."""
    pass


@dataclass
class HandoverNotification:
    """Everything the owner needs to pick up a conversation."""

    conversation_id: str
    client_id: str
    urgency_score: int
    urgency_level: str
    reason: str
    triggers: list[str] = field(default_factory=list)
    last_messages: list[str] = field(default_factory=list)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    dashboard_link: str = ""

    @property
    def customer_label(self) -> str:
        return self.customer_name or self.customer_phone or "Unknown customer"


@dataclass
class NotificationResult:
    """Delivery outcome per channel."""

    sms_sent: bool = False
    email_sent: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.sms_sent or self.email_sent

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "sms_sent": self.sms_sent,
            "email_sent": self.email_sent,
            "errors": self.errors,
        }


def build_dashboard_link(client_id: str, conversation_id: str) -> str:
    """Link to the conversation in the owner dashboard."""
    base = settings.dashboard_base_url.rstrip("/")
    return f"{base}/clients/{client_id}/conversations/{conversation_id}"


def _redact(phone: str) -> str:
    if len(phone) <= 4:
        return "***"
    return f"***{phone[-4:]}"


class NotificationService:
    """Sends handover alerts over SMS and e-mail."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        """Initialize notification service.

        Args:
            http_client: Optional httpx client (for testing)
        """
        self._http = http_client

    # Formatting

    @staticmethod
    def format_sms(payload: HandoverNotification) -> str:
        return (
            f"{payload.urgency_level} PRIORITY HANDOVER\n\n"
            f"Customer: {payload.customer_label}\n"
            f"Reason: {payload.reason}\n\n"
            f"View conversation:\n{payload.dashboard_link}"
        )

    @staticmethod
    def format_email_subject(payload: HandoverNotification) -> str:
        customer = payload.customer_name or payload.customer_phone or "Customer"
        return f"[{payload.urgency_level}] Handover Request - {customer}"

    @staticmethod
    def format_email_body(payload: HandoverNotification) -> str:
        """HTML body with recent messages and triggers."""
        if payload.customer_name:
            customer = f"{payload.customer_name} ({payload.customer_phone or 'No phone'})"
        else:
            customer = payload.customer_label

        messages = "\n".join(f"<p>{html.escape(m)}</p>" for m in payload.last_messages)
        triggers = ", ".join(payload.triggers) or "none"

        return (
            f"<h2>Handover request ({html.escape(payload.urgency_level)})</h2>\n"
            f"<p><strong>Customer:</strong> {html.escape(customer)}</p>\n"
            f"<p><strong>Reason:</strong> {html.escape(payload.reason)}</p>\n"
            f"<p><strong>Urgency:</strong> {payload.urgency_score}/10</p>\n"
            f"<p><strong>Triggers:</strong> {html.escape(triggers)}</p>\n"
            f"<h3>Recent messages</h3>\n{messages}\n"
            f'<p><a href="{html.escape(payload.dashboard_link)}">View conversation</a></p>'
        )

    # Channels

    async def send_sms(self, to: str, body: str) -> str:
        """
        Send an SMS through Twilio.

        Args:
            to: Phone number (E.164 format)
            body: Message text

        Returns:
            Twilio message SID

        Raises:
            NotificationError: If Twilio is not configured or the request fails
        """
        sid = settings.twilio_account_sid
        token = settings.twilio_auth_token
        sender = settings.twilio_from_number
        if not sid or not token or not sender:
            raise NotificationError("Twilio is not configured")

        url = TWILIO_MESSAGES_URL.format(sid=sid)
        data = {"To": to, "From": sender, "Body": body}
        timeout = httpx.Timeout(settings.notification_timeout_seconds, connect=5.0)

        try:
            if self._http is not None:
                response = await self._http.post(url, data=data, auth=(sid, token))
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(url, data=data, auth=(sid, token))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"SMS to {_redact(to)} failed: {e}")
            raise NotificationError(f"SMS failed: {e}") from e

        message_sid = response.json().get("sid", "")
        logger.info(f"SMS sent to {_redact(to)}: {message_sid}")
        return message_sid

    async def send_email(self, to: str, subject: str, body: str) -> None:
        """
        Send an HTML e-mail over SMTP.

        Raises:
            NotificationError: If SMTP is not configured or sending fails
        """
        if not settings.smtp_host:
            raise NotificationError("SMTP is not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.smtp_from
        msg["To"] = to
        msg.attach(MIMEText(body, "html"))

        try:
            await asyncio.to_thread(self._deliver_email, to, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"E-mail to {to} failed: {e}")
            raise NotificationError(f"Email failed: {e}") from e

        logger.info(f"E-mail sent to {to}: {subject}")

    @staticmethod
    def _deliver_email(to: str, msg: MIMEMultipart) -> None:
        host, port = settings.smtp_host, settings.smtp_port
        timeout = settings.notification_timeout_seconds

        if port == 465:
            server = smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=timeout)
        else:
            server = smtplib.SMTP(host, port, timeout=timeout)
            server.starttls(context=ssl.create_default_context())

        try:
            if settings.smtp_username and settings.smtp_password:
                server.login(settings.smtp_username, settings.smtp_password)
            server.sendmail(settings.smtp_from, [to], msg.as_string())
        finally:
            server.quit()

    async def send_handover_notification(self, payload: HandoverNotification) -> NotificationResult:
        """
        Alert the owner on every configured channel.

        Never raises; failures are listed in the result.
        """
        result = NotificationResult()

        if settings.admin_phone:
            try:
                await self.send_sms(settings.admin_phone, self.format_sms(payload))
                result.sms_sent = True
            except NotificationError as e:
                result.errors.append(str(e))
        else:
            result.errors.append("No admin phone configured")

        if settings.admin_email:
            try:
                await self.send_email(
                    settings.admin_email,
                    self.format_email_subject(payload),
                    self.format_email_body(payload),
                )
                result.email_sent = True
            except NotificationError as e:
                result.errors.append(str(e))
        else:
            result.errors.append("No admin email configured")

        logger.info(
            f"Handover notification for {payload.conversation_id}: "
            f"sms={result.sms_sent} email={result.email_sent}"
        )
        return result


_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get singleton NotificationService."""
    global _service
    if _service is None:
        _service = NotificationService()
    return _service
