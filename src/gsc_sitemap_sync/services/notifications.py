"""Indexing report emails: rendering, SMTP delivery and the delivery log."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
import logging
import smtplib
import ssl
from typing import Final, Protocol
from uuid import UUID

from jinja2 import Environment, PackageLoader, select_autoescape

from gsc_sitemap_sync.config import Settings
from gsc_sitemap_sync.models import EmailNotification, NotificationType, User
from gsc_sitemap_sync.utils.timestamps import utc_now

TEMPLATE_NAMES: Final[dict[NotificationType, str]] = {
    NotificationType.JOB_COMPLETE: "emails/job_complete.html",
    NotificationType.JOB_FAILED: "emails/job_failed.html",
}

_logger = logging.getLogger("gsc_sitemap_sync.notifications")

_environment = Environment(
    loader=PackageLoader("gsc_sitemap_sync", "templates"),
    autoescape=select_autoescape(["html", "xml"]),
)


class EmailDeliveryError(RuntimeError):
    """Raised when an email could not be handed to the SMTP server."""


class _Mailer(Protocol):
    async def send(self, recipient: str, subject: str, html: str) -> None: ...


class _NotificationStore(Protocol):
    async def get_user(self, user_id: UUID) -> User | None: ...

    async def create_email_notification(
        self,
        *,
        user_id: UUID,
        website_id: UUID | None,
        notification_type: NotificationType,
        subject: str,
        content: str,
    ) -> EmailNotification: ...


@dataclass(slots=True, frozen=True)
class RenderedEmail:
    subject: str
    html: str


def build_subject(domain: str, notification_type: NotificationType) -> str:
    if notification_type is NotificationType.JOB_FAILED:
        return f"Indexing failed for {domain}"
    return f"Indexing Report for {domain}"


def render_indexing_email(
    domain: str,
    notification_type: NotificationType,
    urls: Sequence[str],
    error_message: str | None = None,
) -> RenderedEmail:
    """Render the HTML report listing ``urls`` for ``domain``."""

    subject = build_subject(domain, notification_type)
    template = _environment.get_template(TEMPLATE_NAMES[notification_type])
    html = template.render(
        subject=subject,
        domain=domain,
        urls=list(urls),
        error_message=error_message,
        generated_at=utc_now(),
    )
    return RenderedEmail(subject=subject, html=html)


@dataclass(slots=True, frozen=True)
class SmtpSettings:
    host: str
    port: int
    sender: str
    use_tls: bool = True
    use_ssl: bool = False
    username: str | None = None
    password: str | None = None
    timeout: float = 30.0


class SmtpMailer:
    """Send HTML mail through an SMTP relay from a worker thread."""

    def __init__(self, settings: SmtpSettings) -> None:
        self._settings = settings

    @classmethod
    def from_settings(cls, settings: Settings) -> SmtpMailer | None:
        """Return ``None`` when no SMTP host is configured."""

        if not settings.SMTP_HOST:
            return None
        return cls(
            SmtpSettings(
                host=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                sender=settings.SMTP_FROM_ADDRESS,
                use_tls=settings.SMTP_USE_TLS,
                use_ssl=settings.SMTP_USE_SSL,
                username=settings.SMTP_USERNAME,
                password=(
                    settings.SMTP_PASSWORD.get_secret_value()
                    if settings.SMTP_PASSWORD is not None
                    else None
                ),
                timeout=settings.SMTP_TIMEOUT_SECONDS,
            )
        )

    async def send(self, recipient: str, subject: str, html: str) -> None:
        message = self._build_message(recipient, subject, html)
        await asyncio.to_thread(self._send_sync, message)

    def _build_message(self, recipient: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._settings.sender
        message["To"] = recipient
        message["Subject"] = subject
        message["Date"] = formatdate(localtime=False)
        message["Message-ID"] = make_msgid()
        message.set_content("This report requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        settings = self._settings
        context = ssl.create_default_context()
        try:
            if settings.use_ssl:
                client: smtplib.SMTP = smtplib.SMTP_SSL(
                    settings.host,
                    settings.port,
                    timeout=settings.timeout,
                    context=context,
                )
            else:
                client = smtplib.SMTP(
                    settings.host, settings.port, timeout=settings.timeout
                )
            with client:
                if settings.use_tls and not settings.use_ssl:
                    client.starttls(context=context)
                if settings.username and settings.password:
                    client.login(settings.username, settings.password)
                client.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"SMTP delivery failed: {exc}") from exc


class EmailNotificationService:
    """Deliver indexing reports and record each delivered email."""

    def __init__(self, *, store: _NotificationStore, mailer: _Mailer | None) -> None:
        self._store = store
        self._mailer = mailer

    async def send_email_notification(
        self,
        *,
        website_id: UUID,
        user_id: UUID,
        domain: str,
        notification_type: NotificationType,
        submitted_urls: Sequence[str],
        error_message: str | None = None,
    ) -> EmailNotification | None:
        """Best effort: failures are logged and never reach the caller."""

        log_context = {
            "website_id": str(website_id),
            "user_id": str(user_id),
            "notification_type": notification_type.value,
        }
        if self._mailer is None:
            _logger.info("email_notification_skipped_smtp_unconfigured", extra=log_context)
            return None

        try:
            user = await self._store.get_user(user_id)
            if user is None or not user.email:
                _logger.warning("email_notification_recipient_missing", extra=log_context)
                return None

            rendered = render_indexing_email(
                domain, notification_type, submitted_urls, error_message
            )
            await self._mailer.send(user.email, rendered.subject, rendered.html)
            notification = await self._store.create_email_notification(
                user_id=user_id,
                website_id=website_id,
                notification_type=notification_type,
                subject=rendered.subject,
                content=rendered.html,
            )
        except Exception as exc:
            # A failed report must not change the outcome of the run.
            _logger.error(
                "email_notification_failed",
                extra={
                    **log_context,
                    "error_type": exc.__class__.__name__,
                    "error": str(exc),
                },
            )
            return None

        _logger.info(
            "email_notification_sent",
            extra={**log_context, "url_count": len(submitted_urls)},
        )
        return notification


__all__ = [
    "EmailDeliveryError",
    "EmailNotificationService",
    "RenderedEmail",
    "SmtpMailer",
    "SmtpSettings",
    "build_subject",
    "render_indexing_email",
]
