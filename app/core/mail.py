"""
Outbound transactional mail.

The Mailer owns a DailyQuota and a MailTransport. Every send reserves one
unit of quota first; once the ceiling is hit, delivery stops for the rest
of the (UTC) day. Sends are synchronous with the calling request: there is
no queue and no retry.
"""

from __future__ import annotations

import asyncio
import smtplib
from datetime import date, datetime, timedelta, timezone
from email.message import EmailMessage
from typing import Callable, Iterable, Optional, Protocol

import redis.asyncio as redis
import structlog

from app.core.config import Settings, get_settings
from app.core.errors import ConflictError

log = structlog.get_logger()


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class TransportError(Exception):
    """A single message could not be delivered."""


class QuotaExceededError(ConflictError):
    def __init__(self):
        super().__init__("Daily email limit reached. Email sending blocked.")


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------


class DailyQuota(Protocol):
    async def try_reserve(self) -> bool: ...


class InMemoryDailyQuota:
    """Per-process counter. Each instance of a multi-process deployment gets
    its own ceiling, so the effective limit is ``limit * instances``."""

    def __init__(self, limit: int, today: Callable[[], date] = _utc_today):
        self.limit = limit
        self._today = today
        self._day = today()
        self._count = 0

    @property
    def used(self) -> int:
        return self._count

    async def try_reserve(self) -> bool:
        current = self._today()
        if current != self._day:
            self._day = current
            self._count = 0
        if self._count >= self.limit:
            return False
        self._count += 1
        return True


class RedisDailyQuota:
    """Counter shared by every process pointed at the same Redis."""

    def __init__(
        self,
        client: redis.Redis,
        limit: int,
        *,
        prefix: str = "mail:quota",
        today: Callable[[], date] = _utc_today,
    ):
        self.client = client
        self.limit = limit
        self.prefix = prefix
        self._today = today

    async def try_reserve(self) -> bool:
        key = f"{self.prefix}:{self._today().isoformat()}"
        count = await self.client.incr(key)
        if count == 1:
            await self.client.expire(key, int(timedelta(days=2).total_seconds()))
        return count <= self.limit


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class MailTransport(Protocol):
    async def send(self, to: str, subject: str, html: str) -> None: ...


class SmtpTransport:
    """SMTP delivery; port 465 uses implicit TLS, anything else STARTTLS when credentials are set."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        user: str = "",
        password: str = "",
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.user = user
        self.password = password
        self.timeout = timeout

    def _build(self, to: str, subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        if self.port == 465:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        with smtp:
            if self.port != 465 and self.user:
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(msg)

    async def send(self, to: str, subject: str, html: str) -> None:
        msg = self._build(to, subject, html)
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(str(exc)) from exc


# ---------------------------------------------------------------------------
# Mailer
# ---------------------------------------------------------------------------


class Mailer:
    def __init__(self, transport: MailTransport, quota: DailyQuota):
        self.transport = transport
        self.quota = quota

    async def send(self, to: str, subject: str, html: str) -> None:
        """Deliver one message. Raises QuotaExceededError or TransportError."""
        if not await self.quota.try_reserve():
            log.warning("mail.quota_exhausted", to=to, subject=subject)
            raise QuotaExceededError()
        await self.transport.send(to, subject, html)
        log.info("mail.sent", to=to, subject=subject)

    async def notify(self, recipients: Iterable[str], subject: str, html: str) -> list[str]:
        """Best-effort fan-out. Returns the recipients that were delivered to.

        A transport failure skips that recipient; an exhausted quota stops the
        remainder of the batch. Earlier deliveries are never rolled back.
        """
        delivered: list[str] = []
        for to in sorted({r for r in recipients if r}):
            try:
                await self.send(to, subject, html)
            except QuotaExceededError:
                break
            except TransportError as exc:
                log.warning("mail.send_failed", to=to, subject=subject, error=str(exc))
                continue
            delivered.append(to)
        return delivered


_mailer: Optional[Mailer] = None


def build_mailer(settings: Settings) -> Mailer:
    transport = SmtpTransport(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.sender_email,
        user=settings.smtp_user,
        password=settings.smtp_password,
    )
    if settings.mail_quota_backend == "redis":
        client = redis.from_url(settings.redis_url, decode_responses=True)
        quota: DailyQuota = RedisDailyQuota(client, settings.max_mail_per_day)
    else:
        quota = InMemoryDailyQuota(settings.max_mail_per_day)
    return Mailer(transport, quota)


def get_mailer() -> Mailer:
    """FastAPI dependency: the process-wide mailer."""
    global _mailer
    if _mailer is None:
        _mailer = build_mailer(get_settings())
    return _mailer


async def close_mailer() -> None:
    global _mailer
    if _mailer is not None and isinstance(_mailer.quota, RedisDailyQuota):
        await _mailer.quota.client.aclose()
    _mailer = None
