"""Payslip-ready notifications.

Delivery is best-effort: a failed or disabled notifier never affects a
payroll run. The dispatcher schedules sends as background tasks and keeps
the failures for inspection.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

import httpx

from hrms_payroll.config import Settings, get_settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
FROM_NAME = "HRMS"


@dataclass(frozen=True)
class PayslipNotice:
    """What an employee is told when their payslip is ready."""

    email: str
    first_name: str
    month: int
    year: int
    payslip_id: UUID

    @property
    def month_name(self) -> str:
        return calendar.month_name[self.month]


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


class Notifier(Protocol):
    async def send_payslip_ready(self, notice: PayslipNotice) -> DeliveryResult: ...


def render_payslip_email(notice: PayslipNotice, base_url: str) -> dict[str, str]:
    """Subject, HTML and text bodies of the payslip-ready email."""
    url = f"{base_url.rstrip('/')}/payroll/payslips/{notice.payslip_id}"
    period = f"{notice.month_name} {notice.year}"
    html = (
        f"<h1>Your Payslip is Ready</h1>"
        f"<p>Dear {notice.first_name},</p>"
        f"<p>Your payslip for <strong>{period}</strong> has been generated and is now available.</p>"
        f'<p><a href="{url}">View Payslip</a></p>'
        f"<p>If you have any questions about your payslip, please contact the HR or Payroll department.</p>"
    )
    text = (
        f"Your Payslip is Ready\n\n"
        f"Dear {notice.first_name},\n\n"
        f"Your payslip for {period} has been generated and is now available.\n\n"
        f"View your payslip: {url}\n"
    )
    return {
        "subject": f"Your Payslip for {period} - HRMS",
        "html": html,
        "text": text,
    }


class EmailNotifier:
    """Sends payslip emails through the Resend HTTP API."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        return self.settings.notifications_enabled

    async def send_payslip_ready(self, notice: PayslipNotice) -> DeliveryResult:
        if not self.enabled:
            logger.warning("Email notifier disabled; payslip %s not announced", notice.payslip_id)
            return DeliveryResult(success=False, error="RESEND_API_KEY not configured")

        if self.settings.email_provider != "resend":
            logger.warning(
                "Unknown email provider %s, using resend", self.settings.email_provider
            )

        content = render_payslip_email(notice, self.settings.app_base_url)
        payload = {
            "from": f"{FROM_NAME} <{self.settings.email_from}>",
            "to": [notice.email],
            **content,
        }
        headers = {"Authorization": f"Bearer {self.settings.email_api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(RESEND_API_URL, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.settings.store_timeout_seconds) as client:
                    response = await client.post(RESEND_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Payslip email to %s failed: %s", notice.email, e)
            return DeliveryResult(success=False, error=str(e))

        if response.is_error:
            logger.warning(
                "Resend rejected payslip email to %s: %s %s",
                notice.email,
                response.status_code,
                response.text,
            )
            return DeliveryResult(success=False, error=f"HTTP {response.status_code}")

        message_id = response.json().get("id")
        logger.info("Payslip email sent to %s (id=%s)", notice.email, message_id)
        return DeliveryResult(success=True, message_id=message_id)


@dataclass
class NotificationDispatcher:
    """Fire-and-forget scheduling of notifications."""

    notifier: Notifier
    failures: list[tuple[PayslipNotice, str]] = field(default_factory=list)
    _tasks: set[asyncio.Task[None]] = field(default_factory=set)

    def dispatch(self, notices: list[PayslipNotice]) -> None:
        """Schedule one send per notice; returns immediately."""
        for notice in notices:
            task = asyncio.ensure_future(self._deliver(notice))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled send to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _deliver(self, notice: PayslipNotice) -> None:
        try:
            result = await self.notifier.send_payslip_ready(notice)
        except Exception as e:
            logger.exception("Notifier raised for payslip %s", notice.payslip_id)
            self.failures.append((notice, str(e)))
            return
        if not result.success:
            self.failures.append((notice, result.error or "delivery failed"))
