"""Tests for payslip-ready notifications."""

import json
from dataclasses import replace
from uuid import uuid4

import httpx
import pytest

from hrms_payroll.config import get_settings
from hrms_payroll.services.notification_service import (
    RESEND_API_URL,
    DeliveryResult,
    EmailNotifier,
    NotificationDispatcher,
    PayslipNotice,
    render_payslip_email,
)


@pytest.fixture
def notice() -> PayslipNotice:
    return PayslipNotice(
        email="alice@example.com",
        first_name="Alice",
        month=4,
        year=2025,
        payslip_id=uuid4(),
    )


@pytest.fixture
def mail_settings():
    return replace(
        get_settings(),
        email_api_key="re_test",
        email_from="payroll@example.com",
        app_base_url="https://hr.example.com/",
    )


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestRender:
    def test_subject_and_link(self, notice):
        content = render_payslip_email(notice, "https://hr.example.com/")

        assert content["subject"] == "Your Payslip for April 2025 - HRMS"
        assert f"https://hr.example.com/payroll/payslips/{notice.payslip_id}" in content["html"]
        assert "Dear Alice" in content["text"]


class TestEmailNotifier:
    async def test_sends_to_resend(self, notice, mail_settings):
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, json={"id": "msg_123"})

        async with client_for(handler) as client:
            result = await EmailNotifier(mail_settings, client).send_payslip_ready(notice)

        assert result == DeliveryResult(success=True, message_id="msg_123")
        request = sent[0]
        assert str(request.url) == RESEND_API_URL
        assert request.headers["Authorization"] == "Bearer re_test"
        body = json.loads(request.content)
        assert body["to"] == ["alice@example.com"]
        assert body["from"] == "HRMS <payroll@example.com>"

    async def test_disabled_without_api_key(self, notice, mail_settings):
        notifier = EmailNotifier(replace(mail_settings, email_api_key=""))

        result = await notifier.send_payslip_ready(notice)

        assert result.success is False
        assert result.error == "RESEND_API_KEY not configured"

    async def test_error_response(self, notice, mail_settings):
        async with client_for(lambda request: httpx.Response(422, text="bad address")) as client:
            result = await EmailNotifier(mail_settings, client).send_payslip_ready(notice)

        assert result.success is False
        assert result.error == "HTTP 422"

    async def test_transport_error(self, notice, mail_settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with client_for(handler) as client:
            result = await EmailNotifier(mail_settings, client).send_payslip_ready(notice)

        assert result.success is False
        assert "refused" in result.error


class RecordingNotifier:
    def __init__(self, fail_for: set[str] = frozenset()):
        self.sent: list[PayslipNotice] = []
        self.fail_for = fail_for

    async def send_payslip_ready(self, notice):
        if notice.email in self.fail_for:
            raise ConnectionError("smtp down")
        self.sent.append(notice)
        return DeliveryResult(success=True, message_id="ok")


class TestDispatcher:
    async def test_dispatch_and_drain(self, notice):
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier)

        dispatcher.dispatch([notice, replace(notice, email="bob@example.com")])
        assert dispatcher.pending == 2
        await dispatcher.drain()

        assert dispatcher.pending == 0
        assert len(notifier.sent) == 2
        assert dispatcher.failures == []

    async def test_failures_are_kept(self, notice):
        notifier = RecordingNotifier(fail_for={"alice@example.com"})
        dispatcher = NotificationDispatcher(notifier)
        bob = replace(notice, email="bob@example.com")

        dispatcher.dispatch([notice, bob])
        await dispatcher.drain()

        assert notifier.sent == [bob]
        assert dispatcher.failures == [(notice, "smtp down")]
