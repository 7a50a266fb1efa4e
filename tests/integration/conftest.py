"""Integration test fixtures: the API app over the per-test database."""

from collections.abc import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from hrms_payroll.api.app import create_app
from hrms_payroll.services.notification_service import DeliveryResult


class StubNotifier:
    """Collects payslip notices instead of sending email."""

    def __init__(self) -> None:
        self.sent = []

    async def send_payslip_ready(self, notice):
        self.sent.append(notice)
        return DeliveryResult(success=True, message_id=f"stub-{len(self.sent)}")


@pytest.fixture
def notifier() -> StubNotifier:
    return StubNotifier()


@pytest.fixture
def app(session_factory, notifier) -> FastAPI:
    return create_app(session_factory=session_factory, notifier=notifier)


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.state.dispatcher.drain()

