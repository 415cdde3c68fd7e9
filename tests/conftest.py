"""
Shared pytest fixtures for the custody gateway test suite.

Autouse fixtures below isolate tests from live application data:
  - Event logger -> temp directory (prevents test events in ./logs)

Provider fakes record every call so tests can assert exactly which
credentials reached a provider, and how many times.
"""

import asyncio
import os
from decimal import Decimal

import pytest

from custody_gateway.config import Settings
from custody_gateway.context import build_context
from custody_gateway.ledger import CaseLedger
from custody_gateway.providers import ChatCompletion, GeneratedImage, PaymentOrder
from custody_gateway.vault import CredentialStore


# ===================================================================
# Provider fakes
# ===================================================================


class FakeAIProvider:
    name = "fake-ai"
    chat_model = "fake-chat"
    image_model = "fake-image"

    def __init__(self):
        self.calls = []
        self.error = None
        self.delay = 0.0

    async def _behave(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def complete_chat(self, api_key, prompt):
        self.calls.append(("chat", api_key, prompt))
        await self._behave()
        return ChatCompletion(text=f"echo: {prompt}", model=self.chat_model)

    async def generate_image(self, api_key, prompt):
        self.calls.append(("image", api_key, prompt))
        await self._behave()
        return GeneratedImage(
            url="https://images.example.com/generated/1.png",
            model=self.image_model,
            revised_prompt=f"detailed {prompt}",
        )


class FakePaymentProvider:
    name = "fake-pay"

    def __init__(self):
        self.calls = []
        self.error = None
        self.delay = 0.0

    async def create_order(self, client_id, client_secret, amount: Decimal, currency):
        self.calls.append(("order", client_id, client_secret, amount, currency))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return PaymentOrder(
            order_id="ORDER-123",
            status="CREATED",
            approve_url="https://www.sandbox.paypal.com/checkoutnow?token=ORDER-123",
        )


# ===================================================================
# Isolation
# ===================================================================


@pytest.fixture(autouse=True)
def _isolate_event_log(tmp_path):
    """Redirect the global EventLogger to a temp directory for every test.

    Without this, any code path that logs a gateway event writes into the
    real ``./logs/`` directory.
    """
    import custody_gateway.core.event_log as event_mod

    old_logger = event_mod._event_logger
    event_mod._event_logger = event_mod.EventLogger(log_dir=tmp_path / "logs")

    yield

    event_mod._event_logger.close()
    event_mod._event_logger = old_logger


# ===================================================================
# Components
# ===================================================================


@pytest.fixture
def master_key():
    return os.urandom(32)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "custody.db"


@pytest.fixture
def store(db_path, master_key):
    return CredentialStore(db_path, master_key)


@pytest.fixture
def ledger(db_path):
    return CaseLedger(db_path)


@pytest.fixture
def fake_ai():
    return FakeAIProvider()


@pytest.fixture
def fake_payments():
    return FakePaymentProvider()


@pytest.fixture
def settings(tmp_path, master_key, db_path):
    return Settings(
        master_key=master_key,
        database_path=db_path,
        provider_timeout=0.5,
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def context(settings, fake_ai, fake_payments):
    ctx = build_context(settings, ai_provider=fake_ai, payment_provider=fake_payments)
    yield ctx
    ctx.close()


@pytest.fixture
def gateway(context):
    return context.gateway


@pytest.fixture
def client(context):
    from fastapi.testclient import TestClient
    from custody_gateway.api.main import create_app

    with TestClient(create_app(context)) as test_client:
        yield test_client
