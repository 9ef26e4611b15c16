from __future__ import annotations

from pathlib import Path

import pytest

from services.api.app.config import SmtpConfig
from services.api.app.services.commerce_mock import MockCommerceAdapter
from services.api.app.services.document_store import LocalDocumentStore
from services.api.app.services.notifications import Notifier
from services.api.tests.factories import FIXED_NOW, RecordingEmailTransport, RecordingSmsTransport


@pytest.fixture()
def smtp_config() -> SmtpConfig:
    return SmtpConfig(
        host="smtp.example.com",
        port=587,
        secure=False,
        user="orders@example.com",
        password="secret",
        from_email="orders@example.com",
        from_name="Brown Sugar Bakery",
    )


@pytest.fixture()
def commerce() -> MockCommerceAdapter:
    return MockCommerceAdapter(now=FIXED_NOW)


@pytest.fixture()
def store(tmp_path: Path) -> LocalDocumentStore:
    return LocalDocumentStore(tmp_path / "documents", "https://gifts.example.com")


@pytest.fixture()
def email_transport() -> RecordingEmailTransport:
    return RecordingEmailTransport()


@pytest.fixture()
def sms_transport() -> RecordingSmsTransport:
    return RecordingSmsTransport()


@pytest.fixture()
def notifier(
    commerce: MockCommerceAdapter,
    smtp_config: SmtpConfig,
    email_transport: RecordingEmailTransport,
    sms_transport: RecordingSmsTransport,
) -> Notifier:
    return Notifier(
        commerce,
        smtp=smtp_config,
        email_transport=email_transport,
        sms_transport=sms_transport,
    )
