"""Pytest configuration and shared fixtures."""

import pytest

from tests.fakes import FakeWebhookSender, RecordingSleep


@pytest.fixture
def sender() -> FakeWebhookSender:
    return FakeWebhookSender()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
