"""Pytest configuration and fixtures for integration tests."""

from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from api.dependencies import reset_dependencies, set_engine
from api.main import AUTOMATION_PREFIX, app
from tests.fakes import FakeWebhookSender, build_engine, make_registry


@pytest.fixture
def webhook_sender() -> FakeWebhookSender:
    return FakeWebhookSender()


@pytest.fixture
def engine(webhook_sender):
    """Engine with in-process services only and instant retries."""
    return build_engine(registry=make_registry(), sender=webhook_sender)


@pytest.fixture
def client(engine) -> Generator[TestClient, None, None]:
    """
    Test client bound to a fresh engine.

    Used as a context manager so startup/shutdown run and background
    tasks share one event loop across requests.
    """
    set_engine(engine)
    with TestClient(app) as test_client:
        yield test_client
    reset_dependencies()


@pytest.fixture
def api() -> Callable[[str], str]:
    return lambda path: f"{AUTOMATION_PREFIX}{path}"
