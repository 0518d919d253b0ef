"""
Test settings loading.

Verifies that every key documented in .env.example maps onto a settings
field and that environment values reach the typed sections.
"""
from __future__ import annotations

from pathlib import Path
import re

import pytest
from pydantic import ValidationError

# Import api.dependencies so dotenv loads exactly once (canonical location).
import api.dependencies  # noqa: F401

from core.infrastructure.database.config import DatabaseSettings
from core.settings import get_app_settings
from core.settings.modules import ExecutorSettings, ServiceSettings, SyncSettings, load_app_settings


ENV_EXAMPLE = Path(__file__).resolve().parents[1] / ".env.example"


def _parse_env_keys(env_path: Path) -> list[str]:
    keys: list[str] = []
    for line in env_path.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if not s or s.startswith("#") or "=" not in s:
            continue
        k = s.split("=", 1)[0].strip()
        if re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", k) and k not in keys:
            keys.append(k)
    return keys


def _collect_aliases() -> set[str]:
    settings = load_app_settings()
    aliases: set[str] = set()
    for name in ("platform", "executor", "events", "sync", "webhooks", "services"):
        section = getattr(settings, name)
        aliases.update(f.alias for f in type(section).model_fields.values() if f.alias)
    prefix = DatabaseSettings.model_config["env_prefix"]
    aliases.update(f"{prefix}{name}".upper() for name in DatabaseSettings.model_fields)
    return aliases


def test_every_documented_key_is_mapped():
    keys = _parse_env_keys(ENV_EXAMPLE)
    aliases = _collect_aliases()

    assert keys
    unmapped = [k for k in keys if k not in aliases]
    assert unmapped == [], f"Keys in .env.example without a settings field: {unmapped}"


def test_every_section_setting_is_documented():
    keys = set(_parse_env_keys(ENV_EXAMPLE))
    settings = load_app_settings()

    undocumented = [
        f.alias
        for name in ("platform", "executor", "events", "sync", "webhooks", "services")
        for f in type(getattr(settings, name)).model_fields.values()
        if f.alias and f.alias not in keys
    ]
    assert undocumented == []
    assert set(SyncSettings.model_fields) == {"auto_sync", "sync_interval_ms", "routes", "scheduled_jobs"}


def test_defaults_load():
    settings = load_app_settings()

    assert settings.executor.max_attempts >= 1
    assert settings.webhooks.timeout_seconds > 0
    assert set(settings.sync.routes) >= {"business-vr", "pinksync-platform", "full"}


def test_get_app_settings_is_cached():
    assert get_app_settings() is get_app_settings()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PINKFLOW_STEP_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("PINKFLOW_USER_ACTION_TIMEOUT_SECONDS", "120")
    monkeypatch.setenv("PINKFLOW_SYNC_ROUTES", '{"crm": ["notion", "internal"]}')
    monkeypatch.setenv("PINKFLOW_SYNC_SCHEDULED_JOBS", '["crm:page-1:rec-1"]')

    executor = ExecutorSettings()
    sync = SyncSettings()

    assert executor.max_attempts == 5
    assert executor.user_action_timeout_seconds == 120
    assert sync.routes == {"crm": ["notion", "internal"]}
    assert sync.scheduled_jobs == ["crm:page-1:rec-1"]


@pytest.mark.parametrize(
    "field, value",
    [
        ("routes", {"broken": ["only-source"]}),
        ("scheduled_jobs", ["business-vr:biz-1"]),
    ],
)
def test_sync_settings_validation(field, value):
    with pytest.raises(ValidationError):
        SyncSettings(**{field: value})


def test_empty_service_url_is_not_an_endpoint():
    services = ServiceSettings(yeoman_url="", mux_url="https://mux.example")

    endpoints = services.endpoints()
    assert "yeoman" not in endpoints
    assert endpoints["mux"] == "https://mux.example"
