from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from api.app import create_app

ADMIN_TOKEN = "test-admin-token"

# Small limits so tests can hit them quickly
BASE_CONFIG: dict[str, Any] = {
    "user_limits": {"max_requests_per_minute": 3, "max_requests_per_hour": 100},
    "ip_limits": {
        "max_requests_per_minute": 100,
        "max_requests_per_hour": 100,
        "ban_threshold": 10,
        "ban_duration_minutes": 5,
    },
    "max_prompt_length": 50,
}


@pytest.fixture
def make_client(
    tmp_path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[Callable[..., TestClient]]:
    """Build a started TestClient around a fresh app and safety config."""
    clients: list[TestClient] = []

    def _make(admin_token: str | None = ADMIN_TOKEN, env: str = "dev", **overrides: Any) -> TestClient:
        config = json.loads(json.dumps(BASE_CONFIG))
        for section, values in overrides.items():
            if isinstance(values, dict):
                config.setdefault(section, {}).update(values)
            else:
                config[section] = values
        config_file = tmp_path / "safety_config.json"
        config_file.write_text(json.dumps(config), encoding="utf-8")

        monkeypatch.setenv("SAFEQUERY_ENV", env)
        monkeypatch.setenv("SAFEQUERY_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setenv("SAFEQUERY_CONFIG_FILE", str(config_file))
        monkeypatch.delenv("SENTRY_DSN", raising=False)
        monkeypatch.delenv("SENTRY_DSN_FILE", raising=False)
        if admin_token:
            monkeypatch.setenv("SAFEQUERY_ADMIN_TOKEN", admin_token)
        else:
            monkeypatch.delenv("SAFEQUERY_ADMIN_TOKEN", raising=False)

        client = TestClient(create_app())
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()
