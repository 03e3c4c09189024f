from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure `backend/` is on sys.path so `import slack_directory.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))


_ENV_KEYS = (
    "SLACK_MCP_XOXC_TOKEN",
    "SLACK_MCP_XOXD_TOKEN",
    "SLACK_MCP_XOXP_TOKEN",
    "SLACK_MCP_XOXB_TOKEN",
    "SLACK_MCP_SECRET_ARN",
    "SLACK_MCP_USERS_CACHE",
    "SLACK_MCP_CHANNELS_CACHE",
    "SLACK_MCP_PROXY",
    "SLACK_MCP_SERVER_CA",
    "SLACK_MCP_SERVER_CA_INSECURE",
    "SLACK_MCP_USER_AGENT",
    "SLACK_MCP_API_BASE_URL",
    "SLACK_MCP_HTTP_TIMEOUT_SECONDS",
    "SLACK_MCP_USERS_PAGE_LIMIT",
    "SLACK_MCP_CHANNELS_PAGE_LIMIT",
    "SLACK_MCP_RATE_LIMIT_TIER",
)


@pytest.fixture(autouse=True)
def _clean_slack_env(monkeypatch):
    # Never let a developer's real tokens leak into tests.
    for k in _ENV_KEYS:
        monkeypatch.delenv(k, raising=False)


@pytest.fixture
def make_user():
    from slack_directory.directory.models import SlackUser

    def _make(uid: str, name: str, real_name: str = "", **profile: Any) -> SlackUser:
        return SlackUser.model_validate(
            {
                "id": uid,
                "name": name,
                "real_name": real_name,
                "is_bot": bool(profile.pop("is_bot", False)),
                "profile": {"real_name": real_name, **profile},
            }
        )

    return _make


@pytest.fixture
def snapshot_settings(tmp_path):
    from slack_directory.settings import Settings

    return Settings(
        SLACK_MCP_XOXP_TOKEN="xoxp-test",
        SLACK_MCP_USERS_CACHE=str(tmp_path / "users_cache.json"),
        SLACK_MCP_CHANNELS_CACHE=str(tmp_path / "channels_cache_v2.json"),
    )
