from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Credential slots. Exactly one shape is used per process (see credentials.py).
    slack_xoxc_token: str | None = Field(default=None, validation_alias="SLACK_MCP_XOXC_TOKEN")
    slack_xoxd_token: str | None = Field(default=None, validation_alias="SLACK_MCP_XOXD_TOKEN")
    slack_xoxp_token: str | None = Field(default=None, validation_alias="SLACK_MCP_XOXP_TOKEN")
    slack_xoxb_token: str | None = Field(default=None, validation_alias="SLACK_MCP_XOXB_TOKEN")

    # Optional: resolve unset credential slots from a Secrets Manager JSON secret.
    slack_secret_arn: str | None = Field(default=None, validation_alias="SLACK_MCP_SECRET_ARN")
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")

    # Disk snapshots. Empty means "<user cache dir>/slack-mcp-server/...".
    users_cache_path: str | None = Field(default=None, validation_alias="SLACK_MCP_USERS_CACHE")
    channels_cache_path: str | None = Field(default=None, validation_alias="SLACK_MCP_CHANNELS_CACHE")

    # Outbound HTTP
    proxy_url: str | None = Field(default=None, validation_alias="SLACK_MCP_PROXY")
    server_ca_path: str | None = Field(default=None, validation_alias="SLACK_MCP_SERVER_CA")
    server_ca_insecure: bool = Field(default=False, validation_alias="SLACK_MCP_SERVER_CA_INSECURE")
    user_agent: str | None = Field(default=None, validation_alias="SLACK_MCP_USER_AGENT")
    api_base_url: str = Field(default="https://slack.com/api/", validation_alias="SLACK_MCP_API_BASE_URL")
    http_timeout_seconds: float = Field(default=30.0, validation_alias="SLACK_MCP_HTTP_TIMEOUT_SECONDS")

    # Directory enumeration
    users_page_limit: int = Field(default=1000, validation_alias="SLACK_MCP_USERS_PAGE_LIMIT")
    channels_page_limit: int = Field(default=999, validation_alias="SLACK_MCP_CHANNELS_PAGE_LIMIT")
    rate_limit_tier: str = Field(default="tier2boost", validation_alias="SLACK_MCP_RATE_LIMIT_TIER")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    def to_log_safe_dict(self) -> dict[str, object]:
        """
        A redacted representation safe for structured logs / diagnostics.
        """
        def _has(v: object) -> bool:
            return v is not None and str(v).strip() != ""

        return {
            "credentials": {
                "xoxc_configured": _has(self.slack_xoxc_token),
                "xoxd_configured": _has(self.slack_xoxd_token),
                "xoxp_configured": _has(self.slack_xoxp_token),
                "xoxb_configured": _has(self.slack_xoxb_token),
                "secret_arn_configured": _has(self.slack_secret_arn),
            },
            "snapshots": {
                "users_cache_path": self.users_cache_path if _has(self.users_cache_path) else None,
                "channels_cache_path": self.channels_cache_path if _has(self.channels_cache_path) else None,
            },
            "http": {
                "proxy_configured": _has(self.proxy_url),
                "server_ca_path": self.server_ca_path if _has(self.server_ca_path) else None,
                "server_ca_insecure": bool(self.server_ca_insecure),
                "user_agent_overridden": _has(self.user_agent),
                "api_base_url": self.api_base_url,
            },
            "enumeration": {
                "users_page_limit": self.users_page_limit,
                "channels_page_limit": self.channels_page_limit,
                "rate_limit_tier": self.rate_limit_tier,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

