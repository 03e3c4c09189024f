from __future__ import annotations

import ssl
from typing import Any

import httpx

from ...errors import ConfigurationError
from ...observability.logging import get_logger
from ...settings import Settings


log = get_logger("slack_http_client")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/136.0.0.0 Safari/537.36"
)


def _verify_option(s: Settings) -> ssl.SSLContext | bool:
    ca = str(s.server_ca_path or "").strip()
    if s.server_ca_insecure:
        if ca:
            raise ConfigurationError(
                message="SLACK_MCP_SERVER_CA cannot be combined with SLACK_MCP_SERVER_CA_INSECURE",
            )
        log.warning("slack_tls_verification_disabled")
        return False

    # System trust store, plus the custom root when one is configured.
    ctx = ssl.create_default_context()
    if ca:
        try:
            ctx.load_verify_locations(cafile=ca)
        except (OSError, ssl.SSLError) as e:
            raise ConfigurationError(message=f"Failed to load SLACK_MCP_SERVER_CA {ca!r}: {e}", cause=e) from e
    return ctx


def build_http_client(s: Settings, *, cookies: dict[str, str] | None = None, **kwargs: Any) -> httpx.Client:
    """
    Build the outbound client shared by the generic and enterprise handles:
    proxy, trust roots, user agent and (session credentials only) the `d` cookie.

    Extra kwargs go straight to httpx.Client (tests pass `transport=`).
    """
    proxy = str(s.proxy_url or "").strip() or None
    if proxy:
        try:
            httpx.URL(proxy)
        except Exception as e:  # noqa: BLE001
            raise ConfigurationError(message=f"Failed to parse proxy URL: {e}", cause=e) from e

    ua = str(s.user_agent or "").strip() or DEFAULT_USER_AGENT

    return httpx.Client(
        proxy=proxy,
        verify=_verify_option(s),
        headers={"User-Agent": ua},
        cookies=cookies or None,
        timeout=float(s.http_timeout_seconds or 30.0),
        follow_redirects=True,
        **kwargs,
    )
