from __future__ import annotations

import json
import time
from typing import Any

import boto3

from ...observability.logging import get_logger


log = get_logger("slack_secrets")

# Simple in-process cache so startup and reboots don't hit Secrets Manager twice.
_CACHE_TTL_SECONDS = 60
_cache_value: dict[str, Any] | None = None
_cache_arn: str | None = None
_cache_at: float = 0.0


def get_slack_secret(*, arn: str | None, region: str, force_refresh: bool = False) -> dict[str, Any] | None:
    """
    Load the JSON secret holding Slack credential slots, keyed by env name
    (SLACK_MCP_XOXP_TOKEN, ...). Best-effort: any failure returns None, and
    the miss is cached for the TTL like a hit.
    """
    a = str(arn or "").strip()
    if not a:
        return None

    global _cache_value, _cache_arn, _cache_at
    now = time.time()
    if (not force_refresh) and _cache_arn == a and (now - _cache_at) < _CACHE_TTL_SECONDS:
        return _cache_value

    try:
        sm = boto3.client("secretsmanager", region_name=region)
        resp = sm.get_secret_value(SecretId=a)
        raw = resp.get("SecretString")
        obj = json.loads(raw) if isinstance(raw, str) and raw.strip() else None
        if not isinstance(obj, dict):
            obj = None
    except Exception as e:
        log.warning("slack_secret_fetch_failed", error=str(e) or "unknown_error")
        obj = None

    _cache_value = obj
    _cache_arn = a
    _cache_at = now
    return obj


def get_secret_str(key: str, *, arn: str | None, region: str) -> str | None:
    sec = get_slack_secret(arn=arn, region=region)
    if not sec:
        return None
    v = sec.get(key)
    if v is None:
        return None
    s = str(v).strip()
    return s or None
