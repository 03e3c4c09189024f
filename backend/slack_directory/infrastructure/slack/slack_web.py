from __future__ import annotations

from typing import Any

import httpx

from ...observability.logging import get_logger
from .credentials import Credential


log = get_logger("slack")

ALL_CHANNEL_TYPES = ("mpim", "im", "public_channel", "private_channel")


def _decode(resp: httpx.Response) -> dict[str, Any]:
    if resp.status_code == 429:
        retry_after = str(resp.headers.get("Retry-After") or "").strip()
        return {
            "ok": False,
            "error": "ratelimited",
            "status_code": 429,
            "retry_after": int(retry_after) if retry_after.isdigit() else None,
        }
    try:
        data = resp.json() if resp.content else {}
    except ValueError:
        return {"ok": False, "error": "invalid_response", "status_code": int(resp.status_code)}
    if not isinstance(data, dict):
        return {"ok": False, "error": "invalid_response", "status_code": int(resp.status_code)}
    data.setdefault("status_code", int(resp.status_code))
    return data  # includes ok/error


class SlackWebClient:
    """
    Standard (per-seat) Slack Web API surface used by the directory provider.

    Calls never raise for Slack-level failures: they return Slack's decoded
    payload (`ok` / `error`), or a synthesized `{"ok": False, "error": ...}`
    for transport failures, and leave the policy to the caller.
    """

    def __init__(self, *, credential: Credential, http: httpx.Client, base_url: str = "https://slack.com/api/"):
        self._credential = credential
        self._http = http
        self._base_url = str(base_url or "https://slack.com/api/").rstrip("/") + "/"

    @property
    def credential(self) -> Credential:
        return self._credential

    @property
    def http(self) -> httpx.Client:
        return self._http

    def api_get(self, *, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Call a Slack Web API GET endpoint, returning its decoded JSON payload.
        """
        m = str(method or "").strip().lstrip("/")
        if not m:
            return {"ok": False, "error": "invalid_method"}

        try:
            resp = self._http.get(
                self._base_url + m,
                headers={"Authorization": f"Bearer {self._credential.token}"},
                params={k: v for k, v in (params or {}).items() if v is not None},
            )
        except httpx.HTTPError as e:
            log.warning("slack_api_get_exception", method=m, error=str(e) or "unknown_error")
            return {"ok": False, "error": "request_failed"}
        return _decode(resp)

    def api_post(self, *, method: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Call a Slack Web API POST endpoint (form-encoded), returning its decoded JSON payload.
        """
        m = str(method or "").strip().lstrip("/")
        if not m:
            return {"ok": False, "error": "invalid_method"}

        try:
            resp = self._http.post(
                self._base_url + m,
                headers={"Authorization": f"Bearer {self._credential.token}"},
                data={k: v for k, v in (data or {}).items() if v is not None},
            )
        except httpx.HTTPError as e:
            log.warning("slack_api_post_exception", method=m, error=str(e) or "unknown_error")
            return {"ok": False, "error": "request_failed"}
        return _decode(resp)

    def auth_test(self) -> dict[str, Any]:
        return self.api_post(method="auth.test")

    def users_list(self, *, cursor: str | None = None, limit: int = 1000) -> dict[str, Any]:
        """
        One page of users.list. Requires scope: users:read (emails need users:read.email).
        """
        return self.api_get(
            method="users.list",
            params={"limit": max(1, int(limit or 1000)), "cursor": cursor or None},
        )

    def conversations_list(
        self,
        *,
        types: tuple[str, ...] | list[str] = ALL_CHANNEL_TYPES,
        cursor: str | None = None,
        limit: int = 999,
        exclude_archived: bool = True,
    ) -> dict[str, Any]:
        """
        One page of conversations.list across the requested conversation types.
        """
        return self.api_get(
            method="conversations.list",
            params={
                "types": ",".join(types),
                "limit": max(1, int(limit or 999)),
                "exclude_archived": "true" if exclude_archived else "false",
                "cursor": cursor or None,
            },
        )


class SlackEnterpriseClient:
    """
    Organization-wide surface for Enterprise Grid workspaces.

    Conversations come back in a single unpaginated client.userBoot response
    served from the team's own domain; archived conversations are included.
    """

    def __init__(self, *, credential: Credential, http: httpx.Client, team_url: str):
        self._credential = credential
        self._http = http
        self._api_url = str(team_url or "").rstrip("/") + "/api/"

    def get_conversations(self) -> dict[str, Any]:
        try:
            resp = self._http.post(
                self._api_url + "client.userBoot",
                headers={"Authorization": f"Bearer {self._credential.token}"},
                data={"only_self_subteams": "true", "include_min_version_bump_check": "false"},
            )
        except httpx.HTTPError as e:
            log.warning("slack_enterprise_exception", method="client.userBoot", error=str(e) or "unknown_error")
            return {"ok": False, "error": "request_failed"}

        data = _decode(resp)
        if not bool(data.get("ok")):
            return data
        chans = data.get("channels") if isinstance(data.get("channels"), list) else []
        ims = data.get("ims") if isinstance(data.get("ims"), list) else []
        return {"ok": True, "channels": list(chans) + list(ims)}
