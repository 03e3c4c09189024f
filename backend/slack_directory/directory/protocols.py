from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from pydantic import ValidationError

from ..errors import FetchError
from ..infrastructure.slack.slack_web import ALL_CHANNEL_TYPES, SlackEnterpriseClient, SlackWebClient
from ..observability.logging import get_logger
from .models import RawConversation, SlackUser


log = get_logger("directory_protocols")

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    next_cursor: str = ""  # empty: enumeration exhausted


class DirectoryProtocol(Protocol):
    """One way of enumerating a workspace directory, page by page."""

    name: str

    def users_page(self, cursor: str | None) -> Page[SlackUser]: ...

    def conversations_page(self, cursor: str | None) -> Page[RawConversation]: ...


def _check(resp: dict[str, Any], *, method: str) -> dict[str, Any]:
    if bool(resp.get("ok")):
        return resp
    err = str(resp.get("error") or "").strip() or "unknown_error"
    status = resp.get("status_code")
    raise FetchError(
        message=f"Slack {method} failed: {err}",
        method=method,
        slack_error=err,
        status_code=int(status) if isinstance(status, int) else None,
        retryable=err in ("ratelimited", "request_failed", "internal_error", "fatal_error"),
    )


def _parse_items(raw: Any, model: type[T], *, method: str) -> list[T]:
    out: list[T] = []
    for item in (raw if isinstance(raw, list) else []):
        if not isinstance(item, dict):
            continue
        try:
            out.append(model.model_validate(item))  # type: ignore[attr-defined]
        except ValidationError as e:
            # One odd record should not abort a whole workspace enumeration.
            log.warning("directory_record_skipped", method=method, id=item.get("id"), error=str(e)[:300])
    return out


def _next_cursor(resp: dict[str, Any]) -> str:
    meta = resp.get("response_metadata")
    if isinstance(meta, dict):
        return str(meta.get("next_cursor") or "").strip()
    return ""


def _users_page(client: SlackWebClient, cursor: str | None, limit: int) -> Page[SlackUser]:
    resp = _check(client.users_list(cursor=cursor, limit=limit), method="users.list")
    return Page(
        items=_parse_items(resp.get("members"), SlackUser, method="users.list"),
        next_cursor=_next_cursor(resp),
    )


class StandardProtocol:
    """users.list + conversations.list, both cursor-paginated."""

    name = "standard"

    def __init__(self, *, client: SlackWebClient, users_limit: int = 1000, channels_limit: int = 999):
        self._client = client
        self._users_limit = users_limit
        self._channels_limit = channels_limit

    def users_page(self, cursor: str | None) -> Page[SlackUser]:
        return _users_page(self._client, cursor, self._users_limit)

    def conversations_page(self, cursor: str | None) -> Page[RawConversation]:
        resp = _check(
            self._client.conversations_list(
                types=ALL_CHANNEL_TYPES,
                cursor=cursor,
                limit=self._channels_limit,
                exclude_archived=True,
            ),
            method="conversations.list",
        )
        return Page(
            items=_parse_items(resp.get("channels"), RawConversation, method="conversations.list"),
            next_cursor=_next_cursor(resp),
        )


class EnterpriseProtocol:
    """
    Enterprise Grid: users still come from users.list on the generic handle;
    conversations come from the organization-wide handle in one unpaginated
    response that ignores the archived filter, so archived ones are dropped here.
    """

    name = "enterprise"

    def __init__(self, *, client: SlackWebClient, enterprise: SlackEnterpriseClient, users_limit: int = 1000):
        self._client = client
        self._enterprise = enterprise
        self._users_limit = users_limit

    def users_page(self, cursor: str | None) -> Page[SlackUser]:
        return _users_page(self._client, cursor, self._users_limit)

    def conversations_page(self, cursor: str | None) -> Page[RawConversation]:
        resp = _check(self._enterprise.get_conversations(), method="client.userBoot")
        items = _parse_items(resp.get("channels"), RawConversation, method="client.userBoot")
        return Page(items=[c for c in items if not c.is_archived], next_cursor="")
