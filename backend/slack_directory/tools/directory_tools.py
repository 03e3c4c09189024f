from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from ..directory.models import Channel, SlackUser
from ..directory.naming import normalize_string
from ..directory.provider import DirectoryProvider
from ..infrastructure.slack.slack_web import ALL_CHANNEL_TYPES
from .registry import ToolFn, ToolRegistry, tool_def


SEARCH_TYPES = ("auto", "username", "display_name", "real_name", "email")


@dataclass(frozen=True)
class UserResolution:
    userID: str
    userName: str
    realName: str
    displayName: str
    email: str
    matchType: str
    isBot: bool


def _fold(s: str) -> str:
    return str(s or "").casefold()


def _exact(value: str, query: str) -> bool:
    return bool(value) and _fold(value) == _fold(query)


def _partial(value: str, query: str) -> bool:
    return bool(value) and _fold(query) in _fold(value)


def _match_user(u: SlackUser, query: str, search_type: str) -> str | None:
    """Return the match type ("<field>_exact" / "<field>_partial") or None."""
    display = normalize_string(u.profile.display_name)
    real = normalize_string(u.real_name)
    email = u.profile.email

    if search_type == "username":
        fields = [("username", u.name)]
    elif search_type == "display_name":
        # Slack shows the real name when no display name is set.
        fields = [("display_name", display), ("real_name", real)]
    elif search_type == "real_name":
        fields = [("real_name", real)]
    elif search_type == "email":
        fields = [("email", email)]
    else:
        fields = [("username", u.name), ("display_name", display), ("real_name", real), ("email", email)]

    if search_type == "auto":
        # Every exact match beats any partial one.
        for label, value in fields:
            if _exact(value, query):
                return f"{label}_exact"
        for label, value in fields:
            if _partial(value, query):
                return f"{label}_partial"
        return None

    for label, value in fields:
        if _exact(value, query):
            return f"{label}_exact"
        if _partial(value, query):
            return f"{label}_partial"
    return None


def resolve_users(provider: DirectoryProvider, *, query: str, search_type: str = "auto") -> list[UserResolution]:
    """
    Find users by username, display name, real name or email.
    Exact matches come first, then partial ones.
    """
    q = str(query or "").strip()
    if q.startswith("@"):
        q = q[1:]
    if not q:
        raise ValueError("query must be a non-empty string")

    st = str(search_type or "auto").strip() or "auto"
    if st not in SEARCH_TYPES:
        raise ValueError(f"invalid search_type: {st}. Must be one of: {', '.join(SEARCH_TYPES)}")

    # Copy taken under the cache lock; the scan runs without it.
    users = provider.provide_users_map().users

    exact: list[UserResolution] = []
    partial: list[UserResolution] = []
    for uid, u in users.items():
        mt = _match_user(u, q, st)
        if not mt:
            continue
        res = UserResolution(
            userID=uid,
            userName=u.name,
            realName=u.real_name,
            displayName=u.profile.display_name,
            email=u.profile.email,
            matchType=mt,
            isBot=u.is_bot,
        )
        (exact if mt.endswith("_exact") else partial).append(res)
    return exact + partial


def resolve_channel_ref(provider: DirectoryProvider, ref: str) -> str | None:
    """
    Map "#name", "@username" or a raw ID to a conversation ID, from the cache.
    """
    r = str(ref or "").strip()
    if not r:
        return None
    cache = provider.cache
    if r.startswith(("#", "@")):
        return cache.channel_id_by_name(r)
    if cache.get_channel(r) is not None:
        return r
    return None


def _channel_row(c: Channel) -> dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "topic": c.topic,
        "purpose": c.purpose,
        "memberCount": c.member_count,
    }


def build_directory_tools(provider: DirectoryProvider) -> dict[str, tuple[dict[str, Any], ToolFn]]:
    def _users_resolve_tool(args: dict[str, Any]) -> dict[str, Any]:
        q = str(args.get("query") or "")
        st = str(args.get("search_type") or "auto")
        try:
            matches = resolve_users(provider, query=q, search_type=st)
        except ValueError as e:
            return {"ok": False, "error": str(e) or "users_resolve_failed"}
        return {"ok": True, "query": q.strip(), "matches": [asdict(m) for m in matches]}

    def _channels_list_tool(args: dict[str, Any]) -> dict[str, Any]:
        raw = args.get("channel_types")
        if isinstance(raw, str):
            types = [t.strip() for t in raw.split(",") if t.strip()]
        elif isinstance(raw, list):
            types = [str(t or "").strip() for t in raw if str(t or "").strip()]
        else:
            types = []
        bad = [t for t in types if t not in ALL_CHANNEL_TYPES]
        if bad:
            return {"ok": False, "error": f"invalid channel_types: {', '.join(bad)}"}
        chans = provider.get_channels(types)
        return {"ok": True, "channels": [_channel_row(c) for c in chans]}

    def _channel_resolve_tool(args: dict[str, Any]) -> dict[str, Any]:
        ref = str(args.get("channel") or "").strip()
        if not ref:
            return {"ok": False, "error": "missing_channel"}
        cid = resolve_channel_ref(provider, ref)
        if not cid:
            return {"ok": False, "error": "channel_not_found", "channel": ref}
        return {"ok": True, "channel": ref, "channelId": cid}

    return {
        "users_resolve": (
            tool_def(
                "users_resolve",
                "Resolve a Slack user by username, display name, real name or email. Exact matches first.",
                {
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Name or email, optionally prefixed with @"},
                        "search_type": {"type": "string", "enum": list(SEARCH_TYPES), "default": "auto"},
                    },
                    "required": ["query"],
                },
            ),
            _users_resolve_tool,
        ),
        "channels_list": (
            tool_def(
                "channels_list",
                "List cached conversations (channels, DMs, group DMs) by type.",
                {
                    "type": "object",
                    "properties": {
                        "channel_types": {
                            "type": "array",
                            "items": {"type": "string", "enum": list(ALL_CHANNEL_TYPES)},
                            "description": "Empty means all types.",
                        },
                    },
                },
            ),
            _channels_list_tool,
        ),
        "channel_resolve": (
            tool_def(
                "channel_resolve",
                "Resolve #channel-name, @username (DM) or a conversation ID to a conversation ID.",
                {
                    "type": "object",
                    "properties": {"channel": {"type": "string"}},
                    "required": ["channel"],
                },
            ),
            _channel_resolve_tool,
        ),
    }


def directory_tool_registry(provider: DirectoryProvider) -> ToolRegistry:
    reg = ToolRegistry()
    reg.register_tools(build_directory_tools(provider))
    return reg
