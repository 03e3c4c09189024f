from __future__ import annotations

import unicodedata
from typing import Mapping

from .models import Channel, RawConversation, SlackUser


_INVISIBLE = frozenset({"\u200b", "\u200c", "\u200d", "\ufeff"})


def normalize_string(s: str | None) -> str:
    """
    Strip zero-width characters and control characters.

    Slack occasionally pollutes display names with these; index keys and
    name comparisons always go through this. Idempotent.
    """
    return "".join(
        ch for ch in str(s or "")
        if ch not in _INVISIBLE and unicodedata.category(ch) != "Cc"
    )


def _dm_peer(raw: RawConversation, users: Mapping[str, SlackUser]) -> str:
    if raw.user:
        return raw.user
    # No explicit peer: the first member we know about is the other party.
    for member_id in raw.members:
        if member_id in users:
            return member_id
    return ""


def map_channel(raw: RawConversation, users: Mapping[str, SlackUser]) -> Channel:
    """
    Derive the display name, purpose, topic and member count of a conversation.

    Pure: the output depends only on `raw` and `users`, so re-deriving cached
    DMs on every startup is safe.

      - DM:        "@<username>", "DM with <real name>", 2 members, no topic.
                   Unknown peer falls back to the raw ID, then to empty.
      - group DM:  "@<name_normalized>", "Group DM with <real names...>",
                   len(members), no topic. Without members it is left as-is.
      - channel:   "#<name_normalized>", topic and purpose unchanged.
    """
    name = raw.name
    purpose = raw.purpose
    topic = raw.topic
    member_count = raw.num_members
    peer = ""

    if raw.is_im:
        member_count = 2
        peer = _dm_peer(raw, users)
        u = users.get(peer) if peer else None
        if u is not None:
            name = "@" + u.name
            purpose = "DM with " + u.real_name
        else:
            name = "@" + peer
            purpose = "DM with " + peer
        topic = ""
    elif raw.is_mpim:
        if raw.members:
            member_count = len(raw.members)
            names = []
            for uid in raw.members:
                u = users.get(uid)
                names.append(u.real_name if u is not None else uid)
            name = "@" + raw.name_normalized
            purpose = "Group DM with " + ", ".join(names)
            topic = ""
    else:
        name = "#" + raw.name_normalized

    return Channel(
        id=raw.id,
        name=name,
        topic=topic,
        purpose=purpose,
        member_count=member_count,
        is_im=raw.is_im,
        is_mpim=raw.is_mpim,
        is_private=raw.is_private,
        user=peer,
        members=list(raw.members),
    )


def remap_cached_dm(ch: Channel, users: Mapping[str, SlackUser]) -> Channel:
    """Re-derive a cached DM against the current user directory."""
    raw = RawConversation(
        id=ch.id,
        topic=ch.topic,
        purpose=ch.purpose,
        user=ch.user,
        members=list(ch.members),
        num_members=ch.member_count,
        is_im=ch.is_im,
        is_mpim=ch.is_mpim,
        is_private=ch.is_private,
    )
    return map_channel(raw, users)
