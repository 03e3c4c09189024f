from __future__ import annotations

import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from .models import Channel, SlackUser
from .naming import normalize_string


# ---- derived indices ----
# Each index is a pure function of the canonical ID-keyed map. Collisions
# resolve to the last user/channel in map order.

def build_username_index(users: Mapping[str, SlackUser]) -> dict[str, str]:
    return {u.name: uid for uid, u in users.items() if u.name}


def build_display_name_index(users: Mapping[str, SlackUser]) -> dict[str, str]:
    out: dict[str, str] = {}
    for uid, u in users.items():
        k = normalize_string(u.profile.display_name)
        if k:
            out[k] = uid
    return out


def build_real_name_index(users: Mapping[str, SlackUser]) -> dict[str, str]:
    out: dict[str, str] = {}
    for uid, u in users.items():
        k = normalize_string(u.real_name)
        if k:
            out[k] = uid
    return out


def build_email_index(users: Mapping[str, SlackUser]) -> dict[str, str]:
    return {u.profile.email: uid for uid, u in users.items() if u.profile.email}


def build_channel_name_index(channels: Mapping[str, Channel]) -> dict[str, str]:
    return {c.name: cid for cid, c in channels.items() if c.name}


@dataclass(frozen=True)
class UsersSnapshot:
    users: Mapping[str, SlackUser]
    users_inv: Mapping[str, str]
    display_name_inv: Mapping[str, str]
    real_name_inv: Mapping[str, str]
    email_inv: Mapping[str, str]


@dataclass(frozen=True)
class ChannelsSnapshot:
    channels: Mapping[str, Channel]
    channels_inv: Mapping[str, str]


class DirectoryCache:
    """
    In-memory users + conversations directory.

    One canonical ID-keyed map per entity; the inverse indices are rebuilt from
    it inside the same writer section on every merge, so they can never drift.
    Entries are only inserted or overwritten by ID, never deleted.

    Readers get copies taken under the lock and scan them outside it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

        self._users: dict[str, SlackUser] = {}
        self._users_inv: dict[str, str] = {}
        self._users_display_name_inv: dict[str, str] = {}
        self._users_real_name_inv: dict[str, str] = {}
        self._users_email_inv: dict[str, str] = {}

        self._channels: dict[str, Channel] = {}
        self._channels_inv: dict[str, str] = {}

    # ---- writers ----

    def merge_users(self, users: Iterable[SlackUser]) -> int:
        n = 0
        with self._lock:
            for u in users:
                self._users[u.id] = u
                n += 1
            self._reindex_users()
        return n

    def merge_channels(self, channels: Iterable[Channel]) -> int:
        n = 0
        with self._lock:
            for c in channels:
                self._channels[c.id] = c
                n += 1
            self._channels_inv = build_channel_name_index(self._channels)
        return n

    def _reindex_users(self) -> None:
        self._users_inv = build_username_index(self._users)
        self._users_display_name_inv = build_display_name_index(self._users)
        self._users_real_name_inv = build_real_name_index(self._users)
        self._users_email_inv = build_email_index(self._users)

    # ---- point lookups ----

    def get_user(self, user_id: str) -> SlackUser | None:
        with self._lock:
            return self._users.get(str(user_id or ""))

    def user_id_by_name(self, username: str) -> str | None:
        with self._lock:
            return self._users_inv.get(str(username or ""))

    def user_id_by_display_name(self, display_name: str) -> str | None:
        with self._lock:
            return self._users_display_name_inv.get(normalize_string(display_name))

    def user_id_by_real_name(self, real_name: str) -> str | None:
        with self._lock:
            return self._users_real_name_inv.get(normalize_string(real_name))

    def user_id_by_email(self, email: str) -> str | None:
        with self._lock:
            return self._users_email_inv.get(str(email or ""))

    def get_channel(self, channel_id: str) -> Channel | None:
        with self._lock:
            return self._channels.get(str(channel_id or ""))

    def channel_id_by_name(self, name: str) -> str | None:
        with self._lock:
            return self._channels_inv.get(str(name or ""))

    # ---- bulk snapshots ----

    def users_map(self) -> dict[str, SlackUser]:
        with self._lock:
            return dict(self._users)

    def users_snapshot(self) -> UsersSnapshot:
        with self._lock:
            return UsersSnapshot(
                users=MappingProxyType(dict(self._users)),
                users_inv=MappingProxyType(dict(self._users_inv)),
                display_name_inv=MappingProxyType(dict(self._users_display_name_inv)),
                real_name_inv=MappingProxyType(dict(self._users_real_name_inv)),
                email_inv=MappingProxyType(dict(self._users_email_inv)),
            )

    def channels_snapshot(self) -> ChannelsSnapshot:
        with self._lock:
            return ChannelsSnapshot(
                channels=MappingProxyType(dict(self._channels)),
                channels_inv=MappingProxyType(dict(self._channels_inv)),
            )

    @property
    def user_count(self) -> int:
        with self._lock:
            return len(self._users)

    @property
    def channel_count(self) -> int:
        with self._lock:
            return len(self._channels)

    # ---- consistency ----

    def verify_indices(self) -> list[str]:
        """
        Rebuild every index from the canonical maps and compare.
        Returns the names of indices that disagree (empty when consistent).
        """
        with self._lock:
            checks = {
                "users_inv": (self._users_inv, build_username_index(self._users)),
                "users_display_name_inv": (
                    self._users_display_name_inv,
                    build_display_name_index(self._users),
                ),
                "users_real_name_inv": (self._users_real_name_inv, build_real_name_index(self._users)),
                "users_email_inv": (self._users_email_inv, build_email_index(self._users)),
                "channels_inv": (self._channels_inv, build_channel_name_index(self._channels)),
            }
            bad = [name for name, (have, want) in checks.items() if have != want]
            for name, (have, _) in checks.items():
                canonical = self._channels if name == "channels_inv" else self._users
                if any(v not in canonical for v in have.values()) and name not in bad:
                    bad.append(name)
            return bad
