from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ..infrastructure.slack.slack_rate_limiter import Limiter
from ..observability.context import bind_operation_id
from ..observability.logging import get_logger
from .cache import DirectoryCache
from .naming import map_channel, remap_cached_dm
from .protocols import DirectoryProtocol
from .snapshots import (
    read_channels_snapshot,
    read_users_snapshot,
    write_channels_snapshot,
    write_users_snapshot,
)


log = get_logger("directory_fetcher")


@dataclass(frozen=True)
class RefreshResult:
    source: str  # "snapshot" | "api"
    count: int
    pages: int = 0


class DirectoryFetcher:
    """
    Fills a DirectoryCache from disk snapshots or, on a miss, from Slack.

    Before every enumeration page a permit is taken from the limiter; setting
    `cancel` aborts the refresh before the next request goes out. Pages merged
    before a failure stay in the cache.
    """

    def __init__(
        self,
        *,
        cache: DirectoryCache,
        protocol: Callable[[], DirectoryProtocol],
        limiter: Limiter,
        users_snapshot_path: Path,
        channels_snapshot_path: Path,
    ):
        self._cache = cache
        self._protocol = protocol
        self._limiter = limiter
        self._users_path = Path(users_snapshot_path)
        self._channels_path = Path(channels_snapshot_path)

    @property
    def users_snapshot_path(self) -> Path:
        return self._users_path

    @property
    def channels_snapshot_path(self) -> Path:
        return self._channels_path

    # ---- users ----

    def load_users_snapshot(self) -> RefreshResult | None:
        cached = read_users_snapshot(self._users_path)
        if cached is None:
            return None
        n = self._cache.merge_users(cached)
        log.info("users_loaded_from_snapshot", count=n, path=str(self._users_path))
        return RefreshResult(source="snapshot", count=n)

    def fetch_users(self, cancel: threading.Event | None = None) -> RefreshResult:
        proto = self._protocol()
        cursor: str | None = None
        fetched = 0
        pages = 0
        while True:
            self._limiter.wait(cancel)
            try:
                page = proto.users_page(cursor)
            except Exception as e:
                log.warning("users_fetch_failed", protocol=proto.name, pages=pages, error=str(e) or "unknown_error")
                raise
            pages += 1
            fetched += self._cache.merge_users(page.items)
            if not page.next_cursor:
                break
            cursor = page.next_cursor

        log.info("users_fetched", protocol=proto.name, count=fetched, pages=pages)
        write_users_snapshot(self._users_path, self._cache.users_map().values())
        return RefreshResult(source="api", count=fetched, pages=pages)

    def refresh_users(self, cancel: threading.Event | None = None) -> RefreshResult:
        with bind_operation_id():
            return self.load_users_snapshot() or self.fetch_users(cancel)

    # ---- conversations ----

    def load_channels_snapshot(self) -> RefreshResult | None:
        cached = read_channels_snapshot(self._channels_path)
        if cached is None:
            return None
        # DM names depend on the peer's profile, which may have arrived after
        # the snapshot was written: re-derive them against the current users.
        users = self._cache.users_map()
        chans = [remap_cached_dm(c, users) if c.is_im else c for c in cached]
        n = self._cache.merge_channels(chans)
        log.info("channels_loaded_from_snapshot", count=n, path=str(self._channels_path), dm_remapped=True)
        return RefreshResult(source="snapshot", count=n)

    def fetch_channels(self, cancel: threading.Event | None = None) -> RefreshResult:
        proto = self._protocol()
        cursor: str | None = None
        fetched = 0
        pages = 0
        while True:
            self._limiter.wait(cancel)
            try:
                page = proto.conversations_page(cursor)
            except Exception as e:
                log.warning("channels_fetch_failed", protocol=proto.name, pages=pages, error=str(e) or "unknown_error")
                raise
            pages += 1
            users = self._cache.users_map()
            fetched += self._cache.merge_channels(map_channel(raw, users) for raw in page.items)
            if not page.next_cursor:
                log.info("channels_fetch_exhausted", protocol=proto.name, count=fetched, pages=pages)
                break
            cursor = page.next_cursor

        write_channels_snapshot(self._channels_path, self._cache.channels_snapshot().channels.values())
        return RefreshResult(source="api", count=fetched, pages=pages)

    def refresh_channels(self, cancel: threading.Event | None = None) -> RefreshResult:
        with bind_operation_id():
            return self.load_channels_snapshot() or self.fetch_channels(cancel)
