from __future__ import annotations

import json
import threading

import pytest

from slack_directory.directory.cache import DirectoryCache
from slack_directory.directory.fetcher import DirectoryFetcher
from slack_directory.directory.models import RawConversation
from slack_directory.directory.protocols import EnterpriseProtocol, Page
from slack_directory.errors import FetchCancelled, FetchError
from slack_directory.infrastructure.slack.slack_rate_limiter import Limiter


class _CountingLimiter:
    def __init__(self) -> None:
        self.permits = 0

    def wait(self, cancel: threading.Event | None = None) -> None:
        self.permits += 1


class _FakeProtocol:
    name = "fake"

    def __init__(self, *, users_pages=(), conversation_pages=(), fail_on_page: int | None = None):
        self._users_pages = list(users_pages)
        self._conv_pages = list(conversation_pages)
        self._fail_on_page = fail_on_page
        self.cursors: list[str | None] = []

    def _serve(self, pages, cursor):
        self.cursors.append(cursor)
        i = len(self.cursors) - 1
        if self._fail_on_page is not None and i == self._fail_on_page:
            raise FetchError(message="Slack users.list failed: internal_error", method="users.list", slack_error="internal_error")
        items = pages[i]
        return Page(items=items, next_cursor=f"c{i + 1}" if i + 1 < len(pages) else "")

    def users_page(self, cursor):
        return self._serve(self._users_pages, cursor)

    def conversations_page(self, cursor):
        return self._serve(self._conv_pages, cursor)


def _fetcher(tmp_path, proto, *, cache=None, limiter=None):
    return DirectoryFetcher(
        cache=cache or DirectoryCache(),
        protocol=lambda: proto,
        limiter=limiter or _CountingLimiter(),
        users_snapshot_path=tmp_path / "users_cache.json",
        channels_snapshot_path=tmp_path / "channels_cache_v2.json",
    )


def test_one_permit_per_page_and_stops_on_empty_cursor(tmp_path, make_user):
    proto = _FakeProtocol(
        users_pages=[
            [make_user("U1", "alice", "Alice A")],
            [make_user("U2", "bob", "Bob B")],
            [make_user("U3", "carol", "Carol C")],
        ]
    )
    limiter = _CountingLimiter()
    f = _fetcher(tmp_path, proto, limiter=limiter)

    res = f.fetch_users()
    assert res.source == "api"
    assert res.pages == 3
    assert res.count == 3
    assert limiter.permits == 3
    assert proto.cursors == [None, "c1", "c2"]
    assert (tmp_path / "users_cache.json").exists()


def test_users_snapshot_hit_skips_the_network(tmp_path, make_user):
    (tmp_path / "users_cache.json").write_text(
        json.dumps([make_user("U1", "alice", "Alice A").model_dump()]), encoding="utf-8"
    )
    proto = _FakeProtocol()
    cache = DirectoryCache()
    res = _fetcher(tmp_path, proto, cache=cache).refresh_users()
    assert res.source == "snapshot"
    assert proto.cursors == []
    assert cache.user_id_by_name("alice") == "U1"


def test_failed_page_keeps_earlier_pages_and_writes_no_snapshot(tmp_path, make_user):
    proto = _FakeProtocol(
        users_pages=[[make_user("U1", "alice")], [make_user("U2", "bob")]],
        fail_on_page=1,
    )
    cache = DirectoryCache()
    with pytest.raises(FetchError) as ei:
        _fetcher(tmp_path, proto, cache=cache).fetch_users()
    assert ei.value.slack_error == "internal_error"
    assert cache.get_user("U1") is not None
    assert cache.get_user("U2") is None
    assert not (tmp_path / "users_cache.json").exists()


def test_cancellation_stops_before_the_next_request(tmp_path, make_user):
    proto = _FakeProtocol(users_pages=[[make_user("U1", "alice")], [make_user("U2", "bob")]])
    cancel = threading.Event()
    cancel.set()
    # A real limiter with plenty of budget: the set event alone must stop the loop.
    f = _fetcher(tmp_path, proto, limiter=Limiter(limit=100, per_seconds=60))
    with pytest.raises(FetchCancelled):
        f.fetch_users(cancel)
    assert proto.cursors == []


def test_cancellation_wakes_a_throttled_wait(tmp_path, make_user):
    proto = _FakeProtocol(users_pages=[[make_user("U1", "alice")], [make_user("U2", "bob")]])
    cancel = threading.Event()
    limiter = Limiter(limit=1, per_seconds=3600)
    f = _fetcher(tmp_path, proto, limiter=limiter)

    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    try:
        with pytest.raises(FetchCancelled):
            f.fetch_users(cancel)
    finally:
        timer.cancel()
    # First page went out; the second was never requested.
    assert proto.cursors == [None]


def test_channels_fetch_derives_names_from_current_users(tmp_path, make_user):
    cache = DirectoryCache()
    cache.merge_users([make_user("U1", "alice", "Alice A")])
    proto = _FakeProtocol(
        conversation_pages=[
            [RawConversation(id="C1", name="general", name_normalized="general", num_members=5)],
            [RawConversation(id="D1", is_im=True, user="U1")],
        ]
    )
    res = _fetcher(tmp_path, proto, cache=cache).fetch_channels()
    assert res.pages == 2
    assert cache.channel_id_by_name("#general") == "C1"
    assert cache.channel_id_by_name("@alice") == "D1"
    assert (tmp_path / "channels_cache_v2.json").exists()


def test_snapshot_reload_rederives_dm_names_without_network(tmp_path, make_user):
    # Snapshot written while the peer was still unknown.
    (tmp_path / "channels_cache_v2.json").write_text(
        json.dumps(
            [
                {"id": "D1", "name": "@U1", "purpose": "DM with U1", "memberCount": 2, "im": True, "user": "U1"},
                {"id": "C1", "name": "#general", "memberCount": 5},
            ]
        ),
        encoding="utf-8",
    )
    cache = DirectoryCache()
    cache.merge_users([make_user("U1", "alice", "Alice A")])
    proto = _FakeProtocol()

    res = _fetcher(tmp_path, proto, cache=cache).refresh_channels()
    assert res.source == "snapshot"
    assert proto.cursors == []
    dm = cache.get_channel("D1")
    assert dm.name == "@alice"
    assert dm.purpose == "DM with Alice A"
    assert cache.channel_id_by_name("@U1") is None
    assert cache.get_channel("C1").name == "#general"


class _FakeEnterpriseClient:
    def get_conversations(self):
        return {
            "ok": True,
            "channels": [
                {"id": "C1", "name": "live", "name_normalized": "live"},
                {"id": "C2", "name": "old", "name_normalized": "old", "is_archived": True},
                {"id": "D1", "is_im": True, "user": "U1"},
            ],
        }


def test_enterprise_protocol_drops_archived_and_is_single_page():
    proto = EnterpriseProtocol(client=None, enterprise=_FakeEnterpriseClient())  # type: ignore[arg-type]
    page = proto.conversations_page(None)
    assert [c.id for c in page.items] == ["C1", "D1"]
    assert page.next_cursor == ""
