from __future__ import annotations

from slack_directory.directory.models import RawConversation
from slack_directory.directory.naming import map_channel, normalize_string


def _users(make_user):
    return {
        "U1": make_user("U1", "alice", "Alice A"),
        "U2": make_user("U2", "bob", "Bob B"),
    }


def test_dm_peer_resolved_from_members(make_user):
    raw = RawConversation(id="D1", is_im=True, user="", members=["U1"], num_members=1)
    ch = map_channel(raw, _users(make_user))
    assert ch.name == "@alice"
    assert ch.purpose == "DM with Alice A"
    assert ch.member_count == 2
    assert ch.user == "U1"
    assert ch.topic == ""


def test_dm_prefers_explicit_peer_over_members(make_user):
    raw = RawConversation(id="D1", is_im=True, user="U2", members=["U1"])
    ch = map_channel(raw, _users(make_user))
    assert ch.name == "@bob"
    assert ch.purpose == "DM with Bob B"


def test_dm_members_skip_unknown_ids(make_user):
    raw = RawConversation(id="D1", is_im=True, members=["U404", "U2"])
    ch = map_channel(raw, _users(make_user))
    assert ch.user == "U2"
    assert ch.name == "@bob"


def test_dm_with_unresolved_peer_falls_back_to_raw_id(make_user):
    raw = RawConversation(id="D9", is_im=True, user="U9", members=[], topic="stale")
    ch = map_channel(raw, _users(make_user))
    assert ch.name == "@U9"
    assert ch.purpose == "DM with U9"
    assert ch.topic == ""
    assert ch.member_count == 2


def test_dm_without_any_peer_degrades_to_empty_name():
    raw = RawConversation(id="D0", is_im=True)
    ch = map_channel(raw, {})
    assert ch.name == "@"
    assert ch.purpose == "DM with "


def test_group_dm_lists_member_real_names(make_user):
    raw = RawConversation(
        id="G1",
        name="mpdm-alice--bob-1",
        name_normalized="mpdm-alice--bob-1",
        is_mpim=True,
        is_private=True,
        members=["U1", "U2"],
        num_members=7,
        topic="ignored",
    )
    ch = map_channel(raw, _users(make_user))
    assert ch.name == "@mpdm-alice--bob-1"
    assert ch.purpose == "Group DM with Alice A, Bob B"
    assert ch.member_count == 2
    assert ch.topic == ""


def test_group_dm_unknown_member_uses_raw_id(make_user):
    raw = RawConversation(id="G1", name_normalized="g", is_mpim=True, members=["U1", "U77"])
    ch = map_channel(raw, _users(make_user))
    assert ch.purpose == "Group DM with Alice A, U77"


def test_group_dm_without_members_is_left_unmapped(make_user):
    raw = RawConversation(
        id="G2",
        name="mpdm-raw",
        name_normalized="mpdm-normalized",
        is_mpim=True,
        purpose="original purpose",
        topic="original topic",
        num_members=3,
    )
    ch = map_channel(raw, _users(make_user))
    assert ch.name == "mpdm-raw"
    assert ch.purpose == "original purpose"
    assert ch.topic == "original topic"
    assert ch.member_count == 3


def test_standard_channel_gets_hash_prefix_and_keeps_topic(make_user):
    raw = RawConversation.model_validate(
        {
            "id": "C1",
            "name": "General",
            "name_normalized": "general",
            "is_private": False,
            "num_members": 42,
            "topic": {"value": "Company-wide", "creator": "U1", "last_set": 0},
            "purpose": {"value": "Announcements", "creator": "U1", "last_set": 0},
        }
    )
    ch = map_channel(raw, _users(make_user))
    assert ch.name == "#general"
    assert ch.topic == "Company-wide"
    assert ch.purpose == "Announcements"
    assert ch.member_count == 42
    assert ch.user == ""


def test_derivation_is_pure_and_repeatable(make_user):
    users = _users(make_user)
    raw = RawConversation(id="G1", name_normalized="g", is_mpim=True, members=["U2", "U1"])
    a = map_channel(raw, users)
    b = map_channel(raw, users)
    assert a == b
    assert a.model_dump_json() == b.model_dump_json()
    # Inputs are untouched.
    assert raw.members == ["U2", "U1"]
    assert set(users) == {"U1", "U2"}


def test_normalize_string_strips_invisible_and_control_chars():
    dirty = "\u200bAl\u200dice\ufeff\x00\t"
    assert normalize_string(dirty) == "Alice"
    assert normalize_string(normalize_string(dirty)) == normalize_string(dirty)
    assert normalize_string("Zoë Ünïcode") == "Zoë Ünïcode"
    assert normalize_string(None) == ""
