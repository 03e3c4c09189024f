from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Iterable

from pydantic import TypeAdapter, ValidationError

from ..errors import SnapshotError
from ..observability.logging import get_logger
from ..settings import Settings
from .models import Channel, SlackUser


log = get_logger("directory_snapshots")

CACHE_DIR_NAME = "slack-mcp-server"
USERS_SNAPSHOT_NAME = "users_cache.json"
CHANNELS_SNAPSHOT_NAME = "channels_cache_v2.json"

_users_adapter = TypeAdapter(list[SlackUser])
_channels_adapter = TypeAdapter(list[Channel])


def _user_cache_root() -> Path:
    if sys.platform.startswith("win"):
        base = os.environ.get("LOCALAPPDATA")
        if base:
            return Path(base)
    elif sys.platform == "darwin":
        return Path.home() / "Library" / "Caches"
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return Path.home() / ".cache"


def default_cache_dir() -> Path:
    """
    `<platform cache root>/slack-mcp-server`, created 0700 when missing.
    Falls back to the working directory when it cannot be created.
    """
    try:
        d = _user_cache_root() / CACHE_DIR_NAME
        d.mkdir(mode=0o700, parents=True, exist_ok=True)
        return d
    except (OSError, RuntimeError) as e:
        log.warning("snapshot_cache_dir_unavailable", error=str(e) or "unknown_error")
        return Path(".")


def resolve_snapshot_paths(s: Settings) -> tuple[Path, Path]:
    users = str(s.users_cache_path or "").strip()
    channels = str(s.channels_cache_path or "").strip()
    if users and channels:
        return Path(users), Path(channels)
    d = default_cache_dir()
    return (
        Path(users) if users else d / USERS_SNAPSHOT_NAME,
        Path(channels) if channels else d / CHANNELS_SNAPSHOT_NAME,
    )


def _read(path: Path, adapter: TypeAdapter) -> list[Any] | None:
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise SnapshotError(message=str(e) or "snapshot_read_failed", cause=e, path=str(path)) from e

    try:
        return adapter.validate_json(raw)
    except (ValidationError, ValueError) as e:
        raise SnapshotError(message=str(e)[:500], cause=e, path=str(path)) from e


def _write(path: Path, records: list[dict[str, Any]]) -> None:
    tmp: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Unique temp file per writer; concurrent refreshes each replace atomically.
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=path.name + ".", suffix=".tmp", delete=False
        ) as f:
            tmp = Path(f.name)
            json.dump(records, f, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
    except (OSError, TypeError, ValueError) as e:
        if tmp is not None:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
        raise SnapshotError(message=str(e) or "snapshot_write_failed", cause=e, path=str(path)) from e


def _load(path: Path, adapter: TypeAdapter) -> list[Any] | None:
    try:
        return _read(path, adapter)
    except SnapshotError as e:
        log.warning("snapshot_unusable_will_refetch", path=e.path, error=e.message)
        return None


def _store(path: Path, records: list[dict[str, Any]], *, kind: str) -> bool:
    try:
        _write(path, records)
    except SnapshotError as e:
        log.warning("snapshot_write_failed", kind=kind, path=e.path, error=e.message)
        return False
    log.info("snapshot_written", kind=kind, path=str(path), count=len(records))
    return True


def read_users_snapshot(path: Path) -> list[SlackUser] | None:
    """None means "no usable snapshot": missing, unreadable or malformed."""
    return _load(path, _users_adapter)


def read_channels_snapshot(path: Path) -> list[Channel] | None:
    return _load(path, _channels_adapter)


def write_users_snapshot(path: Path, users: Iterable[SlackUser]) -> bool:
    return _store(path, [u.model_dump() for u in users], kind="users")


def write_channels_snapshot(path: Path, channels: Iterable[Channel]) -> bool:
    return _store(path, [c.to_snapshot() for c in channels], kind="channels")
