from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from pydantic import ValidationError

from .directory.provider import bootstrap_provider
from .errors import DirectoryError
from .observability.context import bind_operation_id
from .observability.logging import configure_logging, get_logger
from .settings import get_settings


log = get_logger("main")


def _fatal(message: str) -> NoReturn:
    log.error("startup_failed", error=message)
    print(f"fatal: {message}", file=sys.stderr)
    raise SystemExit(2)


def main(argv: list[str] | None = None) -> int:
    """
    Warm the directory: authenticate, then load users and conversations from
    the snapshots or from Slack, writing fresh snapshots on a miss.

    Fatal configuration / authentication errors exit with status 2 before any
    directory traffic; a failed refresh exits with status 1.
    """
    parser = argparse.ArgumentParser(description="Warm the Slack workspace directory cache")
    parser.add_argument("--log-level", type=str, help="Override LOG_LEVEL for this run")
    parser.add_argument(
        "--verify-only",
        action="store_true",
        help="Check credentials with auth.test and exit without loading the directory",
    )
    args = parser.parse_args(argv)

    try:
        s = get_settings()
    except ValidationError as e:
        configure_logging(level=args.log_level or "INFO")
        _fatal(f"invalid configuration: {e}")

    configure_logging(level=args.log_level or s.log_level)
    log.info("settings_loaded", settings=s.to_log_safe_dict())

    with bind_operation_id():
        boot = bootstrap_provider(s, verify_identity=True)
    if boot.fatal is not None or boot.provider is None:
        _fatal(str(boot.fatal) if boot.fatal else "unknown_error")

    provider = boot.provider
    if args.verify_only:
        ident = provider.identity
        log.info("credentials_verified", team_id=ident.team_id if ident else None, is_bot_token=provider.is_bot_token)
        return 0

    try:
        users, channels = provider.refresh()
    except DirectoryError as e:
        log.error("directory_refresh_failed", error=e.message, users=provider.cache.user_count)
        return 1

    log.info(
        "directory_ready",
        users=users.count,
        users_source=users.source,
        channels=channels.count,
        channels_source=channels.source,
        is_bot_token=provider.is_bot_token,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
