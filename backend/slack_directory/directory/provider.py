from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable

import httpx

from ..errors import ConfigurationError, DirectoryError
from ..infrastructure.slack.credentials import Credential, credential_slots_from_settings, select_credential
from ..infrastructure.slack.http_client import build_http_client
from ..infrastructure.slack.slack_rate_limiter import Limiter
from ..infrastructure.slack.slack_web import ALL_CHANNEL_TYPES, SlackEnterpriseClient, SlackWebClient
from ..observability.logging import get_logger
from ..settings import Settings, get_settings
from .cache import ChannelsSnapshot, DirectoryCache, UsersSnapshot
from .fetcher import DirectoryFetcher, RefreshResult
from .models import Channel, Identity
from .protocols import DirectoryProtocol, EnterpriseProtocol, StandardProtocol
from .session import SessionBootstrapper
from .snapshots import resolve_snapshot_paths


log = get_logger("directory_provider")


class DirectoryProvider:
    """
    Workspace directory: authenticated session, cache, and the fetcher that
    keeps the cache filled. Lookups read the cache only and never fetch.
    """

    def __init__(
        self,
        *,
        credential: Credential,
        settings: Settings,
        http: httpx.Client,
        cache: DirectoryCache | None = None,
        limiter: Limiter | None = None,
    ):
        self._settings = settings
        self.cache = cache or DirectoryCache()
        self.session = SessionBootstrapper(credential=credential, http=http, api_base_url=settings.api_base_url)

        self._protocol_lock = threading.Lock()
        self._protocol: DirectoryProtocol | None = None

        users_path, channels_path = resolve_snapshot_paths(settings)
        self.fetcher = DirectoryFetcher(
            cache=self.cache,
            protocol=self.directory_protocol,
            limiter=limiter or Limiter.for_tier(settings.rate_limit_tier),
            users_snapshot_path=users_path,
            channels_snapshot_path=channels_path,
        )

    # ---- session ----

    @property
    def is_bot_token(self) -> bool:
        return self.session.is_bot_token

    @property
    def identity(self) -> Identity | None:
        return self.session.identity

    def provide_generic(self) -> SlackWebClient:
        return self.session.provide_generic()

    def provide_enterprise(self) -> SlackEnterpriseClient:
        return self.session.provide_enterprise()

    def directory_protocol(self) -> DirectoryProtocol:
        """The enumeration protocol, chosen once from the authenticated identity."""
        with self._protocol_lock:
            if self._protocol is not None:
                return self._protocol
            client = self.session.provide_generic()
            ident = self.session.identity
            if ident is not None and ident.is_enterprise:
                self._protocol = EnterpriseProtocol(
                    client=client,
                    enterprise=self.session.provide_enterprise(),
                    users_limit=self._settings.users_page_limit,
                )
            else:
                self._protocol = StandardProtocol(
                    client=client,
                    users_limit=self._settings.users_page_limit,
                    channels_limit=self._settings.channels_page_limit,
                )
            log.info("directory_protocol_selected", protocol=self._protocol.name)
            return self._protocol

    # ---- refresh ----

    def refresh_users(self, cancel: threading.Event | None = None) -> RefreshResult:
        return self.fetcher.refresh_users(cancel)

    def refresh_channels(self, cancel: threading.Event | None = None) -> RefreshResult:
        return self.fetcher.refresh_channels(cancel)

    def refresh(self, cancel: threading.Event | None = None) -> tuple[RefreshResult, RefreshResult]:
        # Users first: conversation names are derived from them.
        users = self.refresh_users(cancel)
        channels = self.refresh_channels(cancel)
        return users, channels

    # ---- read side ----

    def provide_users_map(self) -> UsersSnapshot:
        return self.cache.users_snapshot()

    def provide_channels_maps(self) -> ChannelsSnapshot:
        return self.cache.channels_snapshot()

    def get_channels(self, channel_types: Iterable[str] | None = None) -> list[Channel]:
        """
        Cached conversations of the requested categories, grouped in the
        order the types are given. A public channel is any non-private one.
        """
        types = [str(t or "").strip() for t in (channel_types or []) if str(t or "").strip()]
        if not types:
            types = list(ALL_CHANNEL_TYPES)

        chans = list(self.cache.channels_snapshot().channels.values())
        out: list[Channel] = []
        for t in types:
            for c in chans:
                if t == "public_channel" and not c.is_private:
                    out.append(c)
                elif t == "private_channel" and c.is_private:
                    out.append(c)
                elif t == "im" and c.is_im:
                    out.append(c)
                elif t == "mpim" and c.is_mpim:
                    out.append(c)
        return out


@dataclass(frozen=True)
class BootResult:
    """
    Outcome of `bootstrap_provider`. Exactly one of provider / fatal is set.
    A fatal error means the process must not start; mapping it to an exit is
    the entry point's job.
    """

    provider: DirectoryProvider | None = None
    fatal: DirectoryError | None = None

    @property
    def ok(self) -> bool:
        return self.provider is not None and self.fatal is None


def bootstrap_provider(
    s: Settings | None = None,
    *,
    http: httpx.Client | None = None,
    limiter: Limiter | None = None,
    verify_identity: bool = False,
) -> BootResult:
    """
    Select the credential, build the HTTP client and the provider.

    With verify_identity, also perform the auth.test round trip now so bad
    credentials surface at startup instead of on the first lookup.
    """
    st = s or get_settings()
    try:
        credential = select_credential(credential_slots_from_settings(st))
        client = http or build_http_client(st, cookies=credential.cookies())
    except ConfigurationError as e:
        log.error("directory_configuration_error", error=e.message, slot=e.slot)
        return BootResult(fatal=e)

    provider = DirectoryProvider(credential=credential, settings=st, http=client, limiter=limiter)
    if verify_identity:
        try:
            provider.provide_generic()
        except DirectoryError as e:
            return BootResult(fatal=e)

    log.info(
        "directory_provider_ready",
        kind=credential.kind.value,
        is_bot_token=credential.is_bot_token,
        users_snapshot=str(provider.fetcher.users_snapshot_path),
        channels_snapshot=str(provider.fetcher.channels_snapshot_path),
    )
    return BootResult(provider=provider)
