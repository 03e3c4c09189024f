from __future__ import annotations

import threading

import httpx

from ..errors import AuthenticationError
from ..infrastructure.slack.credentials import Credential
from ..infrastructure.slack.slack_web import SlackEnterpriseClient, SlackWebClient
from ..observability.logging import get_logger
from .models import Identity


log = get_logger("slack_session")


class SessionBootstrapper:
    """
    Builds the authenticated Slack handles on first use.

    The generic handle is created exactly once, after a successful auth.test
    round trip that also records the Identity. A failed round trip is
    remembered and re-raised: bad credentials do not become good.
    The enterprise handle is created on demand from the same identity.
    """

    def __init__(self, *, credential: Credential, http: httpx.Client, api_base_url: str = "https://slack.com/api/"):
        self._credential = credential
        self._http = http
        self._api_base_url = api_base_url
        self._lock = threading.Lock()

        self._generic: SlackWebClient | None = None
        self._enterprise: SlackEnterpriseClient | None = None
        self._identity: Identity | None = None
        self._failure: AuthenticationError | None = None

    @property
    def credential(self) -> Credential:
        return self._credential

    @property
    def is_bot_token(self) -> bool:
        return self._credential.is_bot_token

    @property
    def identity(self) -> Identity | None:
        return self._identity

    def _boot(self) -> SlackWebClient:
        client = SlackWebClient(credential=self._credential, http=self._http, base_url=self._api_base_url)
        resp = client.auth_test()
        if not bool(resp.get("ok")):
            err = str(resp.get("error") or "").strip() or "auth_failed"
            raise AuthenticationError(message=f"Slack auth.test failed: {err}", slack_error=err)

        ident = Identity.from_auth_test(resp)
        self._identity = ident
        log.info(
            "slack_authenticated",
            kind=self._credential.kind.value,
            team=ident.team or None,
            team_id=ident.team_id,
            user_id=ident.user_id,
            enterprise_id=ident.enterprise_id,
            bot_id=ident.bot_id,
        )
        return client

    def provide_generic(self) -> SlackWebClient:
        with self._lock:
            if self._generic is not None:
                return self._generic
            if self._failure is not None:
                raise self._failure
            try:
                self._generic = self._boot()
            except AuthenticationError as e:
                self._failure = e
                log.error("slack_authentication_failed", error=e.message, slack_error=e.slack_error)
                raise
            return self._generic

    def provide_enterprise(self) -> SlackEnterpriseClient:
        # Needs the identity (team URL) from the generic bootstrap.
        self.provide_generic()
        with self._lock:
            if self._enterprise is None:
                ident = self._identity
                self._enterprise = SlackEnterpriseClient(
                    credential=self._credential,
                    http=self._http,
                    team_url=(ident.url if ident and ident.url else "https://slack.com"),
                )
            return self._enterprise
