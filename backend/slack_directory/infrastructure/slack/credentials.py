from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from ...errors import ConfigurationError
from ...observability.logging import get_logger
from ...settings import Settings
from .slack_secrets import get_secret_str


log = get_logger("slack_credentials")

XOXC_SLOT = "SLACK_MCP_XOXC_TOKEN"
XOXD_SLOT = "SLACK_MCP_XOXD_TOKEN"
XOXP_SLOT = "SLACK_MCP_XOXP_TOKEN"
XOXB_SLOT = "SLACK_MCP_XOXB_TOKEN"


class CredentialKind(str, Enum):
    SESSION = "session"  # xoxc token + xoxd cookie
    USER = "user"  # xoxp
    BOT = "bot"  # xoxb


@dataclass(frozen=True)
class Credential:
    kind: CredentialKind
    token: str = field(repr=False)
    cookie: str | None = field(default=None, repr=False)
    slot: str | None = None

    @property
    def is_bot_token(self) -> bool:
        # Bot tokens cannot use search.messages and only see channels the bot was invited to.
        return self.kind is CredentialKind.BOT

    @property
    def supports_search(self) -> bool:
        return not self.is_bot_token

    def cookies(self) -> dict[str, str]:
        if self.kind is CredentialKind.SESSION and self.cookie:
            return {"d": self.cookie}
        return {}


def _clean(v: object) -> str:
    return str(v or "").strip()


def credential_slots_from_settings(s: Settings) -> dict[str, str]:
    """
    Collect raw slot values. Env values win; unset slots fall back to the
    Secrets Manager JSON secret when SLACK_MCP_SECRET_ARN is configured.
    """
    slots = {
        XOXC_SLOT: _clean(s.slack_xoxc_token),
        XOXD_SLOT: _clean(s.slack_xoxd_token),
        XOXP_SLOT: _clean(s.slack_xoxp_token),
        XOXB_SLOT: _clean(s.slack_xoxb_token),
    }
    if _clean(s.slack_secret_arn):
        for k, v in list(slots.items()):
            if not v:
                slots[k] = get_secret_str(k, arn=s.slack_secret_arn, region=s.aws_region) or ""
    return slots


def select_credential(slots: Mapping[str, str | None]) -> Credential:
    """
    Pick exactly one credential, in priority order:
      1) session pair (xoxc + xoxd): most capable, supports search.messages
      2) user token (xoxp): supports search.messages
      3) bot token (xoxb): no search.messages, invited channels only

    Raises ConfigurationError when nothing usable is configured or a value sits
    in the wrong slot. A bot token in the user slot is the one tolerated
    misplacement: it is downgraded to a bot credential with a warning.
    """
    xoxc = _clean(slots.get(XOXC_SLOT))
    xoxd = _clean(slots.get(XOXD_SLOT))
    xoxp = _clean(slots.get(XOXP_SLOT))
    xoxb = _clean(slots.get(XOXB_SLOT))

    if xoxc and xoxd:
        log.info("slack_credential_selected", kind=CredentialKind.SESSION.value, slot=XOXC_SLOT)
        return Credential(kind=CredentialKind.SESSION, token=xoxc, cookie=xoxd, slot=XOXC_SLOT)

    if xoxp:
        if xoxp.startswith("xoxb-"):
            log.warning(
                "slack_bot_token_in_user_slot",
                slot=XOXP_SLOT,
                hint=f"Set bot tokens in {XOXB_SLOT}; bot tokens cannot use search.messages",
            )
            return Credential(kind=CredentialKind.BOT, token=xoxp, slot=XOXP_SLOT)
        if xoxp.startswith("xoxc-"):
            raise ConfigurationError(
                message=(
                    f"{XOXP_SLOT} contains a session token (xoxc-). "
                    f"Use {XOXC_SLOT} and {XOXD_SLOT} for session-based authentication."
                ),
                slot=XOXP_SLOT,
            )
        log.info("slack_credential_selected", kind=CredentialKind.USER.value, slot=XOXP_SLOT)
        return Credential(kind=CredentialKind.USER, token=xoxp, slot=XOXP_SLOT)

    if xoxb:
        if xoxb.startswith("xoxp-"):
            log.warning(
                "slack_user_token_in_bot_slot",
                slot=XOXB_SLOT,
                hint=f"Set user tokens in {XOXP_SLOT} for full API access including search.messages",
            )
        log.info("slack_credential_selected", kind=CredentialKind.BOT.value, slot=XOXB_SLOT)
        return Credential(kind=CredentialKind.BOT, token=xoxb, slot=XOXB_SLOT)

    raise ConfigurationError(
        message=(
            f"Authentication required: either {XOXC_SLOT} and {XOXD_SLOT} (session-based, recommended), "
            f"{XOXP_SLOT} (User OAuth), or {XOXB_SLOT} (Bot) must be provided"
        ),
    )
