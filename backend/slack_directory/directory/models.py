from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _drop_nulls(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if v is not None}
    return data


class SlackModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # Slack sends explicit nulls for unset fields; let defaults apply.
        return _drop_nulls(data)


class UserProfile(SlackModel):
    # Unmodelled profile fields are kept.
    model_config = ConfigDict(extra="allow")

    display_name: str = ""
    display_name_normalized: str = ""
    real_name: str = ""
    real_name_normalized: str = ""
    email: str = ""
    title: str = ""
    phone: str = ""
    status_text: str = ""
    status_emoji: str = ""
    image_72: str = ""


class SlackUser(SlackModel):
    """A users.list member. Fields not modelled here are kept as extras."""

    model_config = ConfigDict(extra="allow")

    id: str
    team_id: str = ""
    name: str = ""
    real_name: str = ""
    deleted: bool = False
    tz: str = ""
    is_admin: bool = False
    is_owner: bool = False
    is_restricted: bool = False
    is_bot: bool = False
    is_app_user: bool = False
    profile: UserProfile = Field(default_factory=UserProfile)

    @property
    def display_name(self) -> str:
        return self.profile.display_name

    @property
    def email(self) -> str:
        return self.profile.email


class Channel(SlackModel):
    """
    A cached conversation. `name`, `purpose` and `topic` are derived
    (see naming.map_channel) and recomputed whenever the user set changes.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str
    name: str = ""
    topic: str = ""
    purpose: str = ""
    member_count: int = Field(default=0, alias="memberCount")
    is_mpim: bool = Field(default=False, alias="mpim")
    is_im: bool = Field(default=False, alias="im")
    is_private: bool = Field(default=False, alias="private")
    user: str = ""  # DM peer
    members: list[str] = Field(default_factory=list)

    def to_snapshot(self) -> dict[str, Any]:
        out = self.model_dump(by_alias=True)
        if not out.get("user"):
            out.pop("user", None)
        if not out.get("members"):
            out.pop("members", None)
        return out


def _text_value(v: Any) -> str:
    # topic / purpose arrive as {"value": ..., "creator": ..., "last_set": ...}
    if isinstance(v, dict):
        return str(v.get("value") or "")
    return str(v or "")


class RawConversation(SlackModel):
    """A conversation as returned by conversations.list / client.userBoot."""

    id: str
    name: str = ""
    name_normalized: str = ""
    topic: str = ""
    purpose: str = ""
    user: str = ""
    members: list[str] = Field(default_factory=list)
    num_members: int = 0
    is_im: bool = False
    is_mpim: bool = False
    is_private: bool = False
    is_archived: bool = False

    @model_validator(mode="before")
    @classmethod
    def flatten_text_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            for k in ("topic", "purpose"):
                if k in data:
                    data[k] = _text_value(data[k])
        return data


@dataclass(frozen=True)
class Identity:
    """The authenticated principal, as reported by auth.test."""

    team_id: str
    user_id: str
    url: str = ""
    team: str = ""
    user: str = ""
    enterprise_id: str | None = None
    bot_id: str | None = None

    @property
    def is_enterprise(self) -> bool:
        return bool(self.enterprise_id)

    @classmethod
    def from_auth_test(cls, resp: dict[str, Any]) -> "Identity":
        def _s(k: str) -> str:
            return str(resp.get(k) or "").strip()

        return cls(
            team_id=_s("team_id"),
            user_id=_s("user_id"),
            url=_s("url"),
            team=_s("team"),
            user=_s("user"),
            enterprise_id=_s("enterprise_id") or None,
            bot_id=_s("bot_id") or None,
        )
