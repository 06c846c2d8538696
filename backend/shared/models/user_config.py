"""Per-user configuration document.

Stored as a single JSON blob per user. The wire/storage field names keep the
capitalised keys the frontend already speaks (``Redemptions``, ``Editors``,
``Protected.EditorFor``).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .emote_history import RewardType

DEFAULT_BTTV_TITLE = "Bttv emote"


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Redemption(_Document):
    title: str = Field(default="", alias="Title")
    active: bool = Field(default=False, alias="Active")


class Redemptions(_Document):
    """Reward type -> redemption settings. Unset types are simply absent."""

    bttv: Redemption | None = Field(default=None, alias="Bttv")
    seventv: Redemption | None = Field(default=None, alias="Seventv")

    def get(self, reward_type: RewardType) -> Redemption | None:
        return getattr(self, reward_type.value)

    def items(self) -> list[tuple[RewardType, Redemption]]:
        return [(rt, r) for rt in RewardType if (r := self.get(rt)) is not None]


class Protected(_Document):
    """Server-controlled subtree. Never copied from a client payload."""

    editor_for: list[str] = Field(default_factory=list, alias="EditorFor")

    @field_validator("editor_for", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v


class UserConfig(_Document):
    redemptions: Redemptions = Field(default_factory=Redemptions, alias="Redemptions")
    editors: list[str] = Field(default_factory=list, alias="Editors")
    protected: Protected = Field(default_factory=Protected, alias="Protected")

    @field_validator("redemptions", "protected", mode="before")
    @classmethod
    def _none_to_default(cls, v, info):
        if v is None:
            return Redemptions() if info.field_name == "redemptions" else Protected()
        return v

    @field_validator("editors", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return [] if v is None else v

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)

    def is_editor(self, login: str) -> bool:
        login = login.lower()
        return any(e.lower() == login for e in self.editors)


def create_default_user_config() -> UserConfig:
    """Document returned for users that never saved a config. Not persisted."""
    return UserConfig(
        redemptions=Redemptions(bttv=Redemption(title=DEFAULT_BTTV_TITLE, active=False)),
        editors=[],
        protected=Protected(editor_for=[]),
    )
