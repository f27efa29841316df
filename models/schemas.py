"""
Wire models for the reaction relay.
Inbound: the Slack Events API envelope relayed onto the bus.
Outbound: the TimeBomb deferred-deletion request.
"""
from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


# ──────────────────────────────────────────────────────────────
#  Inbound — reaction_added envelope
# ──────────────────────────────────────────────────────────────

class _EnvelopePart(BaseModel):
    """Base for inbound parts: an explicit JSON null reads as the field default."""
    model_config = ConfigDict(frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def _null_to_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            field = cls.model_fields[info.field_name]
            if not field.is_required():
                return field.get_default(call_default_factory=True)
        return v


class ReactionItem(_EnvelopePart):
    """The item a reaction was attached to."""

    type: str = ""                            # "message", "file", ...
    channel: str = ""                         # container id
    ts: str = ""                              # message timestamp id


class Authorization(_EnvelopePart):
    """One entry of the envelope's authorizations list."""

    user_id: str = ""
    is_bot: bool = Field(default=False, strict=True)  # JSON true/false only


class ReactionEvent(_EnvelopePart):
    """The nested `event` object."""

    type: str                                 # required, e.g. "reaction_added"
    user: str = ""                            # originator id
    reaction: str = ""                        # e.g. "wastebasket", "bomb"
    item: ReactionItem = Field(default_factory=ReactionItem)
    item_user: str = ""
    event_ts: str = ""


class ReactionEnvelope(_EnvelopePart):
    """A decoded inbound payload. Immutable once decoded."""

    token: str = ""
    team_id: str = ""
    api_app_id: str = ""
    type: str = ""                            # envelope type, e.g. "event_callback"
    event: ReactionEvent
    authorizations: tuple[Authorization, ...] = ()

    @property
    def channel(self) -> str:
        return self.event.item.channel

    @property
    def ts(self) -> str:
        return self.event.item.ts


# ──────────────────────────────────────────────────────────────
#  Outbound — TimeBomb request
# ──────────────────────────────────────────────────────────────

class TimeBombMessage(BaseModel):
    """Deferred deletion request published to the TimeBomb channel."""
    model_config = ConfigDict(frozen=True)

    channel: str
    ts: str
    ttl: int                                  # seconds

    def to_json(self) -> str:
        return json.dumps(self.model_dump(), separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str | bytes) -> TimeBombMessage:
        return cls.model_validate_json(raw)
