"""
Event Classifier — decides what a decoded reaction should trigger.

Rules are evaluated in order, first match wins:
  1. event.type != "reaction_added"      → ignore
  2. event.item.type != "message"        → ignore
  3. reacting user is a bot              → ignore
  4. reaction == "wastebasket"           → delete now
  5. reaction == "bomb"                  → schedule deletion (configured TTL)
  6. anything else                       → ignore
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from models.schemas import ReactionEnvelope

REACTION_ADDED = "reaction_added"
MESSAGE_ITEM = "message"
DELETE_NOW_REACTION = "wastebasket"
TIME_BOMB_REACTION = "bomb"


class RoutingAction(str, Enum):
    IGNORE = "ignore"
    DELETE_NOW = "delete_now"
    SCHEDULE_DELETE = "schedule_delete"


class IgnoreReason(str, Enum):
    NON_REACTION_EVENT = "non-reaction event"
    NON_MESSAGE_ITEM = "non-message item"
    AUTOMATED_ORIGINATOR = "automated originator"
    UNSUPPORTED_REACTION = "unsupported reaction"


@dataclass(frozen=True)
class RoutingDecision:
    action: RoutingAction
    reason: str = ""
    channel: str = ""
    ts: str = ""
    ttl: int = 0

    @classmethod
    def ignore(cls, reason: IgnoreReason) -> RoutingDecision:
        return cls(RoutingAction.IGNORE, reason=reason.value)

    @classmethod
    def delete_now(cls, channel: str, ts: str) -> RoutingDecision:
        return cls(RoutingAction.DELETE_NOW, channel=channel, ts=ts)

    @classmethod
    def schedule_delete(cls, channel: str, ts: str, ttl: int) -> RoutingDecision:
        return cls(RoutingAction.SCHEDULE_DELETE, channel=channel, ts=ts, ttl=ttl)

    @property
    def is_ignore(self) -> bool:
        return self.action == RoutingAction.IGNORE


def is_automated(envelope: ReactionEnvelope) -> bool:
    """True iff an authorization for the reacting user is flagged is_bot.

    No matching authorization means a human.
    """
    user = envelope.event.user
    return any(auth.user_id == user and auth.is_bot for auth in envelope.authorizations)


class EventClassifier:
    """Pure routing function; holds only the configured TimeBomb TTL."""

    def __init__(self, ttl_seconds: int = 5):
        self.ttl_seconds = ttl_seconds

    def classify(self, envelope: ReactionEnvelope) -> RoutingDecision:
        event = envelope.event

        if event.type != REACTION_ADDED:
            return RoutingDecision.ignore(IgnoreReason.NON_REACTION_EVENT)

        if event.item.type != MESSAGE_ITEM:
            return RoutingDecision.ignore(IgnoreReason.NON_MESSAGE_ITEM)

        if is_automated(envelope):
            return RoutingDecision.ignore(IgnoreReason.AUTOMATED_ORIGINATOR)

        if event.reaction == DELETE_NOW_REACTION:
            return RoutingDecision.delete_now(event.item.channel, event.item.ts)

        if event.reaction == TIME_BOMB_REACTION:
            return RoutingDecision.schedule_delete(
                event.item.channel, event.item.ts, self.ttl_seconds,
            )

        return RoutingDecision.ignore(IgnoreReason.UNSUPPORTED_REACTION)
