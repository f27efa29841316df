"""
Action Dispatcher — executes a RoutingDecision.

At most one side effect per decision: a chat.delete call for DELETE_NOW,
or a single publish to the TimeBomb channel for SCHEDULE_DELETE. Failures
are logged and reported in the outcome; nothing is retried here and
nothing is re-queued.
"""
from __future__ import annotations

import structlog
from dataclasses import dataclass
from enum import Enum

from channels.slack_client import MessageDeleter
from core.classifier import RoutingAction, RoutingDecision
from job_queue.pubsub import PubSub
from models.schemas import TimeBombMessage


class DispatchStatus(str, Enum):
    IGNORED = "ignored"
    DELETED = "deleted"
    SCHEDULED = "scheduled"
    FAILED = "failed"


class DispatchFailure(Exception):
    """The delete call or the TimeBomb publish did not succeed."""

    def __init__(self, action: RoutingAction, message: str):
        self.action = action
        super().__init__(message)


@dataclass
class DispatchOutcome:
    status: DispatchStatus
    decision: RoutingDecision
    error: str = ""
    receivers: int = 0        # TimeBomb subscribers reached by the publish

    @property
    def ok(self) -> bool:
        return self.status != DispatchStatus.FAILED


class ActionDispatcher:
    """
    Usage:
        dispatcher = ActionDispatcher(slack_client, pubsub, "timebomb-messages")
        outcome = await dispatcher.dispatch(decision)
    """

    def __init__(self, deleter: MessageDeleter, pubsub: PubSub, timebomb_channel: str, logger=None):
        self.deleter = deleter
        self.pubsub = pubsub
        self.timebomb_channel = timebomb_channel
        self.log = logger or structlog.get_logger()

    async def dispatch(self, decision: RoutingDecision) -> DispatchOutcome:
        try:
            if decision.action == RoutingAction.DELETE_NOW:
                return await self._delete_now(decision)
            if decision.action == RoutingAction.SCHEDULE_DELETE:
                return await self._schedule_delete(decision)
        except DispatchFailure as e:
            self.log.error("dispatch_failed",
                           action=e.action.value,
                           channel=decision.channel,
                           ts=decision.ts,
                           error=str(e))
            return DispatchOutcome(DispatchStatus.FAILED, decision, error=str(e))

        self.log.debug("event_ignored", reason=decision.reason)
        return DispatchOutcome(DispatchStatus.IGNORED, decision)

    async def _delete_now(self, decision: RoutingDecision) -> DispatchOutcome:
        self.log.info("deleting_message", channel=decision.channel, ts=decision.ts)
        try:
            await self.deleter.delete_message(decision.channel, decision.ts)
        except Exception as e:
            raise DispatchFailure(decision.action, f"error deleting message: {e}") from e

        self.log.info("message_deleted", channel=decision.channel, ts=decision.ts)
        return DispatchOutcome(DispatchStatus.DELETED, decision)

    async def _schedule_delete(self, decision: RoutingDecision) -> DispatchOutcome:
        try:
            payload = TimeBombMessage(
                channel=decision.channel, ts=decision.ts, ttl=decision.ttl,
            ).to_json()
        except (TypeError, ValueError) as e:
            raise DispatchFailure(decision.action, f"error encoding TimeBomb message: {e}") from e

        try:
            receivers = await self.pubsub.publish(self.timebomb_channel, payload)
        except Exception as e:
            raise DispatchFailure(decision.action, f"error publishing to TimeBomb: {e}") from e

        self.log.info("timebomb_published",
                      channel=decision.channel,
                      ts=decision.ts,
                      ttl=decision.ttl,
                      receivers=receivers)
        return DispatchOutcome(DispatchStatus.SCHEDULED, decision, receivers=receivers)
