"""
Tests for the action dispatcher and the end-to-end handling of one payload.

Scenarios:
  A  wastebasket on a human's message  → one delete, no publish
  B  bomb on a human's message         → one publish with ttl=5, no delete
  C  bomb by a bot                     → nothing
  D  unparseable payload               → nothing, one decode error logged
  E  unsupported reaction              → nothing, reason "unsupported reaction"
"""
import json
from unittest.mock import AsyncMock

import pytest

from channels.slack_client import SlackAPIError
from core.classifier import RoutingAction, RoutingDecision, IgnoreReason
from core.dispatcher import ActionDispatcher, DispatchFailure, DispatchStatus
from job_queue.pubsub import InMemorySubscription
from tests.conftest import TIMEBOMB_CHANNEL, make_payload


def error_events(log) -> list[str]:
    return [c.args[0] for c in log.error.call_args_list]


class TestActionDispatcher:
    @pytest.mark.asyncio
    async def test_delete_now(self, dispatcher, deleter, bus):
        outcome = await dispatcher.dispatch(RoutingDecision.delete_now("C1", "100.1"))
        assert outcome.status == DispatchStatus.DELETED
        assert outcome.ok
        deleter.delete_message.assert_awaited_once_with("C1", "100.1")
        assert bus.published == []

    @pytest.mark.asyncio
    async def test_schedule_delete(self, dispatcher, deleter, bus):
        outcome = await dispatcher.dispatch(RoutingDecision.schedule_delete("C1", "100.1", 5))
        assert outcome.status == DispatchStatus.SCHEDULED
        assert bus.published == [(TIMEBOMB_CHANNEL, '{"channel":"C1","ts":"100.1","ttl":5}')]
        deleter.delete_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_schedule_reports_receivers(self, dispatcher, bus):
        await bus.subscribe(TIMEBOMB_CHANNEL)
        outcome = await dispatcher.dispatch(RoutingDecision.schedule_delete("C1", "1.0", 5))
        assert outcome.receivers == 1

    @pytest.mark.asyncio
    async def test_ignore_has_no_side_effects(self, dispatcher, deleter, bus, log):
        decision = RoutingDecision.ignore(IgnoreReason.UNSUPPORTED_REACTION)
        outcome = await dispatcher.dispatch(decision)
        assert outcome.status == DispatchStatus.IGNORED
        assert outcome.decision.reason == "unsupported reaction"
        deleter.delete_message.assert_not_awaited()
        assert bus.published == []
        log.debug.assert_called_once_with("event_ignored", reason="unsupported reaction")
        log.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_failure_is_reported_not_raised(self, dispatcher, deleter, bus, log):
        deleter.delete_message.side_effect = SlackAPIError("chat.delete failed: message_not_found",
                                                           error="message_not_found")
        outcome = await dispatcher.dispatch(RoutingDecision.delete_now("C1", "100.1"))
        assert outcome.status == DispatchStatus.FAILED
        assert not outcome.ok
        assert "message_not_found" in outcome.error
        assert deleter.delete_message.await_count == 1
        assert bus.published == []
        assert error_events(log) == ["dispatch_failed"]

    @pytest.mark.asyncio
    async def test_publish_failure_is_reported_not_raised(self, deleter, log):
        broken_bus = AsyncMock()
        broken_bus.publish.side_effect = ConnectionError("redis gone")
        dispatcher = ActionDispatcher(deleter, broken_bus, TIMEBOMB_CHANNEL, logger=log)

        outcome = await dispatcher.dispatch(RoutingDecision.schedule_delete("C1", "100.1", 5))
        assert outcome.status == DispatchStatus.FAILED
        assert "redis gone" in outcome.error
        broken_bus.publish.assert_awaited_once()
        deleter.delete_message.assert_not_awaited()
        assert error_events(log) == ["dispatch_failed"]

    def test_dispatch_failure_carries_action(self):
        err = DispatchFailure(RoutingAction.DELETE_NOW, "boom")
        assert err.action == RoutingAction.DELETE_NOW
        assert str(err) == "boom"


class TestScenarios:
    @pytest.mark.asyncio
    async def test_a_wastebasket_deletes_once(self, make_loop, deleter, bus):
        loop = make_loop(InMemorySubscription(bus, "in"))
        outcome = await loop.handle_payload(make_payload(reaction="wastebasket", channel="C7", ts="9.9"))
        assert outcome.status == DispatchStatus.DELETED
        deleter.delete_message.assert_awaited_once_with("C7", "9.9")
        assert bus.published == []

    @pytest.mark.asyncio
    async def test_b_bomb_publishes_once_with_ttl(self, make_loop, deleter, bus):
        loop = make_loop(InMemorySubscription(bus, "in"))
        outcome = await loop.handle_payload(make_payload(reaction="bomb", channel="C7", ts="9.9"))
        assert outcome.status == DispatchStatus.SCHEDULED
        published = bus.published_to(TIMEBOMB_CHANNEL)
        assert len(published) == 1
        assert json.loads(published[0]) == {"channel": "C7", "ts": "9.9", "ttl": 5}
        deleter.delete_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_c_bot_bomb_does_nothing(self, make_loop, deleter, bus):
        loop = make_loop(InMemorySubscription(bus, "in"))
        outcome = await loop.handle_payload(make_payload(
            reaction="bomb", user="U_BOT",
            authorizations=[{"user_id": "U_BOT", "is_bot": True}],
        ))
        assert outcome.status == DispatchStatus.IGNORED
        assert outcome.decision.reason == "automated originator"
        deleter.delete_message.assert_not_awaited()
        assert bus.published == []

    @pytest.mark.asyncio
    async def test_d_malformed_payload_logs_one_decode_error(self, make_loop, deleter, bus, log):
        loop = make_loop(InMemorySubscription(bus, "in"))
        outcome = await loop.handle_payload("{this is not json")
        assert outcome is None
        deleter.delete_message.assert_not_awaited()
        assert bus.published == []
        assert error_events(log) == ["payload_decode_failed"]

    @pytest.mark.asyncio
    async def test_e_unsupported_reaction(self, make_loop, deleter, bus):
        loop = make_loop(InMemorySubscription(bus, "in"))
        outcome = await loop.handle_payload(make_payload(reaction="eyes"))
        assert outcome.status == DispatchStatus.IGNORED
        assert outcome.decision.reason == "unsupported reaction"
        deleter.delete_message.assert_not_awaited()
        assert bus.published == []
