"""Shared test fixtures for the reaction relay."""
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from channels.slack_client import MessageDeleter
from core.classifier import EventClassifier
from core.dispatcher import ActionDispatcher
from core.loop import DispatchLoop
from job_queue.pubsub import InMemoryPubSub

TIMEBOMB_CHANNEL = "timebomb-messages"
INBOUND_CHANNEL = "slack-relay-reaction-added"


def make_envelope(
    reaction: str = "wastebasket",
    event_type: str = "reaction_added",
    item_type: str = "message",
    channel: str = "C1",
    ts: str = "100.1",
    user: str = "U_HUMAN",
    authorizations: list[dict[str, Any]] = None,
) -> dict[str, Any]:
    """A realistic relayed Slack Events API envelope."""
    if authorizations is None:
        authorizations = [{"user_id": "U_APP", "is_bot": True}]
    return {
        "token": "verification-token",
        "team_id": "T001",
        "api_app_id": "A001",
        "type": "event_callback",
        "event": {
            "type": event_type,
            "user": user,
            "reaction": reaction,
            "item": {"type": item_type, "channel": channel, "ts": ts},
            "item_user": "U_AUTHOR",
            "event_ts": "100.2",
        },
        "authorizations": authorizations,
    }


def make_payload(**kwargs) -> str:
    return json.dumps(make_envelope(**kwargs))


@pytest.fixture
def log() -> MagicMock:
    return MagicMock()


@pytest.fixture
def deleter() -> AsyncMock:
    mock = AsyncMock(spec=MessageDeleter)
    mock.delete_message.return_value = {"ok": True}
    return mock


@pytest.fixture
def bus(log) -> InMemoryPubSub:
    return InMemoryPubSub(logger=log)


@pytest.fixture
def classifier() -> EventClassifier:
    return EventClassifier(ttl_seconds=5)


@pytest.fixture
def dispatcher(deleter, bus, log) -> ActionDispatcher:
    return ActionDispatcher(deleter, bus, TIMEBOMB_CHANNEL, logger=log)


@pytest.fixture
def make_loop(classifier, dispatcher, log):
    def _make(subscription):
        return DispatchLoop(subscription, classifier, dispatcher, logger=log)
    return _make
