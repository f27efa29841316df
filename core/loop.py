"""
Dispatch Loop — pulls payloads off the inbound subscription and runs
decode → classify → dispatch for each, one at a time, in receipt order.

Cancellation is cooperative: the stop event is raced against the next
payload only while the loop is idle, so an in-flight delete/publish always
completes before the loop exits.
"""
from __future__ import annotations

import asyncio
import structlog
from enum import Enum
from typing import Optional

from core.classifier import EventClassifier
from core.decoder import DecodeError, decode
from core.dispatcher import ActionDispatcher, DispatchOutcome
from job_queue.pubsub import Subscription


class LoopState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class DispatchLoop:

    def __init__(
        self,
        subscription: Subscription,
        classifier: EventClassifier,
        dispatcher: ActionDispatcher,
        logger=None,
    ):
        self.subscription = subscription
        self.classifier = classifier
        self.dispatcher = dispatcher
        self.log = logger or structlog.get_logger()
        self.state = LoopState.STOPPED
        self.processed = 0

    async def handle_payload(self, raw: str | bytes) -> Optional[DispatchOutcome]:
        """Process one payload. Never raises; returns None if it was dropped before dispatch."""
        self.processed += 1
        try:
            envelope = decode(raw)
        except DecodeError as e:
            self.log.error("payload_decode_failed", error=str(e))
            return None

        try:
            decision = self.classifier.classify(envelope)
            outcome = await self.dispatcher.dispatch(decision)
        except Exception as e:
            self.log.error("payload_processing_error", error=str(e), exc_info=True)
            return None

        return outcome

    async def run(self, stop_event: asyncio.Event):
        """Block until stop_event is set or the inbound channel closes."""
        self.state = LoopState.RUNNING
        self.log.info("dispatch_loop_started", channel=self.subscription.channel)
        stop_task = asyncio.create_task(stop_event.wait())
        try:
            while True:
                get_task = asyncio.create_task(self.subscription.get())
                done, _ = await asyncio.wait(
                    {get_task, stop_task}, return_when=asyncio.FIRST_COMPLETED,
                )

                if stop_task in done:
                    get_task.cancel()
                    await asyncio.gather(get_task, return_exceptions=True)
                    self.log.info("dispatch_loop_cancelled")
                    break

                try:
                    payload = get_task.result()
                except Exception as e:
                    self.log.error("inbound_receive_failed", error=str(e))
                    break

                if payload is None:
                    self.log.info("inbound_channel_closed", channel=self.subscription.channel)
                    break

                await self.handle_payload(payload)
        finally:
            if not stop_task.done():
                stop_task.cancel()
                await asyncio.gather(stop_task, return_exceptions=True)
            self.state = LoopState.STOPPED
            self.log.info("dispatch_loop_stopped", processed=self.processed)
