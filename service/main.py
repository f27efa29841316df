"""
Reaction relay — process entry point.

Subscribes to the Slack reaction events relayed onto Redis and:
- :wastebasket: on a message → delete it now via chat.delete
- :bomb: on a message        → hand it to TimeBomb for deferred deletion

Usage:
    reaction-relay
    reaction-relay --config config/settings.yaml --log-level debug
"""
from __future__ import annotations

import argparse
import asyncio
import signal
import sys

from dotenv import load_dotenv

from config.settings import ConfigurationError, Settings, load_settings
from channels.slack_client import create_slack_client
from core.classifier import EventClassifier
from core.dispatcher import ActionDispatcher
from core.loop import DispatchLoop
from job_queue.pubsub import create_pubsub
from utils.logging import make_logger


async def run(settings: Settings, log, stop_event: asyncio.Event = None) -> int:
    if stop_event is None:
        stop_event = asyncio.Event()

    pubsub = create_pubsub(settings.redis, logger=log)
    try:
        await pubsub.connect()
    except ConfigurationError as e:
        log.critical("startup_failed", error=str(e))
        await pubsub.close()
        return 1

    slack = None
    subscription = None
    loop = asyncio.get_running_loop()
    installed = []
    try:
        slack = create_slack_client(settings.slack, logger=log)
        subscription = await pubsub.subscribe(settings.relay.inbound_channel)

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _request_stop, stop_event, log)
                installed.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                pass  # not supported on this platform / not the main thread

        dispatch_loop = DispatchLoop(
            subscription,
            EventClassifier(ttl_seconds=settings.relay.timebomb_ttl_seconds),
            ActionDispatcher(slack, pubsub, settings.relay.timebomb_channel, logger=log),
            logger=log,
        )
        log.info("waiting_for_reaction_events",
                 inbound=settings.relay.inbound_channel,
                 timebomb=settings.relay.timebomb_channel,
                 ttl=settings.relay.timebomb_ttl_seconds)
        await dispatch_loop.run(stop_event)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        try:
            if subscription is not None:
                await subscription.close()
        finally:
            await pubsub.close()
            if slack is not None:
                await slack.close()
    return 0


def _request_stop(stop_event: asyncio.Event, log):
    log.info("shutting_down")
    stop_event.set()


def main(argv: list[str] = None) -> int:
    parser = argparse.ArgumentParser(description="Slack reaction relay")
    parser.add_argument("--config", default=None, help="Path to settings YAML")
    parser.add_argument("--log-level", default=None, help="debug|info|warning|error")
    args = parser.parse_args(argv)

    load_dotenv()
    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        make_logger("info", "console").critical("invalid_configuration", error=str(e))
        return 1
    if args.log_level:
        settings.log_level = args.log_level

    try:
        log = make_logger(settings.log_level, settings.log_format, app=settings.app_name)
    except ValueError as e:
        parser.error(str(e))

    try:
        settings.validate()
    except ConfigurationError as e:
        log.critical("invalid_configuration", error=str(e))
        return 1

    return asyncio.run(run(settings, log))


if __name__ == "__main__":
    sys.exit(main())
