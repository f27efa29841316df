#!/usr/bin/env python3
"""
Send Reaction — Publish a sample reaction_added envelope onto the inbound channel.

Handy for exercising a running relay without Slack.

Usage:
    python scripts/send_reaction.py --channel C123 --ts 1700000000.000100
    python scripts/send_reaction.py --channel C123 --ts 1700000000.000100 --reaction bomb
    python scripts/send_reaction.py --channel C123 --ts 1.1 --bot     # should be ignored
"""
import argparse
import asyncio
import json
import os
import sys

# Ensure app root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def build_envelope(channel: str, ts: str, reaction: str = "wastebasket",
                   user: str = "U_TEST", is_bot: bool = False,
                   item_type: str = "message") -> dict:
    return {
        "type": "event_callback",
        "event": {
            "type": "reaction_added",
            "user": user,
            "reaction": reaction,
            "item": {"type": item_type, "channel": channel, "ts": ts},
        },
        "authorizations": [{"user_id": user, "is_bot": is_bot}],
    }


async def send(args) -> int:
    from dotenv import load_dotenv
    load_dotenv()

    from config.settings import load_settings
    from job_queue.pubsub import RedisPubSub

    settings = load_settings(args.config)
    bus = RedisPubSub(settings.redis)
    await bus.connect()
    try:
        payload = json.dumps(build_envelope(
            args.channel, args.ts, args.reaction,
            user=args.user, is_bot=args.bot, item_type=args.item_type,
        ))
        receivers = await bus.publish(settings.relay.inbound_channel, payload)
    finally:
        await bus.close()

    print(f"Published to {settings.relay.inbound_channel} ({receivers} subscriber(s))")
    print(payload)
    return 0 if receivers else 2


def main():
    parser = argparse.ArgumentParser(description="Publish a sample reaction event")
    parser.add_argument("--config", default=None, help="Path to settings YAML")
    parser.add_argument("--channel", required=True, help="Slack channel id")
    parser.add_argument("--ts", required=True, help="Message timestamp")
    parser.add_argument("--reaction", default="wastebasket", help="Reaction name")
    parser.add_argument("--user", default="U_TEST", help="Reacting user id")
    parser.add_argument("--item-type", default="message", help="Reacted item type")
    parser.add_argument("--bot", action="store_true", help="Mark the reacting user as a bot")
    args = parser.parse_args()

    sys.exit(asyncio.run(send(args)))


if __name__ == "__main__":
    main()
