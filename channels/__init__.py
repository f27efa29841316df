"""Outbound capabilities — Slack message deletion."""
from channels.slack_client import MessageDeleter, SlackAPIError, SlackClient, create_slack_client

__all__ = ["MessageDeleter", "SlackAPIError", "SlackClient", "create_slack_client"]
