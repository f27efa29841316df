"""
Slack Web API client — the message deletion capability.

Only chat.delete is needed. Slack answers HTTP 200 with {"ok": false,
"error": "..."} for API-level failures, so both the HTTP status and the
`ok` flag are checked.
"""
from __future__ import annotations

import abc
import structlog
from typing import Any

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from config.settings import SlackConfig

RETRYABLE_API_ERRORS = {"ratelimited", "internal_error", "fatal_error", "service_unavailable"}


class SlackAPIError(Exception):
    """chat.delete did not succeed."""

    def __init__(self, message: str, error: str = "", retryable: bool = False):
        self.error = error
        self.retryable = retryable
        super().__init__(message)


class MessageDeleter(abc.ABC):
    """delete(channel, ts) → ok | raises."""

    @abc.abstractmethod
    async def delete_message(self, channel: str, ts: str):
        ...

    async def close(self):
        pass


class SlackClient(MessageDeleter):

    def __init__(self, config: SlackConfig, transport: httpx.AsyncBaseTransport = None, logger=None):
        self.config = config
        self.log = logger or structlog.get_logger()
        self._transport = transport
        self._client: httpx.AsyncClient = None
        self._delete = retry(
            stop=stop_after_attempt(max(1, config.max_attempts)),
            wait=wait_exponential(multiplier=1, max=10),
            retry=retry_if_exception(lambda e: isinstance(e, SlackAPIError) and e.retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )(self._delete_once)

    def _log_retry(self, retry_state):
        self.log.warning("slack_delete_retry",
                         attempt=retry_state.attempt_number,
                         error=str(retry_state.outcome.exception()))

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_base_url,
                headers={"Authorization": f"Bearer {self.config.bot_token}"},
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def delete_message(self, channel: str, ts: str) -> dict[str, Any]:
        return await self._delete(channel, ts)

    async def _delete_once(self, channel: str, ts: str) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.post("/chat.delete", json={"channel": channel, "ts": ts})
        except httpx.HTTPError as e:
            raise SlackAPIError(f"chat.delete transport error: {e}", retryable=True) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise SlackAPIError(
                f"chat.delete returned HTTP {response.status_code}",
                error=f"http_{response.status_code}", retryable=True,
            )
        if response.status_code >= 400:
            raise SlackAPIError(
                f"chat.delete returned HTTP {response.status_code}",
                error=f"http_{response.status_code}",
            )

        try:
            body = response.json()
        except ValueError as e:
            raise SlackAPIError("chat.delete returned a non-JSON body") from e

        if not body.get("ok", False):
            error = body.get("error", "unknown_error")
            raise SlackAPIError(
                f"chat.delete failed: {error}",
                error=error, retryable=error in RETRYABLE_API_ERRORS,
            )
        return body

    async def close(self):
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()


def create_slack_client(config: SlackConfig, logger=None) -> SlackClient:
    return SlackClient(config, logger=logger)
