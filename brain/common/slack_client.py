"""
Slack Web API client

Outbound side of the Slack integration: post (threaded) messages, add
reactions, pin messages. Uses the bot token against the Web API over httpx.
"""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger("brain.common.slack_client")

SLACK_API_BASE = "https://slack.com/api"


class SlackAPIError(Exception):
    """Slack answered with ok=false or an HTTP error."""

    def __init__(self, method: str, error: str):
        super().__init__(f"{method} failed: {error}")
        self.method = method
        self.error = error


class SlackClient:
    """
    Async Slack Web API client.

    Without a bot token the client is unavailable: every call logs an
    error and returns None instead of raising, so local setups can run
    the pipeline without a workspace.

    Usage:
        client = SlackClient(bot_token="xoxb-...")
        ts = await client.post_message("C123", "hello", thread_ts="1700000000.0001")
        await client.add_reaction("C123", ts, "white_check_mark")
        await client.close()
    """

    def __init__(
        self,
        bot_token: str = "",
        base_url: str = SLACK_API_BASE,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._bot_token = bot_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def is_available(self) -> bool:
        return bool(self._bot_token)

    def _ensure_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                headers={"Authorization": f"Bearer {self._bot_token}"},
                transport=self._transport,
            )
        return self._http

    async def _call(self, method: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.is_available:
            logger.error("Slack client not initialized - SLACK_BOT_TOKEN missing (%s)", method)
            return None

        http = self._ensure_http()
        try:
            response = await http.post(f"/{method}", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SlackAPIError(method, str(e)) from e

        data = response.json()
        if not data.get("ok"):
            raise SlackAPIError(method, data.get("error", "unknown_error"))
        return data

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
    ) -> Optional[str]:
        """Send a message, optionally as a thread reply. Returns its ts."""
        payload: Dict[str, Any] = {"channel": channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts
        data = await self._call("chat.postMessage", payload)
        return data.get("ts") if data else None

    async def add_reaction(self, channel: str, timestamp: str, name: str) -> bool:
        data = await self._call(
            "reactions.add",
            {"channel": channel, "timestamp": timestamp, "name": name},
        )
        return data is not None

    async def pin_message(self, channel: str, timestamp: str) -> bool:
        data = await self._call("pins.add", {"channel": channel, "timestamp": timestamp})
        return data is not None

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
