"""
Push delivery through the Expo push API.

One message per call, no retries. Anything other than a clean "ok" ticket
raises PushDeliveryError so the caller can log it per recipient.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import httpx
from loguru import logger

from pingradius.core.config import EXPO_PUSH_URL, PUSH_TIMEOUT_SECONDS
from pingradius.core.errors import PushDeliveryError


def is_expo_token(token: str | None) -> bool:
    return bool(token) and (
        token.startswith("ExponentPushToken[") or token.startswith("ExpoPushToken[")
    )


@dataclass
class PushMessage:
    to: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    sound: Optional[str] = "default"
    priority: str = "high"

    def to_expo(self) -> Dict[str, Any]:
        msg: Dict[str, Any] = {
            "to": self.to,
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "priority": self.priority,
        }
        if self.sound:
            msg["sound"] = self.sound
        return msg


class PushGateway(Protocol):
    async def send(self, message: PushMessage) -> Dict[str, Any]:
        ...


class ExpoPushGateway:
    def __init__(
        self,
        url: str = EXPO_PUSH_URL,
        timeout: float = PUSH_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    async def _post(self, client: httpx.AsyncClient, payload: Dict[str, Any]) -> httpx.Response:
        try:
            return await client.post(
                self.url,
                json=payload,
                headers={
                    "Accept": "application/json",
                    "Accept-Encoding": "gzip, deflate",
                },
            )
        except httpx.HTTPError as e:
            raise PushDeliveryError(f"Expo push transport error: {e}") from e

    async def send(self, message: PushMessage) -> Dict[str, Any]:
        if self._client is not None:
            resp = await self._post(self._client, message.to_expo())
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await self._post(client, message.to_expo())

        try:
            data = resp.json()
        except ValueError:
            raise PushDeliveryError("Expo returned non-JSON response")

        if resp.status_code >= 400:
            raise PushDeliveryError(f"Expo push failed: {resp.status_code} {data}")

        ticket = data.get("data") if isinstance(data, dict) else None
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else None
        if isinstance(ticket, dict) and ticket.get("status") == "error":
            raise PushDeliveryError(f"Expo rejected message: {ticket.get('message')}")

        logger.debug(f"[push] sent | to={message.to[:24]}... ticket={ticket}")
        return data
