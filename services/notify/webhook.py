"""Outbound chat-ops webhook and the local outbox used when it fails."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import requests

LOGGER = logging.getLogger(__name__)


class WebhookClient:
    """POST alert payloads to an incoming-webhook URL."""

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def post(self, payload: Dict[str, Any]) -> bool:
        """Send `payload`; True only for a 2xx response. Never raises."""
        if not self.url:
            LOGGER.info("Webhook URL not configured; alert not sent")
            return False
        try:
            # requests is blocking -> run in thread
            response = await asyncio.to_thread(self.session.post, self.url, json=payload, timeout=self.timeout)
        except Exception as exc:
            LOGGER.error("Webhook request failed: %s", exc)
            return False
        if not 200 <= response.status_code < 300:
            LOGGER.error("Webhook rejected alert with status %s", response.status_code)
            return False
        return True


class AlertOutbox:
    """Structured local record of alerts that could not be delivered."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path

    async def record(self, entry: Dict[str, Any]) -> None:
        line = json.dumps({"event": "notification.undelivered", **entry}, default=str, ensure_ascii=False)
        LOGGER.warning(line)
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(line + "\n")
        except OSError as exc:
            LOGGER.error("Could not write alert outbox %s: %s", self.path, exc)
