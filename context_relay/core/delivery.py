"""Delivery targets: hand injection text to whatever pastes it into a page."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class HttpDeliveryTarget:
    """POST ``{text, platform, method}`` to a local paste agent.

    Success is any 2xx response. Transport errors and other statuses are
    logged and reported as False.
    """

    def __init__(self, url: str, timeout: float = 10.0, method: str = "user_message") -> None:
        self.url = url
        self.timeout = timeout
        self.method = method

    def deliver(self, text: str, platform: str) -> bool:
        payload = {"text": text, "platform": platform, "method": self.method}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.warning("Delivery to %s failed: %s", self.url, e)
            return False
        if not response.is_success:
            logger.warning("Delivery to %s rejected: HTTP %d", self.url, response.status_code)
            return False
        return True
