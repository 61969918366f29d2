"""Thin JSON-over-HTTP poster shared by the push, SMS and webhook channels.

Uses raw HTTP POST via requests. One attempt per call, no retries; callers
rely on the bounded timeout to keep a slow gateway from holding a worker.
"""
import logging
import requests

from alerts.errors import DispatchError

logger = logging.getLogger("netalert.notifications.http")


class HTTPGateway:
    def __init__(self, url: str, timeout: float = 10, headers: dict = None, name: str = "gateway"):
        self.url = url
        self.timeout = timeout
        self.name = name
        self.headers = {"User-Agent": "NetAlert/1.0", **(headers or {})}

    def is_configured(self) -> bool:
        return bool(self.url)

    def post(self, payload: dict, url: str = None) -> dict:
        """POST payload as JSON. Raises DispatchError on any transport or HTTP failure."""
        target = url or self.url
        if not target:
            raise DispatchError(f"{self.name}: no URL configured")
        try:
            resp = requests.post(target, json=payload, headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise DispatchError(f"{self.name} POST to {target} failed: {e}") from e

        logger.debug(f"{self.name} POST {target} -> {resp.status_code}")
        try:
            return resp.json()
        except ValueError:
            return {"status_code": resp.status_code}
