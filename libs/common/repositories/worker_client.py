"""HTTP access to the storage worker that fronts the managed database."""

from __future__ import annotations

from typing import Dict, Optional

import httpx


class WorkerClient:
    """Thin synchronous client shared by the worker-backed repositories."""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers: Dict[str, str] = {}
        if api_token:
            self.headers["Authorization"] = f"Bearer {api_token}"

    def request(self, method: str, path: str, **kwargs) -> dict:
        """Send HTTP request to worker API."""
        headers = kwargs.pop("headers", {})
        headers.update(self.headers)
        url = f"{self.base_url}{path}"
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()


__all__ = ["WorkerClient"]
