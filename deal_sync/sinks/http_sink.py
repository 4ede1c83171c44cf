"""Push reconciled deals to the remote deals API."""

from __future__ import annotations

import httpx
import structlog

from ..config import LiveApiConfig
from ..engine.records import Record
from ..errors import TransportError
from .base import BaseUpdateSink


class HttpUpdateSink(BaseUpdateSink):
    """POST each record as JSON to ``{base_url}{deals_path}``."""

    def __init__(
        self,
        config: LiveApiConfig,
        api_token: str,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.api_token = api_token
        self.logger = logger or structlog.get_logger("deal_sync.sink")
        # shared by all dispatcher workers
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout)

    def send(self, record: Record) -> int:
        try:
            response = self._client.post(
                self.config.deals_url,
                params={"api_token": self.api_token},
                json=record.to_payload(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        self.logger.debug("deal_posted", title=record.title, status=response.status_code)
        return response.status_code

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


__all__ = ["HttpUpdateSink"]
