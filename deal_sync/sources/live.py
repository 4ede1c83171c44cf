"""Live snapshot loader: paginated JSON deals endpoint."""

from __future__ import annotations

import math
from typing import Any

import httpx
import structlog

from ..config import LiveApiConfig
from ..engine.reconciler import duplicate_titles
from ..engine.records import Record
from ..errors import LoadError

SOURCE_NAME = "live"


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_deal(item: Any) -> Record:
    """Turn one element of the ``data`` array into a record."""

    if not isinstance(item, dict):
        raise LoadError(SOURCE_NAME, f"Deal entry must be an object, got {type(item).__name__}")
    title = item.get("title")
    if not isinstance(title, str) or not title.strip():
        raise LoadError(SOURCE_NAME, f"Deal entry without a title: {item!r}")
    raw_value = item.get("value")
    value: float | None = None
    if raw_value is not None:
        if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
            raise LoadError(SOURCE_NAME, f"Deal {title!r} has a non-numeric value: {raw_value!r}")
        value = float(raw_value)
        if not math.isfinite(value):
            raise LoadError(SOURCE_NAME, f"Deal {title!r} has a non-finite value: {raw_value!r}")
    return Record(
        title=title.strip(),
        value=value,
        currency=_optional_text(item.get("currency")),
        status=_optional_text(item.get("status")),
    )


def parse_page(document: Any) -> tuple[list[Record], int | None]:
    """Return the records of one page and the ``start`` of the next page, if any."""

    if not isinstance(document, dict) or "data" not in document:
        raise LoadError(SOURCE_NAME, "Response has no top-level 'data' field")
    data = document["data"]
    if data is None:
        data = []
    if not isinstance(data, list):
        raise LoadError(SOURCE_NAME, "'data' must be an array")
    records = [parse_deal(item) for item in data]

    pagination = (document.get("additional_data") or {}).get("pagination") or {}
    if not pagination.get("more_items_in_collection"):
        return records, None
    next_start = pagination.get("next_start")
    if not isinstance(next_start, int) or isinstance(next_start, bool):
        raise LoadError(
            SOURCE_NAME, f"More deals announced without a usable next_start: {next_start!r}"
        )
    return records, next_start


class LiveLoader:
    """Read every page of the deals collection."""

    def __init__(
        self,
        config: LiveApiConfig,
        api_token: str,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.api_token = api_token
        self.logger = logger or structlog.get_logger("deal_sync.live")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout, follow_redirects=True)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch_page(self, start: int) -> Any:
        params = {"api_token": self.api_token, "start": start, "limit": self.config.page_limit}
        try:
            response = self._client.get(self.config.deals_url, params=params)
        except httpx.HTTPError as exc:
            raise LoadError(SOURCE_NAME, f"Unable to download deals: {exc}") from exc
        if response.status_code >= 400:
            raise LoadError(
                SOURCE_NAME, f"Deals endpoint answered HTTP {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise LoadError(SOURCE_NAME, f"Unable to parse json: {exc}") from exc

    def load(self) -> list[Record]:
        records: list[Record] = []
        start: int | None = 0
        pages = 0
        while start is not None:
            if self.config.max_pages is not None and pages >= self.config.max_pages:
                self.logger.error("live_page_cap_reached", max_pages=self.config.max_pages, start=start)
                raise LoadError(
                    SOURCE_NAME,
                    f"More deals remain after max_pages={self.config.max_pages}, refusing a partial snapshot",
                )
            page_records, next_start = parse_page(self.fetch_page(start))
            pages += 1
            records.extend(page_records)
            self.logger.debug("live_page_loaded", start=start, records=len(page_records))
            if next_start is not None and next_start <= start:
                raise LoadError(SOURCE_NAME, f"Pagination did not advance past start={start}")
            start = next_start
        duplicates = duplicate_titles(records)
        if duplicates:
            self.logger.warning("live_duplicate_titles", titles=duplicates)
        self.logger.info("live_loaded", records=len(records), pages=pages)
        return records


__all__ = ["LiveLoader", "parse_deal", "parse_page"]
