"""Bulk snapshot loader: gzip-compressed CSV export stored in S3."""

from __future__ import annotations

import csv
import gzip
import io
import math
import zlib
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..config import BulkSourceConfig, Credentials
from ..engine.reconciler import duplicate_titles
from ..engine.records import Record
from ..errors import LoadError

SOURCE_NAME = "bulk"
# title, currency, value, status
EXPECTED_COLUMNS = 4


def _optional(text: str) -> str | None:
    text = text.strip()
    return text or None


def parse_bulk_payload(payload: bytes, value_multiplier: float) -> list[Record]:
    """Decode a gzip CSV export into records.

    The first row is a header and is skipped; columns are read by position.
    Every value is multiplied by ``value_multiplier``.
    """

    try:
        text = gzip.decompress(payload).decode("utf-8-sig")
    except (OSError, EOFError, zlib.error) as exc:
        raise LoadError(SOURCE_NAME, f"Unable to read gzip: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise LoadError(SOURCE_NAME, f"Export is not valid UTF-8: {exc}") from exc

    try:
        rows = list(csv.reader(io.StringIO(text)))
    except csv.Error as exc:
        raise LoadError(SOURCE_NAME, f"Unable to read csv: {exc}") from exc

    records: list[Record] = []
    for line_no, row in enumerate(rows[1:], start=2):
        if not row or not any(cell.strip() for cell in row):
            continue
        if len(row) < EXPECTED_COLUMNS:
            raise LoadError(
                SOURCE_NAME,
                f"Row {line_no} has {len(row)} columns, expected {EXPECTED_COLUMNS}",
            )
        title = row[0].strip()
        if not title:
            raise LoadError(SOURCE_NAME, f"Row {line_no} has an empty title")
        try:
            value = float(row[2])
        except ValueError as exc:
            raise LoadError(
                SOURCE_NAME, f"Unable to parse value {row[2]!r} on row {line_no}"
            ) from exc
        if not math.isfinite(value):
            raise LoadError(SOURCE_NAME, f"Non-finite value {row[2]!r} on row {line_no}")
        records.append(
            Record(
                title=title,
                currency=_optional(row[1]),
                value=value * value_multiplier,
                status=_optional(row[3]),
            )
        )
    return records


class BulkLoader:
    """Download and decode the bulk export."""

    def __init__(
        self,
        config: BulkSourceConfig,
        credentials: Credentials | None = None,
        client: Any | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self.logger = logger or structlog.get_logger("deal_sync.bulk")
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            kwargs: dict[str, Any] = {"region_name": self.config.region}
            if self.credentials is not None and self.credentials.aws_access_key_id:
                kwargs.update(
                    aws_access_key_id=self.credentials.aws_access_key_id,
                    aws_secret_access_key=self.credentials.aws_secret_access_key,
                    aws_session_token=self.credentials.aws_session_token,
                )
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def download(self) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.config.bucket, Key=self.config.key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise LoadError(
                SOURCE_NAME, f"Unable to download item {self.config.key!r}: {exc}"
            ) from exc

    def load(self) -> list[Record]:
        payload = self.download()
        self.logger.info(
            "bulk_downloaded",
            bucket=self.config.bucket,
            key=self.config.key,
            size=len(payload),
        )
        records = parse_bulk_payload(payload, self.config.value_multiplier)
        duplicates = duplicate_titles(records)
        if duplicates:
            self.logger.warning("bulk_duplicate_titles", titles=duplicates)
        self.logger.info("bulk_loaded", records=len(records))
        return records


__all__ = ["BulkLoader", "parse_bulk_payload"]
