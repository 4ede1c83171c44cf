"""Snapshot loaders for the bulk export and the live API."""

from .bulk import BulkLoader, parse_bulk_payload
from .live import LiveLoader, parse_page

__all__ = ["BulkLoader", "LiveLoader", "parse_bulk_payload", "parse_page"]
