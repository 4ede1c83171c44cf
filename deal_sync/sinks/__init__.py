"""Update sink SPI and implementations."""

from .base import BaseUpdateSink
from .file_sink import FileUpdateSink
from .http_sink import HttpUpdateSink

__all__ = ["BaseUpdateSink", "FileUpdateSink", "HttpUpdateSink"]
