"""Reporting utilities for neuralgraph."""

from .artifacts import write_config, write_manifest
from .metrics import CsvSink, JsonlSink

__all__ = ["CsvSink", "JsonlSink", "write_config", "write_manifest"]
