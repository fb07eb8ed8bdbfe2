"""
Error types raised by the pipeline stages.

Every error aborts the run; nothing here is retried.
"""
from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    pass


class ConfigError(PipelineError):
    """Run parameters failed validation at pipeline entry."""


class ResourceUnavailable(PipelineError):
    """The input CSV could not be fetched (network, HTTP status, missing file)."""


class ParseError(PipelineError):
    """The input could not be parsed as a delimited table with the expected header."""


class InvalidColumnRange(PipelineError):
    """A metric selection points outside the columns present in the table."""


class RemoteAPIError(PipelineError):
    """A Datawrapper API call failed or the service would reject its payload."""

    def __init__(self, step: str, message: str, status: Optional[int] = None) -> None:
        self.step = step
        self.status = status
        prefix = f"[{step}]" if status is None else f"[{step}] HTTP {status}"
        super().__init__(f"{prefix} {message}")
