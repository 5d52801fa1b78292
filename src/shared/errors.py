"""Error taxonomy for the publication pipeline.

Callers distinguish four kinds of failure:

- ``ConfigurationError``: a missing credential or connection string. Fatal
  for the invocation and never retried automatically.
- ``GenerationError`` / ``PublishError`` / ``StoreError``: transient backend
  failures. Work items are reverted so the next scheduler run retries them.
- ``PreconditionError``: a draft cannot be published as-is and needs a human.
"""

from __future__ import annotations

from dataclasses import dataclass


class InkpressError(Exception):
    """Base error for the pipeline."""


class ConfigurationError(InkpressError):
    """A required credential or setting is missing."""


class StoreError(InkpressError):
    """A datastore read or write did not go through."""


class PreconditionError(InkpressError):
    """A draft is missing fields required for publication."""


class PublishError(InkpressError):
    """The version-control store rejected or failed a write."""


@dataclass
class EndpointAttempt:
    """One failed call against a generation endpoint."""

    endpoint: str
    error: str
    status: int | None = None


class GenerationError(InkpressError):
    """Every generation endpoint failed.

    The individual failures are kept on ``attempts`` in the order they
    were tried; the message names the last one.
    """

    def __init__(self, message: str, attempts: list[EndpointAttempt] | None = None) -> None:
        self.attempts = list(attempts or [])
        if self.attempts:
            last = self.attempts[-1]
            message = f"{message} (last error from {last.endpoint}: {last.error})"
        super().__init__(message)

    @property
    def last_error(self) -> str:
        return self.attempts[-1].error if self.attempts else str(self)
