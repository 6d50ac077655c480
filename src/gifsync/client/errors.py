"""Custom exceptions for gifsync."""

from __future__ import annotations

from dataclasses import dataclass, field


class GifSyncError(Exception):
    """Base exception for all gifsync errors."""


class SettingsError(GifSyncError):
    """Raised when the settings file is missing, unreadable or incomplete."""


class FetchError(GifSyncError):
    """Raised when the desired-state document cannot be fetched or decoded."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to load tunnel document from {source!r}: {reason}")


class RequestError(GifSyncError):
    """Raised when a network-level error occurs (connection refused, timeout, etc.)."""

    def __init__(self, url: str, cause: Exception) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Request to {url!r} failed: {cause}")


class ResponseError(GifSyncError):
    """Raised when an HTTP endpoint returns a non-2xx status code."""

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} for {url!r}")


class StateError(GifSyncError):
    """Raised when the live interface listing cannot be read."""


@dataclass
class SpecError(GifSyncError):
    """Raised when a single desired-state entry is rejected.

    Attributes:
        index: Position of the entry in the fetched document.
        reason: Short machine-friendly reason (``"missing tunnel_id"`` ...).
        fields: Extra context reported alongside the rejection.
    """

    index: int
    reason: str
    fields: dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(f"Entry {self.index} rejected: {self.reason}")


class ResolutionError(GifSyncError):
    """Raised when a source or destination address cannot be resolved."""


@dataclass
class CommandError(GifSyncError):
    """Raised when an external command still fails after all retry attempts.

    Attributes:
        argv: The full command line that failed.
        attempts: Number of attempts made.
        output: Combined stdout/stderr of the last attempt.
        returncode: Exit status of the last attempt.
    """

    argv: tuple[str, ...]
    attempts: int
    output: str = ""
    returncode: int | None = None

    def __post_init__(self) -> None:
        super().__init__(
            f"Command failed after {self.attempts} attempt(s): {' '.join(self.argv)}"
            f" (rc={self.returncode}): {self.output.strip()}"
        )
