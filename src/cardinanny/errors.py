"""
Error types for the scan, rewrite and clean pipeline.

Every component raises a subclass of ``CardinannyError`` so the control
loop can report it and carry on with the next pass. The one exception is a
failed write of the Prometheus config file, which surfaces as the plain
``OSError`` raised by the filesystem.

Exit Codes (CLI):
- 0: Success
- 10: Configuration error
- 11: Provider error (Prometheus unreachable at startup)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Exit codes for the cardinanny command."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    UNKNOWN_ERROR = 127


class CardinannyError(Exception):
    """Base exception carrying a message and diagnostic details."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(CardinannyError):
    """Raised for bad startup configuration."""

    exit_code = ExitCode.CONFIG_ERROR


class ProviderError(CardinannyError):
    """Raised when Prometheus cannot be reached at startup."""

    exit_code = ExitCode.PROVIDER_ERROR


# Scanner


class SourceUnavailableError(CardinannyError):
    """TSDB statistics could not be fetched."""


class QueryFailedError(CardinannyError):
    """A per-label follow-up query failed."""


# Config rewriter


class ConfigFetchError(CardinannyError):
    """The live config could not be fetched from Prometheus."""


class ConfigParseError(CardinannyError):
    """The fetched config document is not a valid Prometheus config."""


class NoScrapeJobsError(CardinannyError):
    """Labels were flagged but the config defines no scrape jobs."""


class ReloadFailedError(CardinannyError):
    """Prometheus answered the reload request with a non-200 status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(
            "error when reloading prometheus config, "
            f"expected status code 200 but was {status_code}, body: {body}",
            {"status_code": status_code},
        )
        self.status_code = status_code
        self.body = body


class ReloadUnreachableError(CardinannyError):
    """The reload request got no response at all."""


# Series cleaner


class DeleteFailedError(CardinannyError):
    """The series deletion request failed."""


class CompactionFailedError(CardinannyError):
    """Tombstone compaction failed after a successful deletion."""


F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that converts exceptions to exit codes.

    Exit codes:
        - CardinannyError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except CardinannyError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator
