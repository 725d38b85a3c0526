"""Error classification for automatic retries.

Decides whether a failure is transient (worth retrying after a delay) or
permanent (fail fast). Typed file operation errors are classified by their
kind; anything else is matched against a fixed vocabulary of transient
error codes and phrases.
"""

from __future__ import annotations

import errno
import re
import socket
from typing import NamedTuple

from fileledger.models.errors import FileOperationError, FileOperationErrorType

RETRYABLE_TYPES: frozenset[FileOperationErrorType] = frozenset(
    {
        FileOperationErrorType.NETWORK_ERROR,
        FileOperationErrorType.DISK_SPACE_INSUFFICIENT,
    }
)

PERMANENT_TYPES: frozenset[FileOperationErrorType] = frozenset(
    {
        FileOperationErrorType.FILE_NOT_FOUND,
        FileOperationErrorType.PERMISSION_DENIED,
        FileOperationErrorType.FILE_ALREADY_EXISTS,
        FileOperationErrorType.INVALID_FILE_NAME,
    }
)

RETRYABLE_ERRNOS: dict[int, str] = {
    errno.EBUSY: "Resource busy",
    errno.EAGAIN: "Try again",
    errno.ETIMEDOUT: "Timed out",
    errno.ECONNRESET: "Connection reset",
    errno.ECONNREFUSED: "Connection refused",
    errno.EMFILE: "Too many open files",
    errno.ENFILE: "File table overflow",
}

# (regex_pattern, reason), matched case-insensitively against the message
RETRYABLE_PATTERNS: list[tuple[str, str]] = [
    (r"\bEBUSY\b", "Resource busy"),
    (r"\bEAGAIN\b", "Try again"),
    (r"\bETIMEDOUT\b", "Timed out"),
    (r"\bECONNRESET\b", "Connection reset"),
    (r"\bENOTFOUND\b", "DNS lookup failed"),
    (r"\bECONNREFUSED\b", "Connection refused"),
    (r"\bEMFILE\b", "Too many open files"),
    (r"\bENFILE\b", "File table overflow"),
    (r"temporary", "Temporary failure"),
    (r"timeout", "Timed out"),
    (r"network", "Network error"),
]


class ErrorVerdict(NamedTuple):
    """Result of error classification."""

    retryable: bool
    recoverable: bool
    reason: str


def classify_error(error: BaseException) -> ErrorVerdict:
    """Classify a failure as transient or permanent.

    Pure function: no side effects, no I/O.

    Args:
        error: The exception raised by a unit of work.

    Returns:
        ErrorVerdict with the retry decision and a short reason.
    """
    if isinstance(error, FileOperationError):
        recoverable = error.is_recoverable()
        if error.error_type in RETRYABLE_TYPES:
            return ErrorVerdict(True, recoverable, error.error_type.value)
        if error.error_type in PERMANENT_TYPES:
            return ErrorVerdict(False, recoverable, error.error_type.value)
        # Unknown kind: judge the wrapped native error when there is one
        inner = error.original_error
        if inner is not None and inner is not error:
            retryable, reason = _match_raw(inner)
        else:
            retryable, reason = _match_message(str(error))
        return ErrorVerdict(retryable, recoverable, reason)

    retryable, reason = _match_raw(error)
    return ErrorVerdict(retryable, False, reason)


def is_retryable_error(error: BaseException) -> bool:
    """Quick check if an error should be retried.

    Args:
        error: The exception to check.

    Returns:
        True if the error is classified as transient.
    """
    return classify_error(error).retryable


def _match_raw(error: BaseException) -> tuple[bool, str]:
    """Match a native exception by type, errno and message."""
    if isinstance(error, FileOperationError):
        verdict = classify_error(error)
        return verdict.retryable, verdict.reason

    if isinstance(error, socket.gaierror):
        return True, "DNS lookup failed"
    if isinstance(error, TimeoutError):
        return True, "Timed out"
    if isinstance(error, ConnectionError):
        return True, "Connection error"

    code = getattr(error, "errno", None)
    if isinstance(code, int) and code in RETRYABLE_ERRNOS:
        return True, RETRYABLE_ERRNOS[code]

    return _match_message(str(error))


def _match_message(message: str) -> tuple[bool, str]:
    """Match a message against the transient vocabulary."""
    if not message:
        return False, "Empty error message"

    for pattern, reason in RETRYABLE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            return True, reason

    return False, "Not a transient error"
