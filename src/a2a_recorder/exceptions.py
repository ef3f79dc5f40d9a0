"""Exception hierarchy for a2a-recorder.

Provides typed exceptions for every failure the protocol client and the
recorder distinguish. The public client surface converts these into
``ok=False`` result objects; the exception stays attached to the result so
callers can re-raise it.
"""

from __future__ import annotations

from typing import Any, Literal, NoReturn

# Raw payload excerpts attached to protocol errors are cut to this length
EXCERPT_LENGTH = 200

CancelSource = Literal["deadline", "caller"]


class A2ARecorderError(Exception):
    """Base exception for all a2a-recorder errors.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status of the response that failed, if any.
        __cause__: Optional chained exception (from another error).
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Error description.
            status_code: Optional HTTP status code of the failed response.
            cause: Optional exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.__cause__ = cause


class A2AValidationError(A2ARecorderError):
    """A URL or input was rejected before any request was sent.

    Raised for malformed URLs and for private or local addresses when
    ``allow_local`` is not set.
    """

    pass


class A2AConnectionError(A2ARecorderError):
    """The HTTP exchange with the agent failed at the network level."""

    pass


class A2ATimeoutError(A2ARecorderError):
    """The operation was cut short by a deadline or a caller cancellation.

    Attributes:
        source: ``"deadline"`` when the internal timer fired, ``"caller"``
            when the caller's cancellation signal fired.
        timeout: Deadline in seconds that was in force.
    """

    def __init__(
        self,
        message: str,
        *,
        source: CancelSource = "deadline",
        timeout: float | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.source = source
        self.timeout = timeout


class A2AProtocolError(A2ARecorderError):
    """The agent answered, but not with a usable A2A payload.

    Covers wrong content types, invalid JSON, JSON-RPC error objects and
    unrecognized result shapes.

    Attributes:
        code: JSON-RPC error code, when the agent sent an error object.
        data: Optional error data from the agent.
        excerpt: Truncated raw payload for diagnosis.
    """

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        data: Any = None,
        excerpt: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, cause=cause)
        self.code = code
        self.data = data
        self.excerpt = excerpt


class A2ASizeLimitError(A2ARecorderError):
    """A response body exceeded the configured size cap.

    Attributes:
        observed: Byte count seen (from Content-Length or the body read).
        maximum: Configured maximum in bytes.
    """

    def __init__(
        self,
        observed: int,
        maximum: int,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            f"Response too large: {observed} bytes (max {maximum})",
            status_code=status_code,
        )
        self.observed = observed
        self.maximum = maximum


class A2ARpcStateError(A2ARecorderError):
    """An RPC-call record was completed twice with different outcomes."""

    pass


def excerpt(text: str) -> str:
    """Cut a raw payload down to the length attached to protocol errors."""
    return text[:EXCERPT_LENGTH]


def _raise_for_rpc_error(error: Any, *, status_code: int | None = None) -> NoReturn:
    """Convert a JSON-RPC error object to an A2AProtocolError.

    Args:
        error: The ``error`` member of a JSON-RPC response.
        status_code: HTTP status of the response carrying it.

    Raises:
        A2AProtocolError: Always, with message ``"<code>: <message>"``.
    """
    if isinstance(error, dict):
        code = error.get("code")
        message = error.get("message")
        data = error.get("data")
    else:
        code, message, data = None, error, None

    raise A2AProtocolError(
        f"{code}: {message}",
        code=code if isinstance(code, int) else None,
        data=data,
        status_code=status_code,
    )
