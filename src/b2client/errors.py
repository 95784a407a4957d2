import httpx
import logging


logger = logging.getLogger(__name__)


class B2ClientError(Exception):
    """Base class for every error raised by b2client."""


class B2Error(B2ClientError):
    """Structured error returned by the B2 API.

    Carries the ``code``, ``message`` and ``status`` fields of the JSON
    error body unchanged.
    """

    def __init__(self, code, message, status):
        super().__init__(code, message, status)
        self.code = code
        self.message = message
        self.status = status

    def __str__(self):
        return f"b2 remote error [{self.code}]: {self.message}"

    @classmethod
    def from_response(cls, response, operation):
        """Build the error for a non-200 response.

        Returns a :class:`B2Error` when the body decodes as the structured
        error shape, otherwise an :class:`UnexpectedResponseError`.
        """
        try:
            body = response.json()
            error = cls(body["code"], body["message"], int(body["status"]))
        except (ValueError, KeyError, TypeError):
            return UnexpectedResponseError(
                f"unknown error during {operation}: {response.status_code}",
                status=response.status_code,
                operation=operation,
            )
        logger.debug("%s failed with status %s: %s", operation, error.status, error)
        return error


class UnexpectedResponseError(B2ClientError):
    """The service answered with something that could not be decoded."""

    def __init__(self, message, status=None, operation=None):
        super().__init__(message)
        self.status = status
        self.operation = operation


class B2TransportError(B2ClientError):
    """The HTTP round trip itself failed (connection, DNS, timeout)."""

    def __init__(self, message, operation=None):
        super().__init__(message)
        self.operation = operation


def wrap_request_error(e, operation):
    """Re-raise an httpx request error as a B2ClientError.

    Transport failures become B2TransportError; other request errors
    (undecodable content encoding, redirect loops) a plain B2ClientError.
    """
    logger.debug("B2 %s failed: %r", operation, e)
    if isinstance(e, httpx.TransportError):
        raise B2TransportError(f"B2 {operation} failed: {e}", operation=operation) from e
    raise B2ClientError(f"B2 {operation} failed: {e}") from e


class InvalidListingError(B2ClientError, ValueError):
    """Listing arguments that can never produce a valid request."""


class ChecksumMismatchError(B2ClientError):
    def __init__(self, expected, actual):
        super().__init__(f"SHA1 mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
