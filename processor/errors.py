"""Error taxonomy for the calendar client."""
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class ZmanimError(Exception):
    """Base class for all client errors."""


class NetworkError(ZmanimError):
    """Upstream service unreachable or answered with a non-2xx status."""


class GatewayError(NetworkError):
    """Single gateway call failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NoLocationFoundError(ZmanimError):
    """Location resolution produced an empty result set."""


class MalformedResponseError(ZmanimError):
    """Upstream payload is missing its expected top-level structure."""


class LocationPermissionError(ZmanimError):
    """Caller denied access to the device location."""


class UnknownError(ZmanimError):
    """Fallback for failures that fit no other category."""


class SearchError(ZmanimError):
    """Location search failed."""


class FetchError(ZmanimError):
    """Shabbat or daily times could not be fetched."""


@dataclass
class AppError:
    """User-facing description of a failure."""
    message: str
    type: str
    retryable: bool


NETWORK_MESSAGE = (
    'Unable to connect to the server. Please check your internet '
    'connection and try again.'
)
PERMISSION_MESSAGE = (
    'Location access was denied. Please enable location permissions or '
    'search for a location manually.'
)
LOCATION_MESSAGE = (
    'Unable to determine your location. Please search for a location manually.'
)
API_MESSAGE = 'Unable to fetch Shabbat times. Please try again in a moment.'
UNKNOWN_MESSAGE = 'An unexpected error occurred. Please try again.'


def classify_error(error: BaseException, context: str) -> AppError:
    """
    Map an exception to a user-facing AppError.

    Facade errors are classified by the error that caused them, so a
    FetchError raised from a GatewayError reads as a network failure.

    Args:
        error: Exception raised by the client
        context: Short description of the failed operation, used for logging

    Returns:
        AppError with message, category and retry hint
    """
    logger.warning(f"Error in {context}: {error}")

    cause = error
    if isinstance(error, (SearchError, FetchError)) and error.__cause__ is not None:
        cause = error.__cause__

    if isinstance(cause, LocationPermissionError):
        return AppError(message=PERMISSION_MESSAGE, type='permission', retryable=False)
    if isinstance(cause, NoLocationFoundError):
        return AppError(message=LOCATION_MESSAGE, type='location', retryable=True)
    if isinstance(cause, GatewayError) and cause.status is not None:
        return AppError(message=API_MESSAGE, type='api', retryable=True)
    if isinstance(cause, NetworkError):
        return AppError(message=NETWORK_MESSAGE, type='network', retryable=True)
    if isinstance(cause, MalformedResponseError):
        return AppError(message=API_MESSAGE, type='api', retryable=True)

    return AppError(
        message=str(error) or UNKNOWN_MESSAGE,
        type='unknown',
        retryable=True
    )
