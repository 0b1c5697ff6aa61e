"""
Shared base for the Google Workspace API wrappers.

Provides:
- Lazy construction of the discovery-based service object
- Exponential backoff retry for rate limits and server errors
- Mapping of HTTP failures to the error kinds the sync code reacts to
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

# Retry configuration defaults
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 60.0  # seconds

# 403 responses with one of these reasons are quota problems, not permissions
RATE_LIMIT_REASONS = (
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "quotaExceeded",
    "RATE_LIMIT_EXCEEDED",
)

logger = logging.getLogger(__name__)


class GoogleAPIError(Exception):
    """Raised when a Google API operation fails."""

    pass


class ResourceNotFound(GoogleAPIError):
    """Raised when the requested resource does not exist (or was deleted)."""

    pass


class TransientUnavailable(GoogleAPIError):
    """Raised when the service stays unavailable after all retries."""

    pass


def _is_rate_limited(error: HttpError) -> bool:
    """Check whether a 403 response is a quota/rate-limit response."""
    content = error.content or b""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    return any(reason in content for reason in RATE_LIMIT_REASONS)


class GoogleAPIClient:
    """
    Base class for a single Google API (name + version).

    Subclasses set ``api_name`` and ``api_version`` and wrap every request in
    ``_retry_with_backoff`` so that all services share one error policy:

    - 404/410 raise ResourceNotFound immediately (never retried)
    - 429, rate-limited 403 and 5xx are retried with exponential backoff,
      then raise TransientUnavailable
    - network errors are retried the same way
    - anything else raises GoogleAPIError
    """

    api_name = ""
    api_version = ""

    def __init__(
        self,
        credentials: Credentials,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
    ):
        """
        Initialize the API wrapper.

        Args:
            credentials: Valid Google OAuth2 credentials
            max_retries: Maximum attempts for failed API calls (default 5)
            initial_retry_delay: Initial backoff delay in seconds (default 1.0)
            max_retry_delay: Maximum backoff delay in seconds (default 60.0)
        """
        self.credentials = credentials
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self._service = None

    @property
    def service(self) -> Any:
        """
        Get or create the Google API service object.

        Raises:
            GoogleAPIError: If service cannot be created
        """
        if self._service is None:
            try:
                self._service = build(
                    self.api_name,
                    self.api_version,
                    credentials=self.credentials,
                    cache_discovery=False,
                )
                logger.debug(f"Created {self.api_name} {self.api_version} service")
            except Exception as e:
                logger.error(f"Failed to create {self.api_name} service: {e}")
                raise GoogleAPIError(
                    f"Failed to create {self.api_name} API service: {e}"
                ) from e
        return self._service

    def _retry_with_backoff(
        self, operation: Callable[[], Any], operation_name: str
    ) -> Any:
        """
        Execute an operation with exponential backoff retry.

        Args:
            operation: Callable to execute
            operation_name: Name for logging purposes

        Returns:
            Result of the operation

        Raises:
            ResourceNotFound: On 404 or 410
            TransientUnavailable: If retries are exhausted on a retryable error
            GoogleAPIError: For other API errors
        """
        delay = self.initial_retry_delay

        for attempt in range(self.max_retries):
            try:
                return operation()

            except HttpError as e:
                status_code = e.resp.status

                if status_code in (404, 410):
                    logger.debug(f"{operation_name}: not found ({status_code})")
                    raise ResourceNotFound(
                        f"{operation_name}: resource not found"
                    ) from e

                retryable = (
                    status_code == 429
                    or status_code >= 500
                    or (status_code == 403 and _is_rate_limited(e))
                )
                if not retryable:
                    logger.error(
                        f"{operation_name} failed with status {status_code}: {e}"
                    )
                    raise GoogleAPIError(f"{operation_name} failed: {e}") from e

                if attempt < self.max_retries - 1:
                    logger.warning(
                        f"{operation_name} returned {status_code}, retrying in "
                        f"{delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue

                raise TransientUnavailable(
                    f"{operation_name} unavailable after {self.max_retries} attempts"
                ) from e

            except (ConnectionError, TimeoutError) as e:
                if attempt < self.max_retries - 1:
                    logger.warning(
                        f"{operation_name} network error ({e}), retrying in "
                        f"{delay:.1f}s"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue

                raise TransientUnavailable(
                    f"{operation_name} unreachable after {self.max_retries} attempts"
                ) from e

        raise TransientUnavailable(f"{operation_name} failed after all retries")
