"""
Retry policy configuration for feed requests.

This module holds the policy (which failures to retry, and how long to
wait), separate from the tenacity retrying loop in
services/infinite_collection.py.
"""
from dataclasses import dataclass

from core.http_client import HttpError


@dataclass(frozen=True)
class RetryPolicy:
    """Retry up to max_retries extra attempts with capped exponential backoff."""

    max_retries: int = 2
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds

    def should_retry(self, error: Exception, failure_count: int) -> bool:
        """
        Decide whether to try again after a failed attempt.

        Args:
            error:
                The failure of the latest attempt.
            failure_count:
                Number of failed attempts so far, including this one.

        Returns:
            False for 4xx responses (retrying cannot help) or once the
            retry budget is spent; True otherwise (network errors, 5xx).
        """
        if isinstance(error, HttpError) and error.is_client_error:
            return False
        return failure_count <= self.max_retries

    def delay(self, attempt_index: int) -> float:
        """Seconds to wait before retry number attempt_index (zero-based)."""
        return min(self.base_delay * 2 ** attempt_index, self.max_delay)


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------

DEFAULT_RETRY_POLICY = RetryPolicy()

NO_RETRY = RetryPolicy(max_retries=0)
