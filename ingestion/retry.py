"""
Backoff policy and retry classification for per-cell metric fetches.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from core.config import settings
from core.exceptions import ApiError, NetworkError

RETRYABLE_STATUS_CODES = frozenset({429, 500})


class BackoffPolicy(BaseModel):
    """
    delay(attempt) = base_delay + step_delay * 2 ** attempt

    Delays grow strictly with the attempt count and depend on nothing else.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default_factory=lambda: settings.RETRY_MAX_ATTEMPTS, ge=1)
    base_delay: float = Field(default_factory=lambda: settings.RETRY_BASE_DELAY, ge=0)
    step_delay: float = Field(default_factory=lambda: settings.RETRY_STEP_DELAY, gt=0)

    def delay(self, attempt: int) -> float:
        return self.base_delay + self.step_delay * 2 ** attempt


class RetryState:
    """Attempt counter for a single cell; never shared between cells"""

    def __init__(self, policy: BackoffPolicy):
        self.policy = policy
        self.attempt = 0
        self.last_error: Optional[Exception] = None

    @property
    def next_delay(self) -> float:
        return self.policy.delay(self.attempt)

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.policy.max_attempts

    def record_failure(self, error: Exception) -> None:
        self.attempt += 1
        self.last_error = error


def is_retryable(error: Exception) -> bool:
    """
    Rate limits (429), provider 500s and transport failures are retried;
    every other error abandons the cell.
    """
    if isinstance(error, NetworkError):
        return True
    if isinstance(error, ApiError):
        return error.status_code in RETRYABLE_STATUS_CODES
    return False
