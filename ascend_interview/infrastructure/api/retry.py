"""
Bounded retry policy for backend calls the interview can live without.

Narration, proctoring frames and standalone analysis are retried with
exponential backoff. Bootstrap, submission and assessment are never retried
here: their failures go straight to the user.
"""
import logging

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ...config import NON_CRITICAL_RETRY_ATTEMPTS, RETRY_WAIT_MIN_SECONDS, RETRY_WAIT_MAX_SECONDS
from ...errors import ApiError

logger = logging.getLogger("api_retry")


def _is_retryable(exc: BaseException) -> bool:
    # 4xx means the request itself is wrong; repeating it won't help
    return isinstance(exc, ApiError) and exc.is_server_failure


non_critical = retry(
    stop=stop_after_attempt(NON_CRITICAL_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=RETRY_WAIT_MIN_SECONDS, min=RETRY_WAIT_MIN_SECONDS, max=RETRY_WAIT_MAX_SECONDS),
    retry=retry_if_exception(_is_retryable),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
