from __future__ import annotations

import logging

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = logging.getLogger(__name__)


def _is_retryable_httpx(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code == 429 or code >= 500
    return False


def retry_telegram():
    return retry(
        retry=retry_if_exception(_is_retryable_httpx),
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=0.2, max=1.0),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
