"""Retry helpers for transient classification-service errors."""

from __future__ import annotations

import logging
from collections.abc import Callable

from botocore.exceptions import ClientError, EndpointConnectionError
from tenacity import RetryCallState

_RETRYABLE_CODES = frozenset(
    {
        "ThrottlingException",
        "ProvisionedThroughputExceededException",
        "ServiceUnavailableException",
        "InternalServerError",
    }
)


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, EndpointConnectionError):
        return True
    if isinstance(exc, ClientError):
        code = str(exc.response.get("Error", {}).get("Code") or "")
        return code in _RETRYABLE_CODES
    return False


def log_retry(logger: logging.Logger) -> Callable[[RetryCallState], None]:
    def _log(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        wait_s = state.next_action.sleep if state.next_action else None
        logger.warning(
            "classifier retrying (attempt=%s, wait_s=%s, error=%s)",
            state.attempt_number,
            wait_s,
            exc,
        )

    return _log
