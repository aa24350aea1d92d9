from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from study_ingest_core.errors import (
    classify,
    error_status,
    has_fallback,
    is_retryable,
    log_structured_error,
    structure_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    initial_delay_s: float = 1.0
    max_delay_s: float = 30.0
    multiplier: float = 2.0
    retryable_signatures: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay_s < 0:
            raise ValueError("initial_delay_s must be >= 0")
        if self.max_delay_s < 0:
            raise ValueError("max_delay_s must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        object.__setattr__(
            self,
            "retryable_signatures",
            tuple(s.lower() for s in self.retryable_signatures if s),
        )

    def delay_for(self, attempt_index: int) -> float:
        """Delay before retrying after the failure of 0-based attempt `attempt_index`."""
        return min(self.initial_delay_s * (self.multiplier**attempt_index), self.max_delay_s)


DEFAULT_RETRY = RetryConfig(
    retryable_signatures=(
        "rate_limit_exceeded",
        "rate_limit",
        "too_many_requests",
        "internal_server_error",
        "service_unavailable",
        "timeout",
        "network",
        "econnreset",
        "etimedout",
    ),
)

LLM_RETRY = RetryConfig(
    max_attempts=3,
    initial_delay_s=2.0,
    max_delay_s=30.0,
    multiplier=2.0,
    retryable_signatures=(
        "rate_limit_exceeded",
        "rate_limit",
        "too_many_requests",
        "internal_server_error",
        "service_unavailable",
        "timeout",
        "429",
        "500",
        "502",
        "503",
        "504",
    ),
)


def matches_signature(error: BaseException, signatures: Iterable[str]) -> bool:
    """
    Numeric signatures ("429", "503", ...) only match the HTTP status; the others match as
    substrings of the message or the error code.
    """
    message = str(error).lower()
    code = str(getattr(error, "code", "") or "").lower()
    status = error_status(error)
    for sig in signatures:
        if sig.isdigit():
            if status is not None and sig == str(status):
                return True
        elif sig in message or (code and sig in code):
            return True
    return False


def should_retry(error: BaseException, config: RetryConfig) -> bool:
    kind = classify(error)
    # Authentication and quota failures are never retried, whatever the signatures say.
    if not has_fallback(kind):
        return False
    return is_retryable(kind) or matches_signature(error, config.retryable_signatures)


@dataclass
class Retrier:
    """
    Runs an operation up to `config.max_attempts` times, sleeping with exponential backoff
    between attempts while the failure stays retryable.

    The first failure of every call is logged with full context, even when a later attempt
    succeeds. On give-up the failure is logged again and the original exception re-raised.
    """

    config: RetryConfig = DEFAULT_RETRY
    sleep: Callable[[float], None] = field(default=time.sleep)

    def call(self, operation: Callable[[], T], *, context: dict[str, Any] | None = None) -> T:
        cfg = self.config
        first = None
        for attempt in range(cfg.max_attempts):
            try:
                return operation()
            except Exception as e:
                if first is None:
                    first = structure_error(e, context)
                    log_structured_error(first, attempt=attempt + 1, max_attempts=cfg.max_attempts)

                last_attempt = attempt >= cfg.max_attempts - 1
                if not last_attempt and should_retry(e, cfg):
                    delay = cfg.delay_for(attempt)
                    logger.warning(
                        "attempt %d/%d failed, retrying in %.2fs: %s",
                        attempt + 1,
                        cfg.max_attempts,
                        delay,
                        e,
                    )
                    self.sleep(delay)
                    continue

                log_structured_error(
                    structure_error(e, context),
                    attempt=attempt + 1,
                    max_attempts=cfg.max_attempts,
                    final_attempt=True,
                )
                raise
        raise AssertionError("unreachable")  # pragma: no cover


def retry_with_backoff(
    operation: Callable[[], T],
    *,
    config: RetryConfig = DEFAULT_RETRY,
    context: dict[str, Any] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    return Retrier(config=config, sleep=sleep).call(operation, context=context)
