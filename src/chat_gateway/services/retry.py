"""Ретраи вызова провайдера по типу ошибки (ограниченно, с backoff)."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeVar

import httpx
import structlog

from chat_gateway.metrics import retries_total
from chat_gateway.services.errors import RateLimitedError, UpstreamTimeoutError

log = structlog.get_logger()

T = TypeVar("T")


class ErrorKind(StrEnum):
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    OTHER = "other"


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, RateLimitedError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (UpstreamTimeoutError, httpx.TimeoutException)):
        return ErrorKind.TIMEOUT
    return ErrorKind.OTHER


@dataclass
class RetryContext:
    attempt: int = 0
    kind: ErrorKind | None = None


@dataclass(frozen=True)
class RetriesExhausted:
    """Типизированный результат «ретраи исчерпаны» (вместо молчаливого None)."""

    kind: ErrorKind
    attempts: int
    error: str


class RetryPolicy:
    """Выполняет работу и повторяет её на rate limit / timeout.

    - rate limit: после попытки N (N < rate_limit_attempts) ждём `backoff_base ** N` секунд;
    - timeout: повторяем сразу, пока N < timeout_attempts;
    - всё остальное логируем и пробрасываем без ретраев.

    Счётчик попыток общий для обоих типов ошибок.
    """

    def __init__(
        self,
        rate_limit_attempts: int = 6,
        timeout_attempts: int = 3,
        backoff_base: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.rate_limit_attempts = rate_limit_attempts
        self.timeout_attempts = timeout_attempts
        self.backoff_base = backoff_base
        self._sleep = sleep

    def execute(self, work: Callable[[], T]) -> T | RetriesExhausted:
        ctx = RetryContext()
        while True:
            try:
                return work()
            except Exception as e:
                ctx.kind = classify_error(e)
                if ctx.kind is ErrorKind.OTHER:
                    log.error("provider_call_failed", attempt=ctx.attempt, err=repr(e))
                    raise

                ctx.attempt += 1
                if ctx.kind is ErrorKind.RATE_LIMITED:
                    limit = self.rate_limit_attempts
                    delay = self.backoff_base**ctx.attempt
                else:
                    limit = self.timeout_attempts
                    delay = 0.0

                if ctx.attempt >= limit:
                    log.error(
                        "retries_exhausted",
                        kind=str(ctx.kind),
                        attempts=ctx.attempt,
                        err=repr(e),
                    )
                    return RetriesExhausted(kind=ctx.kind, attempts=ctx.attempt, error=str(e))

                retries_total.labels(kind=str(ctx.kind)).inc()
                log.warning(
                    "provider_call_retry",
                    kind=str(ctx.kind),
                    attempt=ctx.attempt,
                    delay_seconds=delay,
                    err=repr(e),
                )
                if delay > 0:
                    self._sleep(delay)
