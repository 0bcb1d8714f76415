"""Ошибки шлюза и их нормализация (стабильные code/message)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from chat_gateway.services.retry import RetriesExhausted


class GatewayError(Exception):
    """Базовая ошибка шлюза."""


class InvalidRequestError(GatewayError, ValueError):
    """Запрос нельзя отправить (например, пустой список сообщений)."""


class UnsupportedStreamModeError(InvalidRequestError):
    """Запрошен режим стриминга вне {text, json}."""

    def __init__(self, mode: object) -> None:
        super().__init__(f"Unsupported stream mode: {mode!r}")
        self.mode = mode


class ProviderError(GatewayError):
    """Ошибка на стороне провайдера."""


class ProviderNotConfiguredError(ProviderError, RuntimeError):
    pass


class RateLimitedError(ProviderError):
    """Upstream ответил 429."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamTimeoutError(ProviderError):
    """Upstream не ответил вовремя (таймаут транспорта)."""


@dataclass(frozen=True)
class PublicError:
    """Публичная ошибка для ответа клиенту."""

    status_code: int
    code: str
    message: str
    type: str = "gateway_error"


def map_provider_exception(exc: Exception) -> PublicError:
    """Преобразует исключение в стабильный публичный формат (без утечек деталей)."""
    if isinstance(exc, ValueError) and str(exc).startswith("Unknown provider:"):
        return PublicError(
            status_code=400,
            code="unknown_provider",
            message="Неизвестный провайдер",
            type="invalid_request_error",
        )

    if isinstance(exc, UnsupportedStreamModeError):
        return PublicError(
            status_code=400,
            code="unsupported_stream_mode",
            message="Неподдерживаемый режим стриминга",
            type="invalid_request_error",
        )

    if isinstance(exc, InvalidRequestError):
        return PublicError(
            status_code=400,
            code="invalid_request",
            message=str(exc),
            type="invalid_request_error",
        )

    if isinstance(exc, ProviderNotConfiguredError):
        return PublicError(
            status_code=500,
            code="provider_not_configured",
            message="Провайдер не настроен",
        )

    if isinstance(exc, RateLimitedError):
        return PublicError(
            status_code=429,
            code="upstream_rate_limited",
            message="Upstream ограничил частоту запросов",
            type="upstream_error",
        )

    if isinstance(exc, (UpstreamTimeoutError, httpx.TimeoutException)):
        return PublicError(
            status_code=502,
            code="upstream_timeout",
            message="Upstream не ответил вовремя",
            type="upstream_error",
        )

    if isinstance(exc, httpx.HTTPStatusError):
        sc = int(getattr(exc.response, "status_code", 0) or 0)
        if 400 <= sc < 500:
            group = "upstream_4xx"
        elif sc >= 500:
            group = "upstream_5xx"
        else:
            group = "upstream_error"
        msg = f"Upstream вернул {sc}" if sc else "Upstream вернул ошибку"
        return PublicError(
            status_code=502,
            code=group,
            message=msg,
            type="upstream_error",
        )

    if isinstance(exc, httpx.TransportError):
        return PublicError(
            status_code=502,
            code="upstream_unreachable",
            message="Не удалось подключиться к upstream",
            type="upstream_error",
        )

    return PublicError(
        status_code=502,
        code="provider_error",
        message="Ошибка провайдера",
    )


def map_exhaustion(result: RetriesExhausted) -> PublicError:
    """Исчерпанные ретраи -> 503 (rate limit) или 504 (timeout)."""
    if result.kind == "timeout":
        return PublicError(
            status_code=504,
            code="retries_exhausted",
            message=f"Upstream не ответил за {result.attempts} попыток",
            type="upstream_error",
        )
    return PublicError(
        status_code=503,
        code="retries_exhausted",
        message=f"Upstream ограничивает запросы ({result.attempts} попыток)",
        type="upstream_error",
    )


def error_payload(err: PublicError) -> dict:
    """Формирует JSON `{error:{...}}` для клиента."""
    return {"error": {"code": err.code, "message": err.message, "type": err.type}}
