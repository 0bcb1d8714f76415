"""OpenAI-compatible провайдер (OpenRouter и прочие upstream с /v1/chat/completions)."""

from __future__ import annotations

import json
from collections.abc import Iterator

import httpx
import structlog

from chat_gateway.providers.base import ProviderClient, ProviderResult
from chat_gateway.services.errors import (
    ProviderNotConfiguredError,
    RateLimitedError,
    UpstreamTimeoutError,
)
from chat_gateway.settings import Settings

log = structlog.get_logger()

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


def _encode_header_value(value: str) -> str | bytes:
    """Кодирует заголовок в ASCII или UTF-8 (байты), если там есть не-ASCII."""
    try:
        value.encode("ascii")
        return value
    except UnicodeEncodeError:
        return value.encode("utf-8")


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def sse_data(line: str) -> str | None:
    """Полезная нагрузка строки `data: ...` или None для служебных строк SSE."""
    if not line.startswith(SSE_DATA_PREFIX):
        # пустые строки, комментарии (": OPENROUTER PROCESSING"), event:/id:
        return None
    return line[len(SSE_DATA_PREFIX) :].strip() or None


def _raise_stream_error(error: object, r: httpx.Response) -> None:
    """Ошибка внутри уже открытого стрима (OpenRouter отдаёт её кадром `{"error": ...}`)."""
    code = error.get("code") if isinstance(error, dict) else None
    if code == 429:
        raise RateLimitedError(f"Upstream stream error: {error}")
    raise httpx.HTTPStatusError(
        f"Upstream stream error: {error}",
        request=r.request,
        response=r,
    )


class OpenAICompatibleProvider(ProviderClient):
    name = "openai"

    def __init__(self, settings: Settings, transport: httpx.BaseTransport | None = None) -> None:
        if not settings.openai_base_url or not settings.openai_api_key:
            raise ProviderNotConfiguredError(
                "Нужны OPENAI_BASE_URL/OPENAI_API_KEY для provider=openai"
            )
        base = settings.openai_base_url.rstrip("/")
        # Разрешаем как "https://openrouter.ai/api", так и "https://openrouter.ai/api/v1".
        if base.endswith("/v1"):
            base = base[: -len("/v1")]
        self._base_url = base.rstrip("/")
        self._api_key = settings.openai_api_key
        self._timeout = float(settings.openai_timeout_seconds)
        self._headers: list[tuple[str, str | bytes]] = [
            ("Authorization", f"Bearer {self._api_key}"),
        ]
        if settings.openai_http_referer:
            self._headers.append(("HTTP-Referer", settings.openai_http_referer))
        if settings.openai_title:
            self._headers.append(("X-Title", _encode_header_value(settings.openai_title)))
        self._client = httpx.Client(
            timeout=httpx.Timeout(self._timeout),
            transport=transport,
        )

    def _check_status(self, r: httpx.Response) -> None:
        """429 -> RateLimitedError, прочие 4xx/5xx -> httpx.HTTPStatusError."""
        if r.status_code == 429:
            raise RateLimitedError(
                f"Upstream вернул 429 ({r.request.url})",
                retry_after=_retry_after(r),
            )
        r.raise_for_status()

    def chat_completions(self, payload: dict) -> ProviderResult:
        url = f"{self._base_url}/v1/chat/completions"
        body = dict(payload)
        body.pop("stream", None)
        try:
            r = self._client.post(url, json=body, headers=self._headers)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(str(e) or "timeout") from e
        self._check_status(r)

        data = r.json()
        usage = data.get("usage") or {}
        prompt_tokens = usage.get("prompt_tokens")
        completion_tokens = usage.get("completion_tokens")
        total_tokens = usage.get("total_tokens")
        return ProviderResult(
            json=data,
            prompt_tokens=int(prompt_tokens) if prompt_tokens is not None else None,
            completion_tokens=int(completion_tokens) if completion_tokens is not None else None,
            total_tokens=int(total_tokens) if total_tokens is not None else None,
        )

    def stream_chat_completions(self, payload: dict) -> Iterator[dict]:
        url = f"{self._base_url}/v1/chat/completions"
        body = dict(payload)
        body["stream"] = True
        try:
            with self._client.stream("POST", url, json=body, headers=self._headers) as r:
                if r.status_code >= 400:
                    r.read()
                self._check_status(r)
                for line in r.iter_lines():
                    data = sse_data(line)
                    if data is None:
                        continue
                    if data == SSE_DONE:
                        break
                    try:
                        frame = json.loads(data)
                    except ValueError:
                        log.warning("sse_frame_invalid", data=data[:200])
                        continue
                    if not isinstance(frame, dict):
                        continue
                    if "error" in frame and not frame.get("choices"):
                        _raise_stream_error(frame["error"], r)
                    yield frame
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(str(e) or "timeout") from e
