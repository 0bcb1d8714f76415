"""ChatGateway: единая точка входа для вызова LLM.

Резолвит модель, собирает параметры провайдера, отправляет запрос через
RetryPolicy и нормализует ответ в ChatResponse. Два режима стриминга:

- `text`: колбэк получает `(accumulated_text, delta)` на каждую непустую дельту;
- `json`: колбэк получает каждый новый распарсенный JSON-объект из потока.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

import structlog

from chat_gateway.metrics import requests_total, tokens_total
from chat_gateway.providers.base import ProviderClient
from chat_gateway.providers.factory import get_provider
from chat_gateway.services.errors import InvalidRequestError, UnsupportedStreamModeError
from chat_gateway.services.json_extractor import IncrementalJsonExtractor
from chat_gateway.services.models import ModelCatalog
from chat_gateway.services.redaction import redact_chat_payload, redact_text
from chat_gateway.services.retry import RetriesExhausted, RetryPolicy
from chat_gateway.services.stream import StreamAccumulator
from chat_gateway.services.tokens import rough_token_count
from chat_gateway.settings import Settings

log = structlog.get_logger()

STREAM_MODES = ("text", "json")


class TextStreamCallback(Protocol):
    def __call__(self, accumulated: str, delta: str) -> None: ...


class JsonStreamCallback(Protocol):
    def __call__(self, obj: Any) -> None: ...


StreamCallback = TextStreamCallback | JsonStreamCallback


@dataclass(frozen=True)
class ChatRequest:
    """Описание запроса: `system`/`user` или готовый список `messages`."""

    model: str
    system: str | None = None
    user: str | None = None
    messages: list[dict] | None = None
    callback: StreamCallback | None = None
    mode: str = "text"
    temperature: float | None = None

    @classmethod
    def from_payload(cls, payload: dict, callback: StreamCallback | None = None) -> ChatRequest:
        """Собирает запрос из OpenAI-подобного JSON (`stream_mode` -> mode)."""
        model = payload.get("model")
        if not isinstance(model, str) or not model:
            raise InvalidRequestError("Поле model обязательно")
        messages = payload.get("messages")
        if messages is not None and not isinstance(messages, list):
            raise InvalidRequestError("Поле messages должно быть списком")
        temperature = payload.get("temperature")
        if temperature is not None and not isinstance(temperature, (int, float)):
            raise InvalidRequestError("Поле temperature должно быть числом")
        return cls(
            model=model,
            system=payload.get("system"),
            user=payload.get("user"),
            messages=messages,
            callback=callback,
            mode=str(payload.get("stream_mode") or "text"),
            temperature=float(temperature) if temperature is not None else None,
        )

    def resolved_messages(self) -> list[dict]:
        if self.messages is not None:
            return list(self.messages)
        out: list[dict] = []
        if self.system:
            out.append({"role": "system", "content": self.system})
        if self.user:
            out.append({"role": "user", "content": self.user})
        return out

    def prompt_text(self) -> str:
        """Текст для оценки входных токенов."""
        if self.messages is not None:
            return " ".join(str(m.get("content") or "") for m in self.messages if isinstance(m, dict))
        return f"{self.system or ''} {self.user or ''}"


@dataclass(frozen=True)
class Usage:
    input_tokens: int
    output_tokens: int


@dataclass(frozen=True)
class Choice:
    content: str
    role: str = "assistant"
    finish_reason: str = "stop"


@dataclass(frozen=True)
class ChatResponse:
    id: str | None
    model: str
    choices: list[Choice] = field(default_factory=list)
    usage: Usage = field(default_factory=lambda: Usage(0, 0))

    @property
    def content(self) -> str:
        return self.choices[0].content if self.choices else ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "object": "chat.completion",
            "model": self.model,
            "choices": [
                {
                    "index": i,
                    "message": {"role": c.role, "content": c.content},
                    "finish_reason": c.finish_reason,
                }
                for i, c in enumerate(self.choices)
            ],
            "usage": {
                "input_tokens": self.usage.input_tokens,
                "output_tokens": self.usage.output_tokens,
            },
        }


class ChatGateway:
    def __init__(
        self,
        provider: ProviderClient,
        catalog: ModelCatalog | None = None,
        retry_policy: RetryPolicy | None = None,
        default_temperature: float = 0.7,
    ) -> None:
        self._provider = provider
        self._catalog = catalog or ModelCatalog()
        self._retry = retry_policy or RetryPolicy()
        self._default_temperature = default_temperature

    @classmethod
    def from_settings(cls, settings: Settings, provider: ProviderClient | None = None) -> ChatGateway:
        if provider is None:
            provider = get_provider(settings.default_provider, settings)
        return cls(
            provider=provider,
            retry_policy=RetryPolicy(
                rate_limit_attempts=settings.retry_rate_limit_attempts,
                timeout_attempts=settings.retry_timeout_attempts,
                backoff_base=settings.retry_backoff_base,
            ),
            default_temperature=settings.default_temperature,
        )

    def resolve(self, model: str) -> str:
        return self._catalog.resolve(model)

    def build_params(self, request: ChatRequest) -> dict:
        """Параметры для провайдера; reasoning-модели не получают temperature вообще."""
        model = self.resolve(request.model)
        params: dict[str, Any] = {
            "model": model,
            "messages": request.resolved_messages(),
        }
        if not self._catalog.is_reasoning_model(model):
            params["temperature"] = (
                request.temperature if request.temperature is not None else self._default_temperature
            )
        if request.callback is not None:
            params["stream"] = True
        return params

    def complete(self, request: ChatRequest) -> ChatResponse | RetriesExhausted:
        """Выполняет вызов.

        Бросает UnsupportedStreamModeError/InvalidRequestError до сетевого
        вызова; невосстановимые ошибки провайдера пробрасываются; исчерпание
        ретраев возвращается как RetriesExhausted.
        """
        if request.mode not in STREAM_MODES:
            raise UnsupportedStreamModeError(request.mode)

        params = self.build_params(request)
        if not params["messages"]:
            raise InvalidRequestError("Пустой список сообщений")

        input_tokens = rough_token_count(request.prompt_text())
        mode = request.mode if request.callback is not None else "sync"
        log.info(
            "chat_dispatch",
            provider=self._provider.name,
            mode=mode,
            input_tokens=input_tokens,
            payload=redact_chat_payload(params),
        )

        try:
            if request.callback is None:
                result = self._retry.execute(lambda: self._call(params, input_tokens))
            else:
                result = self._retry.execute(
                    lambda: self._stream(params, request, input_tokens)
                )
        except Exception:
            requests_total.labels(mode=mode, status="failed").inc()
            raise

        if isinstance(result, RetriesExhausted):
            requests_total.labels(mode=mode, status="exhausted").inc()
            return result

        requests_total.labels(mode=mode, status="succeeded").inc()
        tokens_total.labels(model=result.model, kind="input").inc(result.usage.input_tokens)
        tokens_total.labels(model=result.model, kind="output").inc(result.usage.output_tokens)
        log.info(
            "chat_completed",
            mode=mode,
            response_id=result.id,
            usage=asdict(result.usage),
            content=redact_text(result.content),
        )
        return result

    def _call(self, params: dict, input_tokens: int) -> ChatResponse:
        res = self._provider.chat_completions(params)
        data = res.json
        choices = data.get("choices") or []
        first = choices[0] if choices and isinstance(choices[0], dict) else {}
        message = first.get("message") or {}
        content = str(message.get("content") or "")
        return ChatResponse(
            id=data.get("id"),
            model=str(data.get("model") or params["model"]),
            choices=[
                Choice(
                    content=content,
                    role=str(message.get("role") or "assistant"),
                    finish_reason=str(first.get("finish_reason") or "stop"),
                )
            ],
            usage=Usage(
                input_tokens=res.prompt_tokens if res.prompt_tokens is not None else input_tokens,
                output_tokens=(
                    res.completion_tokens
                    if res.completion_tokens is not None
                    else rough_token_count(content)
                ),
            ),
        )

    def _stream(self, params: dict, request: ChatRequest, input_tokens: int) -> ChatResponse:
        # Свежее состояние на каждую попытку: ретрай повторяет обмен целиком.
        acc = StreamAccumulator()
        extractor = IncrementalJsonExtractor() if request.mode == "json" else None
        callback = request.callback

        for frame in self._provider.stream_chat_completions(params):
            delta = acc.feed(frame)
            if delta is None:
                continue
            if extractor is None:
                callback(acc.text, delta)
                continue
            for obj in extractor.feed(delta, accumulated=acc.text):
                callback(obj)

        state = acc.state
        return ChatResponse(
            id=state.response_id,
            model=params["model"],
            choices=[Choice(content=state.accumulated_text)],
            usage=Usage(input_tokens=input_tokens, output_tokens=state.output_tokens),
        )
