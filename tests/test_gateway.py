from collections.abc import Iterator

import pytest

from chat_gateway.gateway import ChatGateway, ChatRequest
from chat_gateway.providers.base import ProviderClient, ProviderResult
from chat_gateway.providers.mock import MockProvider
from chat_gateway.services.errors import (
    InvalidRequestError,
    RateLimitedError,
    UnsupportedStreamModeError,
)
from chat_gateway.services.retry import RetriesExhausted, RetryPolicy
from chat_gateway.services.tokens import rough_token_count


class RecordingProvider(ProviderClient):
    """Стримит заданные дельты; первые `failures` вызовов падают с 429."""

    name = "recording"

    def __init__(self, deltas: list[str], failures: int = 0) -> None:
        self.deltas = deltas
        self.failures = failures
        self.payloads: list[dict] = []

    def chat_completions(self, payload: dict) -> ProviderResult:
        self.payloads.append(payload)
        return ProviderResult(
            json={
                "id": "gen-sync",
                "model": payload["model"],
                "choices": [{"message": {"role": "assistant", "content": "".join(self.deltas)}}],
            }
        )

    def stream_chat_completions(self, payload: dict) -> Iterator[dict]:
        self.payloads.append(payload)
        if len(self.payloads) <= self.failures:
            raise RateLimitedError("429")
        yield {"id": "", "choices": []}
        for d in self.deltas:
            yield {"id": "gen-1", "choices": [{"delta": {"content": d}}]}
        yield {"id": "gen-1", "choices": [{"delta": {}, "finish_reason": "stop"}]}


def _gateway(provider: ProviderClient, sleeps: list[float] | None = None) -> ChatGateway:
    sleeps = [] if sleeps is None else sleeps
    return ChatGateway(provider, retry_policy=RetryPolicy(sleep=sleeps.append))


def test_sync_call_end_to_end_with_mock() -> None:
    gw = _gateway(MockProvider())
    result = gw.complete(
        ChatRequest(model="openai/gpt-5-mini", system="Be helpful", user="Hi, please help.")
    )
    assert not isinstance(result, RetriesExhausted)
    assert result.id
    assert len(result.choices) == 1
    assert result.choices[0].role == "assistant"
    assert result.content
    assert result.usage.input_tokens > 0


def test_text_mode_streams_growing_text() -> None:
    provider = RecordingProvider(["Hel", "", "lo", " world"])
    calls: list[tuple[str, str]] = []
    result = _gateway(provider).complete(
        ChatRequest(
            model="openai/gpt-5-mini",
            user="hi",
            callback=lambda accumulated, delta: calls.append((accumulated, delta)),
        )
    )
    assert calls == [("Hel", "Hel"), ("Hello", "lo"), ("Hello world", " world")]
    assert result.content == "Hello world"
    assert result.choices[0].finish_reason == "stop"
    assert result.id == "gen-1"
    assert result.usage.output_tokens == 3
    assert result.usage.input_tokens == rough_token_count(" hi")


def test_json_mode_emits_objects_as_they_complete() -> None:
    text = '{"a":1}garbage{"b":2}'
    emitted: list[tuple[int, object]] = []
    seen_chars = {"n": 0}

    def on_object(obj: object) -> None:
        emitted.append((seen_chars["n"], obj))

    class CountingProvider(RecordingProvider):
        def stream_chat_completions(self, payload: dict) -> Iterator[dict]:
            for frame in super().stream_chat_completions(payload):
                if frame.get("choices") and frame["choices"][0].get("delta", {}).get("content"):
                    seen_chars["n"] += 1
                yield frame

    provider = CountingProvider(list(text))
    result = _gateway(provider).complete(
        ChatRequest(model="openai/gpt-5-mini", user="go", callback=on_object, mode="json")
    )
    assert emitted == [(7, {"a": 1}), (len(text), {"b": 2})]
    assert result.content == text


def test_reasoning_models_get_no_temperature() -> None:
    provider = RecordingProvider(["ok"])
    gw = _gateway(provider)
    gw.complete(ChatRequest(model="o1", user="hi"))
    gw.complete(ChatRequest(model="4o", user="hi"))
    gw.complete(ChatRequest(model="openai/gpt-5-mini", user="hi", temperature=0.1))
    first, second, third = provider.payloads
    assert first["model"] == "openai/o1"
    assert "temperature" not in first
    assert second["model"] == "openai/chatgpt-4o-latest"
    assert second["temperature"] == 0.7
    assert third["temperature"] == 0.1


def test_messages_take_precedence_over_system_user() -> None:
    provider = RecordingProvider(["ok"])
    messages = [{"role": "user", "content": "one"}, {"role": "assistant", "content": "two"}]
    _gateway(provider).complete(
        ChatRequest(model="openai/gpt-5", system="sys", user="u", messages=messages)
    )
    assert provider.payloads[0]["messages"] == messages


def test_unsupported_mode_fails_before_network() -> None:
    provider = RecordingProvider(["ok"])
    with pytest.raises(UnsupportedStreamModeError):
        _gateway(provider).complete(
            ChatRequest(model="openai/gpt-5", user="hi", callback=print, mode="xml")
        )
    assert provider.payloads == []


def test_empty_messages_rejected() -> None:
    with pytest.raises(InvalidRequestError):
        _gateway(RecordingProvider([])).complete(ChatRequest(model="openai/gpt-5"))


def test_rate_limited_stream_is_retried_from_scratch() -> None:
    provider = RecordingProvider(["a", "b"], failures=2)
    sleeps: list[float] = []
    calls: list[str] = []
    result = _gateway(provider, sleeps).complete(
        ChatRequest(
            model="openai/gpt-5",
            user="hi",
            callback=lambda accumulated, delta: calls.append(accumulated),
        )
    )
    assert result.content == "ab"
    assert calls == ["a", "ab"]
    assert sleeps == [2.0, 4.0]


def test_rate_limit_exhaustion_returns_typed_result() -> None:
    provider = RecordingProvider(["a"], failures=100)
    result = _gateway(provider).complete(
        ChatRequest(model="openai/gpt-5", user="hi", callback=lambda a, d: None)
    )
    assert isinstance(result, RetriesExhausted)
    assert result.attempts == 6
    assert len(provider.payloads) == 6


def test_callback_errors_propagate() -> None:
    def broken(accumulated: str, delta: str) -> None:
        raise RuntimeError("callback failed")

    with pytest.raises(RuntimeError, match="callback failed"):
        _gateway(RecordingProvider(["a"])).complete(
            ChatRequest(model="openai/gpt-5", user="hi", callback=broken)
        )


def test_response_to_dict_shape() -> None:
    result = _gateway(MockProvider(reply="hello")).complete(
        ChatRequest(model="openai/gpt-5", user="hi")
    )
    data = result.to_dict()
    assert data["choices"] == [
        {"index": 0, "message": {"role": "assistant", "content": "hello"}, "finish_reason": "stop"}
    ]
    assert set(data["usage"]) == {"input_tokens", "output_tokens"}


def test_from_payload() -> None:
    req = ChatRequest.from_payload(
        {"model": "4o", "user": "hi", "stream_mode": "json", "temperature": 0.2}
    )
    assert req.mode == "json"
    assert req.temperature == 0.2
    with pytest.raises(InvalidRequestError):
        ChatRequest.from_payload({"user": "hi"})


def test_explicit_empty_messages_are_rejected() -> None:
    provider = RecordingProvider(["ok"])
    with pytest.raises(InvalidRequestError):
        _gateway(provider).complete(
            ChatRequest(model="openai/gpt-5", system="sys", user="u", messages=[])
        )
    assert provider.payloads == []


def test_json_mode_survives_deeply_nested_span() -> None:
    depth = 100_000
    text = '{"a":' * depth + "1" + "}" * depth + ' {"b": 2}'
    emitted: list[object] = []
    result = _gateway(RecordingProvider([text])).complete(
        ChatRequest(model="openai/gpt-5", user="go", callback=emitted.append, mode="json")
    )
    assert not isinstance(result, RetriesExhausted)
    assert emitted[-1] == {"b": 2}
