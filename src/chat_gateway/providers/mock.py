"""Mock провайдер для демо и тестов (без внешних ключей)."""

from __future__ import annotations

import time
import uuid
from collections.abc import Iterator

from chat_gateway.providers.base import ProviderClient, ProviderResult
from chat_gateway.services.tokens import rough_token_count


def _now_ts() -> int:
    return int(time.time())


def _last_user_text(payload: dict) -> str:
    messages = payload.get("messages") or []
    if isinstance(messages, list) and messages:
        last = messages[-1]
        if isinstance(last, dict):
            return str(last.get("content") or "")
    return ""


class MockProvider(ProviderClient):
    """Отвечает эхом последнего сообщения или заранее заданным текстом.

    `chunks` задаёт точное разбиение ответа на дельты стрима; без него ответ
    режется на куски по `chunk_size` символов.
    """

    name = "mock"

    def __init__(
        self,
        reply: str | None = None,
        chunks: list[str] | None = None,
        chunk_size: int = 8,
    ) -> None:
        self._reply = reply
        self._chunks = chunks
        self._chunk_size = max(1, chunk_size)

    def _reply_text(self, payload: dict) -> str:
        if self._chunks is not None:
            return "".join(self._chunks)
        if self._reply is not None:
            return self._reply
        return f"[mock] ok: {_last_user_text(payload)[:120]}"

    def chat_completions(self, payload: dict) -> ProviderResult:
        model = str(payload.get("model") or "mock-1")
        out_text = self._reply_text(payload)
        prompt_tokens = max(1, rough_token_count(_last_user_text(payload)))
        completion_tokens = max(1, rough_token_count(out_text))
        total_tokens = prompt_tokens + completion_tokens

        result = {
            "id": f"chatcmpl_{uuid.uuid4().hex}",
            "object": "chat.completion",
            "created": _now_ts(),
            "model": model,
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": out_text},
                    "finish_reason": "stop",
                }
            ],
            "usage": {
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": total_tokens,
            },
        }
        return ProviderResult(
            json=result,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
        )

    def stream_chat_completions(self, payload: dict) -> Iterator[dict]:
        model = str(payload.get("model") or "mock-1")
        response_id = f"chatcmpl_{uuid.uuid4().hex}"
        created = _now_ts()

        if self._chunks is not None:
            chunks = list(self._chunks)
        else:
            text = self._reply_text(payload)
            step = self._chunk_size
            chunks = [text[i : i + step] for i in range(0, len(text), step)]

        for piece in chunks:
            yield {
                "id": response_id,
                "object": "chat.completion.chunk",
                "created": created,
                "model": model,
                "choices": [{"index": 0, "delta": {"content": piece}, "finish_reason": None}],
            }
        yield {
            "id": response_id,
            "object": "chat.completion.chunk",
            "created": created,
            "model": model,
            "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}],
        }
