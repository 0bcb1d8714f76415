"""Интерфейс провайдера (chat completions, обычный и стриминговый)."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderResult:
    """Результат вызова провайдера + usage (если получилось достать)."""

    json: dict
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class ProviderClient:
    """Базовый интерфейс провайдера."""

    name: str

    def chat_completions(self, payload: dict) -> ProviderResult:
        raise NotImplementedError

    def stream_chat_completions(self, payload: dict) -> Iterator[dict]:
        """Отдаёт кадры стрима (`chat.completion.chunk`) в порядке прихода."""
        raise NotImplementedError
