"""Накопление текстовых дельт из кадров стрима."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class StreamState:
    """Состояние одного вызова; живёт, пока вызов не вернул ответ."""

    accumulated_text: str = ""
    output_tokens: int = 0
    response_id: str | None = None


def frame_delta(frame: dict) -> str | None:
    """Достаёт `choices[0].delta.content` из кадра (None, если его нет)."""
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


class StreamAccumulator:
    def __init__(self) -> None:
        self.state = StreamState()

    @property
    def text(self) -> str:
        return self.state.accumulated_text

    def feed(self, frame: dict) -> str | None:
        """Учитывает кадр; возвращает непустую дельту или None.

        Выходные токены считаются как один токен на дельту (грубая замена
        настоящему подсчёту).
        """
        frame_id = frame.get("id")
        if self.state.response_id is None and frame_id:
            self.state.response_id = str(frame_id)

        delta = frame_delta(frame)
        if not delta:
            return None
        self.state.accumulated_text += delta
        self.state.output_tokens += 1
        return delta
