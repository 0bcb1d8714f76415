"""Инкрементальное извлечение JSON-объектов из растущего текстового буфера.

Модель может перемежать объекты `{...}` обычным текстом. Буфер хранится целиком
и пересканируется на каждой дельте, поэтому объект отдаётся ровно один раз, как
только его закрывающая скобка пришла и он распарсился.

Дедупликация идёт по точному тексту фрагмента: два одинаковых объекта в разных
местах потока будут отданы один раз.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

import structlog

from chat_gateway.metrics import json_objects_total

log = structlog.get_logger()


def _matching_close(text: str, start: int) -> int | None:
    """Индекс `}`, на которой глубина от `{` в позиции `start` возвращается к нулю."""
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def iter_brace_regions(text: str) -> Iterator[str]:
    """Отдаёт сбалансированные фрагменты `{...}` слева направо (счётчик глубины).

    Если `{` так и не закрылась, поиск продолжается со следующей `{`, поэтому
    лишняя скобка в прозе или в строковом литерале не блокирует объекты после
    неё. Скобки внутри строк не различаются: ложные срабатывания отсеивает
    `json.loads`.
    """
    pos = text.find("{")
    while pos != -1:
        end = _matching_close(text, pos)
        if end is None:
            pos = text.find("{", pos + 1)
            continue
        yield text[pos : end + 1]
        pos = text.find("{", end + 1)


class IncrementalJsonExtractor:
    """Состояние одного вызова: буфер, отданные и отбракованные фрагменты."""

    def __init__(self) -> None:
        self.buffer = ""
        self.emitted: set[str] = set()
        self._rejected: set[str] = set()

    def feed(self, delta: str, accumulated: str = "") -> list[Any]:
        """Дописывает дельту в буфер и возвращает новые объекты в порядке обнаружения."""
        self.buffer += delta
        return self.scan(delta=delta, accumulated=accumulated)

    def scan(self, delta: str = "", accumulated: str = "") -> list[Any]:
        if "}" not in self.buffer:
            return []

        found: list[Any] = []
        for span in iter_brace_regions(self.buffer):
            if span in self.emitted or span in self._rejected:
                continue
            try:
                value = json.loads(span)
            except (ValueError, RecursionError) as e:
                self._rejected.add(span)
                json_objects_total.labels(status="rejected").inc()
                log.warning(
                    "json_extract_failed",
                    err=str(e),
                    span=span,
                    json_buffer=self.buffer,
                    accumulated=accumulated,
                    delta=delta,
                )
                continue
            self.emitted.add(span)
            json_objects_total.labels(status="emitted").inc()
            found.append(value)
        return found
