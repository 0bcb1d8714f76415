"""Каталог моделей: алиасы, reasoning-модели, список поддерживаемых id."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

DEFAULT_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "4o": "openai/chatgpt-4o-latest",
        "o1": "openai/o1",
        "4o-mini": "openai/gpt-4o-mini",
    }
)

# Маркеры семейства reasoning-моделей: такие модели не принимают temperature.
REASONING_MARKERS: tuple[str, ...] = ("o1", "o3", "o4")

SUPPORTED_MODELS: tuple[str, ...] = (
    "openai/gpt-5",
    "openai/gpt-5-mini",
    "openai/gpt-5-nano",
    "openai/gpt-5-chat",
    "anthropic/claude-opus-4.6",
    "anthropic/claude-opus-4.5",
    "anthropic/claude-sonnet-4.5",
    "anthropic/claude-3.7-sonnet",
    "anthropic/claude-3.7-sonnet:thinking",
    "anthropic/claude-opus-4",
    "anthropic/claude-sonnet-4",
    "google/gemini-2.5-flash-preview-09-2025",
    "google/gemini-2.5-pro",
    "x-ai/grok-4-fast",
    "x-ai/grok-code-fast-1",
    "x-ai/grok-4",
    "openai/o1",
    "openai/o3",
    "openai/o4-mini",
    "openai/o4-mini-high",
    "openai/gpt-4o-mini",
    "openai/gpt-4.1",
    "openai/gpt-4.1-mini",
    "openai/chatgpt-4o-latest",
    "qwen/qwen3-max",
    "moonshotai/kimi-k2-0905",
)


@dataclass(frozen=True)
class ModelCatalog:
    """Чистый lookup без изменяемого состояния."""

    aliases: Mapping[str, str] = field(default_factory=lambda: DEFAULT_ALIASES)
    models: tuple[str, ...] = SUPPORTED_MODELS
    reasoning_markers: tuple[str, ...] = REASONING_MARKERS

    def resolve(self, model: str) -> str:
        """Алиас -> канонический id; неизвестные id возвращаются как есть."""
        return self.aliases.get(model, model)

    def is_reasoning_model(self, model: str) -> bool:
        return any(marker in model for marker in self.reasoning_markers)

    def supported_models(self) -> list[str]:
        return list(self.models)

    def is_supported(self, model: str) -> bool:
        return self.resolve(model) in self.models
