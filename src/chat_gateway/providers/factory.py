"""Фабрика провайдеров (с кэшем инстансов на процесс)."""

from chat_gateway.providers.base import ProviderClient
from chat_gateway.providers.mock import MockProvider
from chat_gateway.providers.openai_compat import OpenAICompatibleProvider
from chat_gateway.settings import Settings

_cache: dict[str, ProviderClient] = {}


def get_provider(name: str, settings: Settings) -> ProviderClient:
    """Возвращает провайдера по имени (`mock`, `openai`)."""
    cached = _cache.get(name)
    if cached is not None:
        return cached

    if name == "mock":
        p = MockProvider()
        _cache[name] = p
        return p
    if name == "openai":
        p = OpenAICompatibleProvider(settings)
        _cache[name] = p
        return p
    raise ValueError(f"Unknown provider: {name}")
