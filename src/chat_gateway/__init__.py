"""Chat Gateway: единый стриминговый контракт поверх OpenAI-совместимых LLM."""

__version__ = "0.1.0"
