"""CLI утилита (список моделей и пробный вызов шлюза со стримингом)."""

import argparse
import json
import sys
from typing import Any

from chat_gateway.gateway import ChatGateway, ChatRequest
from chat_gateway.infrastructure.logging import configure_logging
from chat_gateway.providers.factory import get_provider
from chat_gateway.services.models import ModelCatalog
from chat_gateway.services.retry import RetriesExhausted
from chat_gateway.settings import get_settings


def cmd_models(args: argparse.Namespace) -> int:
    """Печатает поддерживаемые модели (reasoning-модели помечены)."""
    catalog = ModelCatalog()
    for model_id in catalog.supported_models():
        mark = " (reasoning)" if catalog.is_reasoning_model(model_id) else ""
        print(f"{model_id}{mark}")
    if args.aliases:
        for alias, target in catalog.aliases.items():
            print(f"{alias} -> {target}")
    return 0


def cmd_ask(args: argparse.Namespace) -> int:
    """Отправляет запрос и печатает дельты (text) или объекты (json) по мере прихода."""
    settings = get_settings()
    configure_logging(settings)
    provider = get_provider(args.provider or settings.default_provider, settings)
    gateway = ChatGateway.from_settings(settings, provider=provider)

    def on_text(accumulated: str, delta: str) -> None:
        sys.stdout.write(delta)
        sys.stdout.flush()

    def on_json(obj: Any) -> None:
        print(json.dumps(obj, ensure_ascii=False))

    callback = None
    if not args.no_stream:
        callback = on_json if args.mode == "json" else on_text

    request = ChatRequest(
        model=args.model or settings.default_model,
        system=args.system,
        user=args.user,
        callback=callback,
        mode=args.mode,
        temperature=args.temperature,
    )
    result = gateway.complete(request)
    if isinstance(result, RetriesExhausted):
        print(
            f"\nRetries exhausted ({result.kind}, {result.attempts} attempts): {result.error}",
            file=sys.stderr,
        )
        return 2

    if callback is None:
        print(result.content)
    elif args.mode == "text":
        print()
    print(
        f"id={result.id} input_tokens={result.usage.input_tokens} "
        f"output_tokens={result.usage.output_tokens}",
        file=sys.stderr,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Точка входа CLI."""
    parser = argparse.ArgumentParser(prog="chat-gateway", description="Chat Gateway: CLI")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_models = sub.add_parser("models", help="Список поддерживаемых моделей")
    p_models.add_argument("--aliases", action="store_true", help="Показать и алиасы")
    p_models.set_defaults(func=cmd_models)

    p_ask = sub.add_parser("ask", help="Отправить запрос в LLM")
    p_ask.add_argument("--model", default=None, help="Модель или алиас (по умолчанию DEFAULT_MODEL)")
    p_ask.add_argument("--system", default=None, help="Системный промпт")
    p_ask.add_argument("--user", required=True, help="Сообщение пользователя")
    p_ask.add_argument(
        "--mode",
        choices=["text", "json"],
        default="text",
        help="Режим стриминга",
    )
    p_ask.add_argument("--temperature", type=float, default=None, help="Температура")
    p_ask.add_argument("--provider", default=None, help="Провайдер (`mock`, `openai`)")
    p_ask.add_argument("--no-stream", action="store_true", help="Без стриминга")
    p_ask.set_defaults(func=cmd_ask)

    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
