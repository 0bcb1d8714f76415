"""Эндпоинт `/v1/chat/completions` (sync или с серверным стримингом в text/json режиме)."""

import time
from typing import Any

import structlog
from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse

from chat_gateway.gateway import ChatGateway, ChatRequest
from chat_gateway.providers.factory import get_provider
from chat_gateway.services.errors import (
    error_payload,
    map_exhaustion,
    map_provider_exception,
)
from chat_gateway.services.retry import RetriesExhausted
from chat_gateway.settings import get_settings

router = APIRouter()
log = structlog.get_logger()

_gateways: dict[str, ChatGateway] = {}


def gateway_for(provider_name: str) -> ChatGateway:
    """Шлюз на провайдера (кэш на процесс, как и у фабрики провайдеров)."""
    cached = _gateways.get(provider_name)
    if cached is not None:
        return cached
    settings = get_settings()
    gw = ChatGateway.from_settings(settings, provider=get_provider(provider_name, settings))
    _gateways[provider_name] = gw
    return gw


@router.post("/chat/completions")
def chat_completions(
    payload: dict,
    x_provider: str | None = Header(default=None, alias="X-Provider"),
) -> Any:
    settings = get_settings()
    provider_name = x_provider or settings.default_provider
    t0 = time.time()

    # Серверный стриминг: собираем то, что колбэк получил до завершения вызова.
    objects: list[Any] = []
    deltas: list[str] = []

    def on_text(accumulated: str, delta: str) -> None:
        deltas.append(delta)

    def on_json(obj: Any) -> None:
        objects.append(obj)

    stream_mode = payload.get("stream_mode")
    callback = None
    if stream_mode == "json":
        callback = on_json
    elif stream_mode:
        callback = on_text

    if not payload.get("model"):
        payload = {**payload, "model": settings.default_model}

    try:
        request = ChatRequest.from_payload(payload, callback=callback)
        result = gateway_for(provider_name).complete(request)
    except Exception as e:
        pub = map_provider_exception(e)
        log.warning(
            "provider_error",
            endpoint="chat",
            provider=provider_name,
            code=pub.code,
            err=str(e),
        )
        return JSONResponse(status_code=pub.status_code, content=error_payload(pub))

    latency_ms = int((time.time() - t0) * 1000)
    if isinstance(result, RetriesExhausted):
        pub = map_exhaustion(result)
        return JSONResponse(status_code=pub.status_code, content=error_payload(pub))

    resp_json = result.to_dict()
    if stream_mode == "json":
        resp_json["objects"] = objects
    elif stream_mode:
        resp_json["deltas"] = len(deltas)
    resp_json["meta"] = {"provider": provider_name, "latency_ms": latency_ms}
    return resp_json
