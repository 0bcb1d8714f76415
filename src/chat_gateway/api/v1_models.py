"""Models discovery (`/v1/models`) по каталогу шлюза."""

from fastapi import APIRouter

from chat_gateway.services.models import ModelCatalog

router = APIRouter()

_catalog = ModelCatalog()


@router.get("/models")
def list_models() -> dict:
    return {
        "object": "list",
        "data": [
            {
                "id": model_id,
                "object": "model",
                "owned_by": model_id.split("/", 1)[0],
                "reasoning": _catalog.is_reasoning_model(model_id),
            }
            for model_id in _catalog.supported_models()
        ],
        "aliases": dict(_catalog.aliases),
    }
