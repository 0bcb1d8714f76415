"""v1 роутер: собирает эндпоинты в один APIRouter."""

from fastapi import APIRouter

from chat_gateway.api.v1_chat import router as chat_router
from chat_gateway.api.v1_models import router as models_router

router = APIRouter()
router.include_router(chat_router)
router.include_router(models_router)
