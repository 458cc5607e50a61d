"""Top-level API router: health probe and the chat endpoints."""

from fastapi import APIRouter

from app.api.endpoints import chat, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(chat.router, prefix="/chat", tags=["chat"])
