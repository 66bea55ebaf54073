"""
Health check endpoint.
"""
from fastapi import APIRouter

from chat_backend.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check():
    return {"status": "ok", "service": settings.PROJECT_NAME}
