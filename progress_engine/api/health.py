"""Health check endpoint."""

from fastapi import APIRouter

from progress_engine.catalog import CATALOG_VERSION
from progress_engine.services.service_clients import get_content_client

router = APIRouter()


@router.get("/health")
def health():
    content = get_content_client()
    return {
        "status": "healthy",
        "service": "learning-progress-engine",
        "catalog_version": CATALOG_VERSION,
        "content_service": "builtin" if content is None else ("up" if content.healthy() else "down"),
    }
