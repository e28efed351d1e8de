"""HTTP clients for the external content and narrative services (singletons).

Both collaborators are optional: when their base URL is not configured the
accessor returns ``None`` and callers fall back to built-in behaviour.
"""

import logging
from typing import Any

import httpx

from progress_engine.config import settings

logger = logging.getLogger(__name__)


class ContentServiceClient:
    """Thin wrapper around the item-generation service HTTP API."""

    def __init__(self, base_url: str, timeout: float = 15.0) -> None:
        self._base = base_url.rstrip("/")
        self._http = httpx.Client(base_url=self._base, timeout=timeout)

    # ── health ────────────────────────────────────────────────────────────

    def healthy(self) -> bool:
        try:
            return self._http.get("/health").status_code == 200
        except httpx.HTTPError:
            return False

    # ── items ─────────────────────────────────────────────────────────────

    def generate_items(
        self,
        subject_id: str,
        subject_kind: str,
        *,
        grade: int,
        seed: str,
        count: int,
    ) -> list[dict[str, Any]]:
        r = self._http.post(
            "/items/generate",
            json={
                "subject_id": subject_id,
                "subject_kind": subject_kind,
                "grade": grade,
                "seed": seed,
                "count": count,
            },
        )
        r.raise_for_status()
        return r.json().get("items", [])

    def close(self) -> None:
        self._http.close()


class NarrativeServiceClient:
    """Forwards structured attempt evidence to the narrative generator."""

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        self._base = base_url.rstrip("/")
        self._http = httpx.Client(base_url=self._base, timeout=timeout)

    def request_narrative(self, payload: dict[str, Any]) -> dict[str, Any]:
        r = self._http.post("/narratives/", json=payload)
        r.raise_for_status()
        return r.json()

    def close(self) -> None:
        self._http.close()


# ── singleton accessors ───────────────────────────────────────────────────────

_content: ContentServiceClient | None = None
_narrative: NarrativeServiceClient | None = None


def get_content_client() -> ContentServiceClient | None:
    global _content
    if not settings.CONTENT_SERVICE_URL:
        return None
    if _content is None:
        _content = ContentServiceClient(settings.CONTENT_SERVICE_URL)
        logger.info("Content client initialised → %s", _content._base)
    return _content


def get_narrative_client() -> NarrativeServiceClient | None:
    global _narrative
    if not settings.NARRATIVE_SERVICE_URL:
        return None
    if _narrative is None:
        _narrative = NarrativeServiceClient(settings.NARRATIVE_SERVICE_URL)
        logger.info("Narrative client initialised → %s", _narrative._base)
    return _narrative


def close_clients() -> None:
    """Release pooled connections held by the singleton clients."""
    global _content, _narrative
    for client in (_content, _narrative):
        if client is not None:
            client.close()
    _content = None
    _narrative = None
