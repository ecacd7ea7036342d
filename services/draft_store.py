"""
Storage for import wizard drafts.

Drafts are saved as versioned snapshots. A snapshot written with another
DRAFT_VERSION is discarded on load instead of being half-read.
The default store keeps snapshots in memory with a TTL (single server).
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog

from config.settings import settings
from models.draft import DRAFT_VERSION, ImportDraft

logger = structlog.get_logger(__name__)


class DraftStore(ABC):
    """Where wizard drafts live between requests."""

    @abstractmethod
    def load(self, draft_id: str) -> Optional[ImportDraft]:
        """Return the draft, or None if missing, expired or from another version."""

    @abstractmethod
    def save(self, draft: ImportDraft) -> None:
        ...

    @abstractmethod
    def clear(self, draft_id: str) -> None:
        ...


class InMemoryDraftStore(DraftStore):
    """
    Process-local draft store with expiry.
    """

    def __init__(self, ttl_minutes: Optional[int] = None):
        self.ttl_minutes = ttl_minutes or settings.draft_ttl_minutes
        self._cache: dict[str, tuple[datetime, dict[str, Any]]] = {}

    def load(self, draft_id: str) -> Optional[ImportDraft]:
        entry = self._cache.get(draft_id)
        if entry is None:
            return None

        expires_at, snapshot = entry
        if datetime.now() > expires_at:
            del self._cache[draft_id]
            logger.debug("draft_expired", draft_id=draft_id)
            return None

        if snapshot.get("version") != DRAFT_VERSION:
            del self._cache[draft_id]
            logger.info("draft_version_mismatch", draft_id=draft_id, version=snapshot.get("version"))
            return None

        return ImportDraft.model_validate(snapshot)

    def save(self, draft: ImportDraft) -> None:
        draft.updated_at = datetime.utcnow()
        expires_at = datetime.now() + timedelta(minutes=self.ttl_minutes)
        self._cache[draft.draft_id] = (expires_at, draft.model_dump())
        self._cleanup_expired()

    def clear(self, draft_id: str) -> None:
        self._cache.pop(draft_id, None)

    def _cleanup_expired(self) -> None:
        now = datetime.now()
        expired = [k for k, (exp, _) in self._cache.items() if now > exp]
        for k in expired:
            del self._cache[k]


_draft_store: Optional[DraftStore] = None


def get_draft_store() -> DraftStore:
    global _draft_store
    if _draft_store is None:
        _draft_store = InMemoryDraftStore()
    return _draft_store
