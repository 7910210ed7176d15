from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from uuid import uuid4

from app.core.errors import DraftNotFoundError
from app.services.editor import InvoiceEditor, InvoiceStore


logger = logging.getLogger(__name__)

DEFAULT_IDLE_SECONDS = 2 * 60 * 60


class DraftRegistry:
    """Open receipt forms, one :class:`InvoiceEditor` per draft id.

    Drafts nobody has touched for ``idle_seconds`` are dropped the next time
    the registry is used. A draft in the middle of a request is never dropped.
    """

    def __init__(self, idle_seconds: float = DEFAULT_IDLE_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self.idle_seconds = idle_seconds
        self.clock = clock
        self._drafts: dict[str, InvoiceEditor] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._drafts)

    def _evict_idle(self, now: float) -> None:
        expired = [
            draft_id
            for draft_id, seen in self._last_seen.items()
            if now - seen > self.idle_seconds and not self._drafts[draft_id].busy
        ]
        for draft_id in expired:
            del self._drafts[draft_id]
            del self._last_seen[draft_id]
        if expired:
            logger.info("Dropped %d idle drafts", len(expired))

    def open(self, gateway: InvoiceStore, owner_id: str | None = None) -> tuple[str, InvoiceEditor]:
        draft_id = uuid4().hex
        editor = InvoiceEditor(gateway, owner_id=owner_id)
        with self._lock:
            now = self.clock()
            self._evict_idle(now)
            self._drafts[draft_id] = editor
            self._last_seen[draft_id] = now
        return draft_id, editor

    def get(self, draft_id: str) -> InvoiceEditor:
        with self._lock:
            now = self.clock()
            self._evict_idle(now)
            editor = self._drafts.get(draft_id)
            if editor is None:
                raise DraftNotFoundError(f"Draft {draft_id} not found")
            self._last_seen[draft_id] = now
        return editor

    def close(self, draft_id: str) -> None:
        with self._lock:
            self._last_seen.pop(draft_id, None)
            if self._drafts.pop(draft_id, None) is None:
                raise DraftNotFoundError(f"Draft {draft_id} not found")
