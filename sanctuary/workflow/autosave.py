"""Debounced draft autosave.

Rapid edits to one story are merged in memory and written once after
``autosave_debounce_seconds`` of quiet. Workflow transitions call
``flush(story_id)`` first so they always see the latest text. Losing the
final pending edit on an abrupt shutdown is acceptable.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from sanctuary.config import get_settings
from sanctuary.utils.logging_config import StoryAdapter, get_logger
from sanctuary.workflow.machine import SaveDraft

_logger = get_logger("sanctuary.autosave")

SaveCallback = Callable[[str, SaveDraft], Awaitable[None]]


def merge_drafts(older: SaveDraft, newer: SaveDraft) -> SaveDraft:
    content = None
    if older.content is not None or newer.content is not None:
        content = {**(older.content or {}), **(newer.content or {})}
    return SaveDraft(
        content=content,
        inspiration_text=newer.inspiration_text if newer.inspiration_text is not None else older.inspiration_text,
        inspiration_image_ref=(
            newer.inspiration_image_ref if newer.inspiration_image_ref is not None else older.inspiration_image_ref
        ),
        title=newer.title if newer.title is not None else older.title,
    )


class DraftAutosaver:
    def __init__(self, save: SaveCallback, delay: Optional[float] = None):
        self._save = save
        self._delay = delay if delay is not None else get_settings().autosave_debounce_seconds
        self._pending: Dict[str, SaveDraft] = {}
        self._timers: Dict[str, asyncio.Task] = {}
        # Timers that finished sleeping and are now writing
        self._writes: Dict[str, asyncio.Task] = {}

    def pending(self, story_id: str) -> Optional[SaveDraft]:
        return self._pending.get(story_id)

    def is_dirty(self, story_id: str) -> bool:
        return story_id in self._pending or story_id in self._writes

    def schedule(self, story_id: str, draft: SaveDraft) -> None:
        existing = self._pending.get(story_id)
        self._pending[story_id] = merge_drafts(existing, draft) if existing else draft

        timer = self._timers.pop(story_id, None)
        if timer is not None:
            timer.cancel()
        self._timers[story_id] = asyncio.create_task(self._fire_later(story_id))

    async def flush(self, story_id: str) -> None:
        """Return once every edit scheduled so far is written."""
        timer = self._timers.pop(story_id, None)
        if timer is not None:
            timer.cancel()
        await self._settle(story_id)
        draft = self._pending.pop(story_id, None)
        if draft is not None:
            await self._save(story_id, draft)

    async def flush_all(self) -> None:
        for story_id in set(self._pending) | set(self._writes):
            try:
                await self.flush(story_id)
            except Exception:
                StoryAdapter(_logger, story_id).exception("autosave flush failed")

    async def _settle(self, story_id: str) -> None:
        writing = self._writes.get(story_id)
        if writing is not None and writing is not asyncio.current_task():
            await asyncio.wait({writing})

    async def _fire_later(self, story_id: str) -> None:
        await asyncio.sleep(self._delay)
        this = asyncio.current_task()
        self._timers.pop(story_id, None)
        previous = self._writes.get(story_id)
        self._writes[story_id] = this
        try:
            if previous is not None:
                await asyncio.wait({previous})
            draft = self._pending.pop(story_id, None)
            if draft is not None:
                await self._save(story_id, draft)
        except Exception:
            StoryAdapter(_logger, story_id).exception("autosave failed")
        finally:
            if self._writes.get(story_id) is this:
                del self._writes[story_id]
