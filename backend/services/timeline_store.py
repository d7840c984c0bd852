"""Session-scoped persistence for timelines.

The stored layout is a flat, ordered list of ``{id, url, start, end,
duration}`` entries under one cache key per session. Loading is tolerant:
entries that violate ``0 <= start < end <= duration`` are dropped instead of
failing the whole load.
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from models import ClipRecord, Timeline

logger = logging.getLogger(__name__)


def cache_key(prefix: str, session_id: str) -> str:
    return f"{prefix}:{session_id}"


def clip_to_entry(clip: ClipRecord) -> dict:
    return {
        "id": clip.id,
        "url": clip.source_url,
        "start": clip.trim_start,
        "end": clip.trim_end,
        "duration": clip.source_duration,
    }


def entry_to_clip(entry) -> Optional[ClipRecord]:
    """Rebuild a record from a cache entry, or None if the entry is malformed."""
    if not isinstance(entry, dict):
        return None
    try:
        clip_id = entry["id"]
        url = entry["url"]
        start = float(entry["start"])
        end = float(entry["end"])
        duration = float(entry["duration"])
    except (KeyError, TypeError, ValueError):
        return None

    if not isinstance(clip_id, str) or not clip_id or not isinstance(url, str) or not url:
        return None
    if not all(math.isfinite(v) for v in (start, end, duration)):
        return None
    if not (0 <= start < end <= duration):
        return None

    return ClipRecord(
        id=clip_id,
        source_url=url,
        source_duration=duration,
        trim_start=start,
        trim_end=end,
    )


def timeline_to_document(timeline: Timeline) -> dict:
    return {
        "clips": [clip_to_entry(c) for c in timeline.clips],
        "selected_id": timeline.selected_id,
    }


def document_to_timeline(document: Optional[dict], key: str = "") -> Timeline:
    if not document:
        return Timeline()

    entries = document.get("clips")
    if not isinstance(entries, list):
        logger.warning(f"[Timeline] Cache {key} has no clip list, starting empty")
        return Timeline()

    clips = []
    seen = set()
    for entry in entries:
        clip = entry_to_clip(entry)
        if clip is None or clip.id in seen:
            logger.warning(f"[Timeline] Dropping malformed cache entry in {key}: {entry!r}")
            continue
        seen.add(clip.id)
        clips.append(clip)

    selected_id = document.get("selected_id")
    if selected_id not in seen:
        selected_id = None

    return Timeline(clips=clips, selected_id=selected_id)


class TimelineRepository(ABC):
    """Load/save boundary between the timeline and its storage."""

    def __init__(self, key_prefix: str = "ugc_timeline_cache"):
        self.key_prefix = key_prefix

    @abstractmethod
    async def load(self, session_id: str) -> Timeline:
        ...

    @abstractmethod
    async def save(self, session_id: str, timeline: Timeline) -> None:
        ...


class MemoryTimelineRepository(TimelineRepository):
    """Process-local cache. Stores serialized documents, not live objects."""

    def __init__(self, key_prefix: str = "ugc_timeline_cache"):
        super().__init__(key_prefix)
        self.documents: dict[str, dict] = {}

    async def load(self, session_id: str) -> Timeline:
        key = cache_key(self.key_prefix, session_id)
        return document_to_timeline(self.documents.get(key), key)

    async def save(self, session_id: str, timeline: Timeline) -> None:
        self.documents[cache_key(self.key_prefix, session_id)] = timeline_to_document(timeline)


class MongoTimelineRepository(TimelineRepository):
    """Timelines stored in the ``timeline_cache`` collection, one document per session."""

    collection_name = "timeline_cache"

    def __init__(self, database, key_prefix: str = "ugc_timeline_cache"):
        super().__init__(key_prefix)
        self.database = database

    @property
    def collection(self):
        return self.database[self.collection_name]

    async def load(self, session_id: str) -> Timeline:
        key = cache_key(self.key_prefix, session_id)
        document = await self.collection.find_one({"_id": key})
        return document_to_timeline(document, key)

    async def save(self, session_id: str, timeline: Timeline) -> None:
        key = cache_key(self.key_prefix, session_id)
        document = timeline_to_document(timeline)
        document["updated_at"] = datetime.utcnow()
        await self.collection.update_one(
            {"_id": key},
            {"$set": document},
            upsert=True,
        )
