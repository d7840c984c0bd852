from abc import ABC, abstractmethod

from models import GalleryEntry


class GalleryFeed(ABC):
    """Receives finished exports for display elsewhere in the app."""

    @abstractmethod
    async def append(self, entry: GalleryEntry) -> None:
        ...

    @abstractmethod
    async def recent(self, session_id: str, limit: int = 20) -> list[GalleryEntry]:
        ...


class MemoryGalleryFeed(GalleryFeed):
    def __init__(self):
        self.entries: list[GalleryEntry] = []

    async def append(self, entry: GalleryEntry) -> None:
        self.entries.append(entry)

    async def recent(self, session_id: str, limit: int = 20) -> list[GalleryEntry]:
        entries = [e for e in self.entries if e.session_id == session_id]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]


class MongoGalleryFeed(GalleryFeed):
    collection_name = "gallery"

    def __init__(self, database):
        self.database = database

    @property
    def collection(self):
        return self.database[self.collection_name]

    async def append(self, entry: GalleryEntry) -> None:
        await self.collection.insert_one(entry.model_dump())

    async def recent(self, session_id: str, limit: int = 20) -> list[GalleryEntry]:
        documents = await self.collection.find(
            {"session_id": session_id}
        ).sort("created_at", -1).to_list(limit)
        return [GalleryEntry(**{k: v for k, v in doc.items() if k != "_id"}) for doc in documents]
