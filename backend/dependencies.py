from functools import lru_cache

from config import get_settings
from database import get_database
from services.export_pipeline import ArtifactPublisher, ExportPipeline
from services.gallery import GalleryFeed, MemoryGalleryFeed, MongoGalleryFeed
from services.media_engine import EncodeOptions, FFmpegEngine
from services.playback import PlaybackRegistry
from services.s3 import s3_service
from services.timeline_store import MemoryTimelineRepository, MongoTimelineRepository, TimelineRepository


@lru_cache()
def _memory_timelines() -> MemoryTimelineRepository:
    return MemoryTimelineRepository(get_settings().timeline_cache_key)


@lru_cache()
def _memory_gallery() -> MemoryGalleryFeed:
    return MemoryGalleryFeed()


def get_timeline_repository() -> TimelineRepository:
    settings = get_settings()
    if settings.timeline_store == "mongo":
        return MongoTimelineRepository(get_database(), settings.timeline_cache_key)
    return _memory_timelines()


def get_gallery() -> GalleryFeed:
    if get_settings().timeline_store == "mongo":
        return MongoGalleryFeed(get_database())
    return _memory_gallery()


@lru_cache()
def get_media_engine() -> FFmpegEngine:
    settings = get_settings()
    return FFmpegEngine(
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
        options=EncodeOptions(
            width=settings.export_width,
            height=settings.export_height,
            crf=settings.export_crf,
            preset=settings.export_preset,
        ),
    )


def get_export_pipeline() -> ExportPipeline:
    settings = get_settings()
    return ExportPipeline(
        engine=get_media_engine(),
        publisher=ArtifactPublisher(s3_service, settings.export_dir),
        gallery=get_gallery(),
        timeout=settings.export_timeout_seconds,
    )


def _moviepy_handle():
    # MoviePy is only loaded once a preview is requested
    from services.media_handle import MoviePyMediaHandle
    return MoviePyMediaHandle(get_settings().local_media_root)


@lru_cache()
def get_playback_registry() -> PlaybackRegistry:
    return PlaybackRegistry(_moviepy_handle, get_settings().playback_max_sessions)
