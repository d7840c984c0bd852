from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "cinemastudio"

    # Timeline persistence
    timeline_store: Literal["memory", "mongo"] = "memory"
    timeline_cache_key: str = "ugc_timeline_cache"
    min_clip_duration: float = 0.1  # Trim floor (seconds)
    default_render_duration: float = 6.0  # Matches the default Veo render length
    playback_max_sessions: int = 64  # Preview handles kept open at once

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Local media (plain paths, file:// URLs) is only read from inside this
    # directory; empty disables local sources
    local_media_root: str = ""

    # Export
    export_dir: str = "/tmp/cinemastudio-exports"
    export_width: int = 1080
    export_height: int = 1920
    export_crf: int = 23
    export_preset: str = "medium"
    export_timeout_seconds: float = 900.0

    # AWS S3
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "us-east-2"
    aws_s3_bucket: str = ""
    presigned_url_expiration: int = 3600

    # Session
    session_cookie_name: str = "session_id"
    session_secure_cookie: bool = False

    # CORS
    frontend_url: str = "http://localhost:3000"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"  # Ignore extra env variables not defined here


@lru_cache()
def get_settings() -> Settings:
    return Settings()
