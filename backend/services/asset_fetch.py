import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from config import get_settings
from services.s3 import s3_service

logger = logging.getLogger(__name__)


class AssetFetchError(Exception):
    pass


def local_source_path(source_url: str, local_root: str) -> Optional[str]:
    """Resolved filesystem path of a local source, or None for a remote URL.

    Local sources are only accepted inside ``local_root`` (after resolving
    ``..`` and symlinks). An empty root disables them.
    """
    parsed = urlparse(source_url)
    scheme = parsed.scheme.lower()
    if scheme not in ("", "file") and len(scheme) != 1:  # Windows drive letters parse as a scheme
        return None

    if not local_root:
        raise AssetFetchError("Local media sources are disabled")

    path = Path(unquote(parsed.path) if scheme == "file" else source_url).resolve()
    if not path.is_relative_to(Path(local_root).resolve()):
        raise AssetFetchError(f"Source is outside the media root: {source_url}")
    return str(path)


async def fetch_source(source_url: str, local_path: str, local_root: Optional[str] = None) -> str:
    """Copy a clip's source media into the export workspace.

    Supports http(s) URLs, ``s3://bucket/key`` references, and ``file://``
    URLs or plain paths under the configured media root.
    """
    if local_root is None:
        local_root = get_settings().local_media_root

    parsed = urlparse(source_url)
    scheme = parsed.scheme.lower()

    if scheme in ("http", "https"):
        await _download_http(source_url, local_path)
    elif scheme == "s3":
        key = parsed.path.lstrip("/")
        if not await s3_service.download_file(key, local_path, bucket=parsed.netloc or None):
            raise AssetFetchError(f"S3 download failed for {source_url}")
    else:
        path = local_source_path(source_url, local_root)
        if path is None:
            raise AssetFetchError(f"Unsupported source scheme: {scheme}")
        if not Path(path).is_file():
            raise AssetFetchError(f"Source not found: {source_url}")
        await asyncio.to_thread(shutil.copyfile, path, local_path)

    logger.info(f"[Export] Fetched {source_url} -> {local_path}")
    return local_path


async def _download_http(url: str, local_path: str) -> None:
    async with httpx.AsyncClient(follow_redirects=True, timeout=120) as client:
        try:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with open(local_path, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
        except httpx.HTTPError as e:
            raise AssetFetchError(f"Download failed for {url}: {e}") from e
