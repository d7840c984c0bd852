"""Timeline export: trim every clip and concatenate them into one file.

The pipeline is an explicit list of named async steps run one after the
other against a private workspace:

1. Start the media engine
2. Fetch and probe each source, in timeline order
3. Decide between stream copy and re-encoding
4. Trim each clip to its window
5. Concatenate the trimmed copies
6. Publish the artifact (S3 or the local export directory)
7. Append the result to the gallery

Any failure aborts the whole export; nothing is published and the caller
gets a single ``ExportFailedError``. The timeline itself is never touched.
"""

import asyncio
import logging
import os
import shutil
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from errors import (
    ExportCancelledError,
    ExportError,
    ExportFailedError,
    ExportStepFailure,
    NothingToExportError,
)
from models import ClipRecord, GalleryEntry
from services.asset_fetch import fetch_source
from services.export_jobs import CancelToken
from services.gallery import GalleryFeed
from services.media_engine import MediaInfo
from services.s3 import S3Service

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class ExportStep:
    name: str
    action: Callable[[], Awaitable[None]]


@dataclass
class ExportResult:
    export_id: str
    url: str
    duration: float
    clip_count: int
    created_at: datetime


@dataclass
class _Workspace:
    """Per-export scratch state shared by the steps."""

    root: str
    sources: list[str] = field(default_factory=list)
    infos: list[MediaInfo] = field(default_factory=list)
    trimmed: list[str] = field(default_factory=list)
    reencode: bool = False
    output: str = ""
    output_duration: float = 0.0
    url: str = ""


class ArtifactPublisher:
    """Turns the finished file into a downloadable URL."""

    def __init__(self, s3: S3Service, export_dir: str, url_prefix: str = "/exports"):
        self.s3 = s3
        self.export_dir = export_dir
        self.url_prefix = url_prefix

    async def publish(self, local_path: str, session_id: str, filename: str) -> str:
        if self.s3.is_configured():
            s3_key = f"exports/{session_id}/{filename}"
            if not await self.s3.upload_file(local_path, s3_key):
                raise RuntimeError("Failed to upload exported video")
            url = await self.s3.get_download_url(s3_key)
            if not url:
                raise RuntimeError("Failed to sign exported video URL")
            return url

        os.makedirs(self.export_dir, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, local_path, os.path.join(self.export_dir, filename))
        return f"{self.url_prefix}/{filename}"


class ExportPipeline:
    def __init__(
        self,
        engine,
        publisher: ArtifactPublisher,
        gallery: GalleryFeed,
        timeout: Optional[float] = None,
        fetch: Callable[[str, str], Awaitable[str]] = fetch_source,
    ):
        self.engine = engine
        self.publisher = publisher
        self.gallery = gallery
        self.timeout = timeout
        self.fetch = fetch

    async def run(
        self,
        session_id: str,
        clips: Sequence[ClipRecord],
        token: Optional[CancelToken] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ExportResult:
        """Export a snapshot of the timeline.

        Raises NothingToExportError for an empty timeline (the engine is not
        started), ExportCancelledError when ``token`` is cancelled, and
        ExportFailedError for every other failure.
        """
        clips = tuple(clips)
        if not clips:
            raise NothingToExportError()

        token = token or CancelToken()
        export_id = str(uuid.uuid4())
        logger.info(f"[Export] {export_id}: starting with {len(clips)} clips")

        try:
            return await asyncio.wait_for(
                self._execute(export_id, session_id, clips, token, progress),
                timeout=self.timeout,
            )
        except ExportCancelledError:
            logger.info(f"[Export] {export_id}: cancelled")
            raise
        except asyncio.TimeoutError as e:
            logger.error(f"[Export] {export_id}: timed out after {self.timeout}s")
            raise ExportFailedError("timed out") from e
        except ExportError as e:
            logger.error(f"[Export] {export_id}: {e}")
            raise ExportFailedError(str(e)) from e
        except Exception as e:
            logger.exception(f"[Export] {export_id}: unexpected failure")
            raise ExportFailedError(str(e)) from e

    async def _execute(
        self,
        export_id: str,
        session_id: str,
        clips: tuple[ClipRecord, ...],
        token: CancelToken,
        progress: Optional[ProgressCallback],
    ) -> ExportResult:
        with tempfile.TemporaryDirectory(prefix=f"cinemastudio-{export_id}-", ignore_cleanup_errors=True) as temp_dir:
            workspace = _Workspace(root=temp_dir)
            created_at = datetime.utcnow()
            steps = self._build_steps(export_id, session_id, clips, workspace, created_at)

            for index, step in enumerate(steps, start=1):
                token.raise_if_cancelled()
                if progress:
                    progress(index, len(steps), step.name)
                logger.debug(f"[Export] {export_id}: step {index}/{len(steps)} {step.name}")
                try:
                    await step.action()
                except ExportError:
                    raise
                except Exception as e:
                    raise ExportStepFailure(step.name, str(e)) from e

            return ExportResult(
                export_id=export_id,
                url=workspace.url,
                duration=workspace.output_duration,
                clip_count=len(clips),
                created_at=created_at,
            )

    def _build_steps(
        self,
        export_id: str,
        session_id: str,
        clips: tuple[ClipRecord, ...],
        ws: _Workspace,
        created_at: datetime,
    ) -> list[ExportStep]:
        planned_duration = sum(c.clip_duration for c in clips)
        filename = f"export_{export_id}.mp4"

        async def start_engine():
            await self.engine.initialize()

        def fetch_step(i: int, clip: ClipRecord):
            async def action():
                path = os.path.join(ws.root, f"input{i}{_suffix(clip.source_url)}")
                await self.fetch(clip.source_url, path)
                ws.sources.append(path)
                ws.infos.append(await self.engine.probe(path))
            return action

        async def plan_encoding():
            ws.reencode = len({info.encoding_key for info in ws.infos}) > 1
            logger.info(f"[Export] {export_id}: {'re-encoding' if ws.reencode else 'stream copy'}")

        def trim_step(i: int, clip: ClipRecord):
            async def action():
                path = os.path.join(ws.root, f"output{i}.mp4")
                await self.engine.trim(
                    ws.sources[i],
                    path,
                    clip.trim_start,
                    clip.trim_end,
                    reencode=ws.reencode,
                    has_audio=ws.infos[i].has_audio,
                )
                ws.trimmed.append(path)
            return action

        async def concatenate():
            ws.output = os.path.join(ws.root, filename)
            await self.engine.concat(ws.trimmed, ws.output)
            info = await self.engine.probe(ws.output)
            ws.output_duration = info.duration or planned_duration

        async def publish():
            ws.url = await self.publisher.publish(ws.output, session_id, filename)

        async def announce():
            await self.gallery.append(GalleryEntry(
                export_id=export_id,
                session_id=session_id,
                url=ws.url,
                duration=ws.output_duration,
                clip_count=len(clips),
                created_at=created_at,
            ))

        steps = [ExportStep("Starting media engine", start_engine)]
        steps += [ExportStep(f"Fetching clip {i + 1}", fetch_step(i, c)) for i, c in enumerate(clips)]
        steps.append(ExportStep("Planning encode", plan_encoding))
        steps += [ExportStep(f"Trimming clip {i + 1}", trim_step(i, c)) for i, c in enumerate(clips)]
        steps.append(ExportStep("Concatenating clips", concatenate))
        steps.append(ExportStep("Publishing export", publish))
        steps.append(ExportStep("Updating gallery", announce))
        return steps


def _suffix(source_url: str) -> str:
    suffix = Path(source_url.split("?", 1)[0]).suffix
    return suffix if suffix and len(suffix) <= 5 else ".mp4"
