from .s3 import (
    S3Service,
    s3_service,
)
from .timeline_controller import TimelineController
from .timeline_store import (
    TimelineRepository,
    MemoryTimelineRepository,
    MongoTimelineRepository,
)
from .playback import (
    MediaHandle,
    PlaybackCoordinator,
    PlaybackRegistry,
)
from .export_jobs import (
    CancelToken,
    ExportRegistry,
    export_registry,
)
from .export_pipeline import (
    ArtifactPublisher,
    ExportPipeline,
    ExportResult,
)
