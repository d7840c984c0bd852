from .clip import (
    TrimField,
    Direction,
    ClipRecord,
    ClipAppend,
    TrimUpdate,
    MoveRequest,
)
from .timeline import (
    Timeline,
    SelectRequest,
    PlaybackState,
    PlayheadPosition,
    PlayheadState,
    SeekRequest,
)
from .export import (
    ExportResponse,
    GalleryEntry,
    CancelResponse,
)
