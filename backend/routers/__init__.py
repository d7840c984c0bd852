from .timeline import router as timeline_router
from .playback import router as playback_router
from .export import router as export_router
