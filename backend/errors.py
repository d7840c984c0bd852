"""Error kinds raised by the timeline core.

Timeline editing never raises for out-of-range input (trims clamp, unknown
ids are no-ops). Only malformed clip metadata, reentrant edits during an
export, and export failures surface as errors.
"""


class CinemaStudioError(Exception):
    """Base class for every error raised by this service."""


class InvalidInputError(CinemaStudioError):
    """Malformed clip metadata at append time."""


class TimelineBusyError(CinemaStudioError):
    """The timeline is locked by an in-flight export."""


class NothingToExportError(CinemaStudioError):
    """Export requested on an empty timeline."""

    def __init__(self):
        super().__init__("Nothing to export")


class ExportError(CinemaStudioError):
    """Base for failures inside the export pipeline."""


class EngineInitializationError(ExportError):
    """The media-processing engine could not be started."""


class ExportStepFailure(ExportError):
    """A single fetch, trim, concat or publish step failed."""

    def __init__(self, step: str, reason: str):
        super().__init__(f"{step}: {reason}")
        self.step = step
        self.reason = reason


class ExportCancelledError(ExportError):
    """The export was cancelled before it finished."""


class ExportFailedError(ExportError):
    """User-facing export failure.

    Raised at the pipeline boundary in place of any internal failure so that
    engine-specific output never reaches the API layer.
    """

    user_message = "Video processing failed"

    def __init__(self, cause: str = ""):
        super().__init__(self.user_message)
        self.cause = cause
