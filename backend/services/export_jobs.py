from contextlib import contextmanager
from typing import Iterator

from errors import ExportCancelledError, TimelineBusyError


class CancelToken:
    """Checked by the export pipeline between steps."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ExportCancelledError("Export cancelled")


class ExportRegistry:
    """Tracks the in-flight export of each session.

    While a session has an export running its timeline is locked: mutations
    and a second export are refused with ``TimelineBusyError``.
    """

    def __init__(self):
        self._active: dict[str, CancelToken] = {}

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._active

    def ensure_idle(self, session_id: str) -> None:
        if self.is_busy(session_id):
            raise TimelineBusyError("Export in progress")

    @contextmanager
    def track(self, session_id: str) -> Iterator[CancelToken]:
        self.ensure_idle(session_id)
        token = CancelToken()
        self._active[session_id] = token
        try:
            yield token
        finally:
            if self._active.get(session_id) is token:
                del self._active[session_id]

    def cancel(self, session_id: str) -> bool:
        token = self._active.get(session_id)
        if token is None:
            return False
        token.cancel()
        return True


export_registry = ExportRegistry()
