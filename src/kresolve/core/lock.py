"""Advisory file lock guarding writes to a file-backed output store."""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import IO, TYPE_CHECKING

from kresolve.engine.errors import StoreLockError

if TYPE_CHECKING:
    from types import TracebackType

try:
    import fcntl  # type: ignore[attr-defined]
except ImportError:  # pragma: no cover
    fcntl = None  # type: ignore[assignment]

_POLL_INTERVAL = 0.05


class StoreLock:
    """Exclusive, timeout-bounded lock on ``<path>.lock``."""

    def __init__(self, path: Path, *, timeout: float = 5.0) -> None:
        self._lock_path = Path(str(path) + ".lock")
        self._timeout = timeout
        self._file: IO[str] | None = None

    def __enter__(self) -> StoreLock:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._lock_path.open("a+", encoding="utf-8")
        try:
            self._acquire()
        except Exception as e:
            try:
                self._file.close()
            finally:
                self._file = None
            if isinstance(e, StoreLockError):
                raise
            raise StoreLockError(str(e)) from e
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._file is None:
            return
        try:
            self._release()
        finally:
            self._file.close()
            self._file = None

    def _try_lock(self) -> bool:
        assert self._file is not None
        if fcntl is not None:
            try:
                fcntl.flock(self._file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                return False
            return True

        if sys.platform == "win32":  # pragma: no cover
            import msvcrt

            try:
                msvcrt.locking(self._file.fileno(), msvcrt.LK_NBLCK, 1)
            except OSError:
                return False
            return True

        raise StoreLockError("Store locking is not supported on this platform")

    def _acquire(self) -> None:
        if self._file is None:
            raise StoreLockError("Lock file is not open")

        deadline = time.monotonic() + self._timeout
        while not self._try_lock():
            if time.monotonic() >= deadline:
                raise StoreLockError(
                    f"Could not lock {self._lock_path} within {self._timeout:g}s"
                )
            time.sleep(_POLL_INTERVAL)

    def _release(self) -> None:
        if self._file is None:
            return

        if fcntl is not None:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
            return

        if sys.platform == "win32":  # pragma: no cover
            import msvcrt

            msvcrt.locking(self._file.fileno(), msvcrt.LK_UNLCK, 1)
            return
