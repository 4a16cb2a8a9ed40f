"""Output stores: where published outputs are written and looked up."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from collections import Counter
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from kresolve.core.lock import StoreLock
from kresolve.core.state import PublishedOutputs, TargetInstance
from kresolve.engine.errors import StoreError

logger = logging.getLogger(__name__)


class InstanceLookup(Protocol):
    """Target-instance lookup used by reference resolution.

    Absence is a normal outcome and is reported as ``None``.
    """

    def get(self, namespace: str, name: str) -> TargetInstance | None: ...


class OutputStore(InstanceLookup, Protocol):
    """Instance lookup that can also accept published outputs."""

    def read(self, namespace: str, name: str) -> PublishedOutputs | None: ...

    def publish(self, published: PublishedOutputs) -> PublishedOutputs: ...


def _next_generation(
    previous: PublishedOutputs | None, published: PublishedOutputs
) -> PublishedOutputs:
    generation = previous.generation + 1 if previous is not None else 1
    return published.model_copy(
        update={"generation": generation, "updated_at": datetime.now(UTC)}, deep=True
    )


class InMemoryOutputStore:
    """Thread-safe in-process store. Counts lookups per ``(namespace, name)``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[tuple[str, str], PublishedOutputs] = {}
        self.lookups: Counter[tuple[str, str]] = Counter()

    def read(self, namespace: str, name: str) -> PublishedOutputs | None:
        with self._lock:
            record = self._records.get((namespace, name))
            return record.model_copy(deep=True) if record is not None else None

    def get(self, namespace: str, name: str) -> TargetInstance | None:
        with self._lock:
            self.lookups[(namespace, name)] += 1
            record = self._records.get((namespace, name))
        return TargetInstance.from_published(record) if record is not None else None

    def publish(self, published: PublishedOutputs) -> PublishedOutputs:
        key = (published.namespace, published.instance)
        with self._lock:
            stored = _next_generation(self._records.get(key), published)
            self._records[key] = stored
        logger.debug("Published %s (generation %d)", stored.address, stored.generation)
        return stored.model_copy(deep=True)


class FileOutputStore:
    """One JSON document per instance at ``<root>/<namespace>/<name>.json``.

    - Writes atomically (temp file + rename)
    - Writes a ``.backup`` copy of the previous document when overwriting
    - Serialises writers through an advisory lock
    """

    def __init__(self, root: Path | str, *, lock_timeout: float = 5.0) -> None:
        self._root = Path(root)
        self._lock_timeout = lock_timeout

    def path_for(self, namespace: str, name: str) -> Path:
        return self._root / namespace / f"{name}.json"

    def read(self, namespace: str, name: str) -> PublishedOutputs | None:
        path = self.path_for(namespace, name)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreError(str(path), str(exc)) from exc
        try:
            return PublishedOutputs.model_validate_json(content)
        except ValidationError as exc:
            raise StoreError(str(path), f"invalid record: {exc}") from exc

    def get(self, namespace: str, name: str) -> TargetInstance | None:
        record = self.read(namespace, name)
        return TargetInstance.from_published(record) if record is not None else None

    def publish(self, published: PublishedOutputs) -> PublishedOutputs:
        path = self.path_for(published.namespace, published.instance)
        try:
            with StoreLock(path, timeout=self._lock_timeout):
                stored = _next_generation(
                    self.read(published.namespace, published.instance), published
                )
                self._write(path, stored)
        except OSError as exc:
            raise StoreError(str(path), str(exc)) from exc
        logger.debug("Published %s to %s (generation %d)", stored.address, path, stored.generation)
        return stored

    @staticmethod
    def _write(path: Path, record: PublishedOutputs) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)

        backup_path = Path(str(path) + ".backup")
        # Avoid TOCTOU race between exists() and read_bytes().
        with contextlib.suppress(FileNotFoundError):
            backup_path.write_bytes(path.read_bytes())

        data = record.model_dump(mode="json")
        content = json.dumps(data, indent=2, sort_keys=True) + "\n"

        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        tmp_file = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            tmp_file.replace(path)
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp_file.unlink()
