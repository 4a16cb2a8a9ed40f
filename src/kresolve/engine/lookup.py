"""Bounded external lookups and the per-reconciliation instance cache."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

from kresolve.engine.errors import LookupTimeoutError

if TYPE_CHECKING:
    from collections.abc import Callable

    from kresolve.core.state import TargetInstance
    from kresolve.core.store import InstanceLookup

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_timeout(fn: Callable[[], T], timeout: float, what: str) -> T:
    """Run a blocking call on a worker thread and give up after *timeout* seconds.

    The worker is abandoned, not killed, on timeout; its eventual result is
    discarded.

    Raises:
        LookupTimeoutError: If *fn* did not return in time.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kresolve-lookup")
    try:
        future = executor.submit(fn)
        try:
            return future.result(timeout=timeout)
        except TimeoutError as exc:
            if not future.done():
                future.cancel()
                raise LookupTimeoutError(what, timeout) from exc
            raise
    finally:
        executor.shutdown(wait=False)


class InstanceCache:
    """Target-instance lookups memoised by ``(namespace, name)``.

    Owned by exactly one reconciliation context.  Misses are cached too.  The
    first request for a key takes a per-key lock so concurrent resolutions of
    the same target issue a single external lookup; reads of populated keys
    never lock.
    """

    def __init__(self, lookup: InstanceLookup, *, timeout: float) -> None:
        self._lookup = lookup
        self._timeout = timeout
        self._entries: dict[tuple[str, str], TargetInstance | None] = {}
        self._guard = threading.Lock()
        self._key_locks: dict[tuple[str, str], threading.Lock] = {}
        self.external_lookups = 0

    def _key_lock(self, key: tuple[str, str]) -> threading.Lock:
        with self._guard:
            return self._key_locks.setdefault(key, threading.Lock())

    def get(self, namespace: str, name: str) -> TargetInstance | None:
        key = (namespace, name)
        if key in self._entries:
            return self._entries[key]

        with self._key_lock(key):
            if key in self._entries:
                return self._entries[key]
            target = call_with_timeout(
                lambda: self._lookup.get(namespace, name),
                self._timeout,
                f"instance {namespace}/{name}",
            )
            with self._guard:
                self.external_lookups += 1
                self._entries[key] = target
            logger.debug("Looked up %s/%s: %s", namespace, name, "found" if target else "missing")
            return target

    def exists(self, namespace: str, name: str) -> bool:
        return self.get(namespace, name) is not None

    def __len__(self) -> int:
        return len(self._entries)
