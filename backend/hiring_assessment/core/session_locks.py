"""
Keyed locks serializing mutations of the same test session.

Each key (a session code, or a candidate ID for session creation) gets its
own lock, so operations on different sessions never wait on each other.
Locks are reference counted and dropped once no thread holds or waits for
them, keeping the registry bounded by the number of in-flight requests.

This serializes requests within one process. Across processes the session
engine additionally takes a row lock (SELECT ... FOR UPDATE) on databases
that support it.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Generator, Hashable


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLockRegistry:
    """Registry handing out one lock per key."""

    def __init__(self) -> None:
        self._entries: Dict[Hashable, _Entry] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, key: Hashable) -> Generator[None, None, None]:
        """Hold the lock for ``key`` for the duration of the block."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.users += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


session_locks = KeyedLockRegistry()
candidate_locks = KeyedLockRegistry()
