"""In-memory session state for the thinking engine.

``SessionStore`` owns the authoritative thought history, branch map, dead
ends and session identity. All mutations go through its methods under a
re-entrant lock; snapshots for persistence are taken with
``to_session_data()``.
"""

from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager

from loguru import logger

from thoughtchain.tools.thought_types import DeadEnd, SessionData, ThoughtRecord, now_iso

MAX_DEAD_ENDS = 20
MAX_DEAD_END_REASON = 200


class SessionStore:
    """Thread-safe container for one reasoning session.

    Usage:
        store = SessionStore()
        store.start_session()
        store.add_thought(record)
        store.session_thoughts()  # current session only
    """

    def __init__(self, max_dead_ends: int = MAX_DEAD_ENDS) -> None:
        self.max_dead_ends = max_dead_ends
        self.history: list[ThoughtRecord] = []
        self.branches: dict[str, list[ThoughtRecord]] = {}
        self.last_thought_number = 0
        self.goal: str | None = None
        self.session_id = ""
        self.dead_ends: list[DeadEnd] = []
        self._last_issued_id = ""
        self._lock = threading.RLock()

    @contextmanager
    def locked(self) -> Generator[SessionStore, None, None]:
        """Hold the store lock for a multi-step read-modify-write."""
        with self._lock:
            yield self

    def __len__(self) -> int:
        return len(self.history)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def session_thoughts(self) -> list[ThoughtRecord]:
        """Thoughts of the current session, in insertion order.

        Records without a session id (older files) fall back to everything
        after the last fresh thought #1.
        """
        with self._lock:
            if self.session_id:
                return [t for t in self.history if t.session_id == self.session_id]
            return self.history[self._legacy_start_index() :]

    def _legacy_start_index(self) -> int:
        for index in range(len(self.history) - 1, -1, -1):
            thought = self.history[index]
            if thought.thought_number == 1 and not thought.is_revision:
                return index
        return 0

    def current_dead_ends(self) -> list[DeadEnd]:
        """Dead ends of the current session (untagged entries included)."""
        with self._lock:
            return [
                d for d in self.dead_ends if not d.session_id or d.session_id == self.session_id
            ]

    def find_latest(self, thought_number: int) -> ThoughtRecord | None:
        """Most recent current-session thought carrying ``thought_number``."""
        for thought in reversed(self.session_thoughts()):
            if thought.thought_number == thought_number:
                return thought
        return None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def start_session(self) -> str:
        """Assign a fresh ISO timestamp id, never equal to an id issued before."""
        with self._lock:
            base = now_iso()
            new_id = base
            suffix = 1
            while new_id in (self.session_id, self._last_issued_id):
                new_id = f"{base}#{suffix}"
                suffix += 1
            self.session_id = new_id
            self._last_issued_id = new_id
            return new_id

    def add_thought(self, record: ThoughtRecord) -> None:
        """Append a record; branch continuations are indexed under their branch id."""
        with self._lock:
            self.history.append(record)
            if record.branch_from_thought and record.branch_id:
                self.branches.setdefault(record.branch_id, []).append(record)
            if not record.is_revision:
                self.last_thought_number = max(self.last_thought_number, record.thought_number)

    def record_dead_end(self, path: list[int], reason: str) -> DeadEnd | None:
        """Remember a rejected path.

        Empty and already recorded paths are skipped. The reason is cut to
        200 characters and the oldest entry is evicted once the list is full.

        Returns:
            The stored DeadEnd, or None if nothing was recorded.

        """
        if not path:
            return None

        with self._lock:
            if any(d.path == path for d in self.dead_ends):
                logger.debug(f"Dead end path [{','.join(map(str, path))}] already recorded")
                return None

            dead_end = DeadEnd(
                path=list(path),
                reason=reason[:MAX_DEAD_END_REASON],
                session_id=self.session_id,
            )
            while len(self.dead_ends) >= self.max_dead_ends:
                removed = self.dead_ends.pop(0)
                logger.debug(
                    f"Dead ends limit reached ({self.max_dead_ends}), "
                    f"removed oldest: [{','.join(map(str, removed.path))}]"
                )
            self.dead_ends.append(dead_end)
            logger.info(
                f"Recorded dead end: path=[{','.join(map(str, path))}] "
                f"({len(self.dead_ends)}/{self.max_dead_ends})"
            )
            return dead_end

    def replace(
        self,
        records: list[ThoughtRecord],
        session_id: str,
        goal: str | None,
        last_thought_number: int,
    ) -> None:
        """Swap in a whole new session in one step (used by batch submission)."""
        with self._lock:
            self.history = list(records)
            self.branches = {}
            for record in records:
                if record.branch_from_thought and record.branch_id:
                    self.branches.setdefault(record.branch_id, []).append(record)
            self.session_id = session_id
            self.goal = goal
            self.last_thought_number = last_thought_number
            self.dead_ends = []

    def reset(self) -> tuple[int, int]:
        """Wipe all state.

        Returns:
            (cleared thoughts, cleared branches)

        """
        with self._lock:
            cleared = (len(self.history), len(self.branches))
            self.history = []
            self.branches = {}
            self.last_thought_number = 0
            self.goal = None
            self.session_id = ""
            self.dead_ends = []
            return cleared

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def to_session_data(self) -> SessionData:
        """Deep snapshot suitable for an asynchronous write."""
        with self._lock:
            data = SessionData(
                history=self.history,
                branches=list(self.branches.items()),
                last_thought_number=self.last_thought_number,
                goal=self.goal,
                current_session_id=self.session_id,
                dead_ends=self.dead_ends,
            )
            return data.model_copy(deep=True)

    def restore(self, data: SessionData) -> None:
        """Replace in-memory state with a loaded snapshot."""
        with self._lock:
            self.history = list(data.history)
            self.branches = {branch_id: list(thoughts) for branch_id, thoughts in data.branches}
            self.last_thought_number = data.last_thought_number
            self.goal = data.goal
            self.session_id = data.current_session_id
            self.dead_ends = list(data.dead_ends)
