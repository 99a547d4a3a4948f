"""Crash-safe, single-writer session file.

Every operation (save, clear, load) is submitted to one worker thread, so
file access is strictly FIFO ordered and writes never interleave. A save
writes ``<file>.tmp`` and then ``os.replace``s it over the target, so a
crash mid-write leaves the previous file intact.

I/O failures are logged and swallowed: in-memory state stays authoritative
and callers are never blocked by a disk error.
"""

from __future__ import annotations

import contextlib
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

import orjson
from loguru import logger
from pydantic import ValidationError

from thoughtchain.tools.thought_types import SessionData, now_iso
from thoughtchain.utils.errors import PersistenceException

SESSION_TTL_HOURS = 24.0


class SessionFile:
    """Persisted session snapshot with TTL-based expiry.

    Usage:
        session_file = SessionFile(Path("thought_session.json"))
        session_file.save(store.to_session_data())  # fire and forget
        data = session_file.load()                   # None if missing/expired
        session_file.flush()
    """

    def __init__(self, path: Path | str, ttl_hours: float = SESSION_TTL_HOURS) -> None:
        self.path = Path(path).expanduser()
        if self.path.is_dir():
            raise PersistenceException(f"Session path {self.path} is a directory")
        self.ttl_hours = ttl_hours
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="session-writer")

    @property
    def tmp_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.tmp")

    # -------------------------------------------------------------------------
    # Queue
    # -------------------------------------------------------------------------

    def save(self, data: SessionData) -> Future[None]:
        """Schedule an atomic write of ``data``. Returns the pending write."""
        payload = data.model_copy(update={"saved_at": now_iso()})
        return self._executor.submit(self._write, payload)

    def clear(self) -> Future[None]:
        """Schedule deletion of the file (in-memory state is untouched)."""
        return self._executor.submit(self._unlink)

    def load(self) -> SessionData | None:
        """Read the snapshot after all pending writes.

        Returns:
            SessionData, or None if the file is missing, corrupted or older
            than the TTL (an expired file is deleted).

        """
        return self._executor.submit(self._read).result()

    def flush(self, timeout: float | None = None) -> None:
        """Block until every operation submitted so far has finished."""
        self._executor.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        """Drain pending writes and stop the worker."""
        self._executor.shutdown(wait=True)

    # -------------------------------------------------------------------------
    # Worker side
    # -------------------------------------------------------------------------

    def _write(self, data: SessionData) -> None:
        tmp = self.tmp_path
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = data.model_dump(mode="json", by_alias=True)
            tmp.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
            os.replace(tmp, self.path)
            logger.debug(f"Session saved: {len(data.history)} thoughts -> {self.path}")
        except (OSError, TypeError, orjson.JSONEncodeError) as e:
            logger.error(f"Failed to save session to {self.path}: {e}")
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)

    def _unlink(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
            logger.debug(f"Session file cleared: {self.path}")
        except OSError as e:
            logger.error(f"Failed to clear session file {self.path}: {e}")

    def _is_expired(self) -> tuple[bool, float]:
        hours_old = (time.time() - self.path.stat().st_mtime) / 3600
        return hours_old > self.ttl_hours, hours_old

    def _read(self) -> SessionData | None:
        if not self.path.exists():
            logger.info("No previous session found, starting fresh")
            return None

        try:
            expired, hours_old = self._is_expired()
            if expired:
                logger.warning(
                    f"Session expired ({round(hours_old)}h old > {self.ttl_hours:g}h TTL), "
                    "discarding"
                )
                self._unlink()
                return None

            data = SessionData.model_validate(orjson.loads(self.path.read_bytes()))
        except (OSError, orjson.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Session file {self.path} unreadable or corrupted, starting fresh: {e}")
            return None

        logger.info(
            f"Restored session from {data.saved_at} ({len(data.history)} thoughts, "
            f"{len(data.dead_ends)} dead ends)"
        )
        return data
