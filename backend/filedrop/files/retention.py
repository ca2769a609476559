"""Age-based cleanup of the upload directory.

A single background task runs one sweep pass every ``interval_seconds``.
Each pass deletes regular files whose modification time is more than
``max_age_seconds`` in the past. Passes never overlap: the loop awaits each
pass before sleeping again, and a lock serialises passes triggered
directly through sweep_once().
"""
from __future__ import annotations

import asyncio
import logging
import os
import stat
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class _Outcome(Enum):
    SKIPPED = "skipped"
    KEPT = "kept"
    DELETED = "deleted"
    FAILED = "failed"


@dataclass
class SweepReport:
    scanned: int = 0
    deleted: int = 0
    failed: int = 0
    deleted_names: List[str] = field(default_factory=list)


class RetentionSweeper:
    """Periodically deletes stored files older than the retention threshold."""

    def __init__(
        self,
        upload_dir: str,
        max_age_seconds: float,
        interval_seconds: float,
        max_concurrency: int = 32,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._upload_dir = Path(upload_dir)
        self._max_age = max_age_seconds
        self._interval = interval_seconds
        self._clock = clock
        self._max_concurrency = max_concurrency
        self._pass_lock = asyncio.Lock()
        self._sweep_task: Optional[asyncio.Task] = None  # type: ignore[type-arg]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start(self) -> None:
        """Start the background sweep task."""
        if self.running:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(
            "Retention sweeper started (dir=%s, max_age=%ss, interval=%ss)",
            self._upload_dir,
            self._max_age,
            self._interval,
        )

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        logger.info("Retention sweeper stopped")

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Retention sweep pass failed")

    async def sweep_once(self) -> SweepReport:
        """Run one full pass over the upload directory."""
        async with self._pass_lock:
            return await self._run_pass()

    async def _run_pass(self) -> SweepReport:
        report = SweepReport()
        loop = asyncio.get_running_loop()

        try:
            names = await loop.run_in_executor(None, os.listdir, self._upload_dir)
        except OSError as e:
            logger.error("Retention sweep aborted, cannot list %s: %s", self._upload_dir, e)
            return report

        now = self._clock()
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _visit(name: str) -> None:
            async with semaphore:
                outcome = await loop.run_in_executor(None, self._check_entry, name, now)
            if outcome is _Outcome.SKIPPED:
                return
            if outcome is _Outcome.FAILED:
                report.failed += 1
                return
            report.scanned += 1
            if outcome is _Outcome.DELETED:
                report.deleted += 1
                report.deleted_names.append(name)

        await asyncio.gather(*(_visit(n) for n in names))

        if report.deleted or report.failed:
            logger.info(
                "Retention sweep: scanned=%d deleted=%d failed=%d",
                report.scanned,
                report.deleted,
                report.failed,
            )
        else:
            logger.debug("Retention sweep: scanned=%d, nothing to delete", report.scanned)
        return report

    def _check_entry(self, name: str, now: float) -> "_Outcome":
        """Stat one entry and delete it if expired. Runs in a worker thread."""
        path = self._upload_dir / name
        try:
            st = path.stat()
        except OSError as e:
            logger.error("Retention sweep could not stat %s: %s", name, e)
            return _Outcome.FAILED

        if not stat.S_ISREG(st.st_mode):
            return _Outcome.SKIPPED

        # Strictly older than the threshold.
        if now - st.st_mtime <= self._max_age:
            return _Outcome.KEPT

        try:
            path.unlink()
        except OSError as e:
            logger.error("Retention sweep could not delete %s: %s", name, e)
            return _Outcome.FAILED

        logger.info("Deleted expired file: %s", name)
        return _Outcome.DELETED
