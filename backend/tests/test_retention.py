"""Tests for the retention sweeper."""

import asyncio
import os
import time
from pathlib import Path

import pytest

from filedrop.files.retention import RetentionSweeper

DAY = 24 * 60 * 60
MAX_AGE = 7 * DAY


def _touch(directory: Path, name: str, age_seconds: float, now: float) -> Path:
    path = directory / name
    path.write_bytes(b"content of " + name.encode())
    mtime = now - age_seconds
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def now():
    # Whole seconds so utime() round-trips exactly.
    return float(int(time.time()))


@pytest.fixture
def sweeper(upload_dir, now):
    upload_dir.mkdir(parents=True, exist_ok=True)
    return RetentionSweeper(
        upload_dir=str(upload_dir),
        max_age_seconds=MAX_AGE,
        interval_seconds=DAY,
        clock=lambda: now,
    )


class TestSweepOnce:
    @pytest.mark.asyncio
    async def test_deletes_only_expired_files(self, sweeper, upload_dir, now):
        _touch(upload_dir, "old.jpg", MAX_AGE + 60, now)
        _touch(upload_dir, "ancient.png", 30 * DAY, now)
        _touch(upload_dir, "fresh.gif", 60, now)
        _touch(upload_dir, "almost.jpg", MAX_AGE - 60, now)

        report = await sweeper.sweep_once()

        assert sorted(report.deleted_names) == ["ancient.png", "old.jpg"]
        assert report.deleted == 2
        assert report.scanned == 4
        assert report.failed == 0
        assert sorted(p.name for p in upload_dir.iterdir()) == ["almost.jpg", "fresh.gif"]

    @pytest.mark.asyncio
    async def test_file_exactly_at_threshold_is_kept(self, sweeper, upload_dir, now):
        _touch(upload_dir, "edge.jpg", MAX_AGE, now)
        report = await sweeper.sweep_once()
        assert report.deleted == 0
        assert (upload_dir / "edge.jpg").exists()

    @pytest.mark.asyncio
    async def test_fresh_file_survives_repeated_passes(self, sweeper, upload_dir, now):
        _touch(upload_dir, "fresh.jpg", DAY, now)
        for _ in range(3):
            await sweeper.sweep_once()
        assert (upload_dir / "fresh.jpg").exists()

    @pytest.mark.asyncio
    async def test_file_is_deleted_once_it_crosses_threshold(self, upload_dir, now):
        upload_dir.mkdir(parents=True)
        _touch(upload_dir, "aging.png", 6 * DAY, now)
        clock = {"now": now}
        sweeper = RetentionSweeper(
            str(upload_dir), MAX_AGE, DAY, clock=lambda: clock["now"]
        )

        assert (await sweeper.sweep_once()).deleted == 0
        clock["now"] = now + 2 * DAY
        assert (await sweeper.sweep_once()).deleted_names == ["aging.png"]

    @pytest.mark.asyncio
    async def test_subdirectories_are_ignored(self, sweeper, upload_dir, now):
        sub = upload_dir / "nested"
        sub.mkdir()
        os.utime(sub, (now - 30 * DAY, now - 30 * DAY))

        report = await sweeper.sweep_once()

        assert report.scanned == 0
        assert sub.is_dir()

    @pytest.mark.asyncio
    async def test_missing_directory_aborts_pass_quietly(self, tmp_path):
        sweeper = RetentionSweeper(str(tmp_path / "nope"), MAX_AGE, DAY)
        report = await sweeper.sweep_once()
        assert report.scanned == report.deleted == report.failed == 0

    @pytest.mark.asyncio
    async def test_per_entry_failure_does_not_abort_pass(
        self, sweeper, upload_dir, now, monkeypatch
    ):
        _touch(upload_dir, "locked.jpg", 30 * DAY, now)
        _touch(upload_dir, "old.jpg", 30 * DAY, now)

        real_unlink = Path.unlink

        def flaky_unlink(self, *args, **kwargs):
            if self.name == "locked.jpg":
                raise PermissionError("denied")
            return real_unlink(self, *args, **kwargs)

        monkeypatch.setattr(Path, "unlink", flaky_unlink)

        report = await sweeper.sweep_once()

        assert report.failed == 1
        assert report.deleted_names == ["old.jpg"]
        assert (upload_dir / "locked.jpg").exists()

    @pytest.mark.asyncio
    async def test_concurrent_passes_do_not_double_delete(self, sweeper, upload_dir, now):
        for i in range(20):
            _touch(upload_dir, f"old-{i}.jpg", 30 * DAY, now)

        first, second = await asyncio.gather(sweeper.sweep_once(), sweeper.sweep_once())

        assert first.deleted + second.deleted == 20
        assert first.failed == second.failed == 0
        assert list(upload_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_bounded_concurrency_still_visits_everything(self, upload_dir, now):
        upload_dir.mkdir(parents=True)
        for i in range(50):
            _touch(upload_dir, f"old-{i}.png", 30 * DAY, now)
        sweeper = RetentionSweeper(
            str(upload_dir), MAX_AGE, DAY, max_concurrency=2, clock=lambda: now
        )

        report = await sweeper.sweep_once()
        assert report.deleted == 50


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_background_task_sweeps_on_interval(self, upload_dir):
        upload_dir.mkdir(parents=True)
        _touch(upload_dir, "old.jpg", 30 * DAY, time.time())
        sweeper = RetentionSweeper(str(upload_dir), MAX_AGE, interval_seconds=0.01)

        await sweeper.start()
        assert sweeper.running
        for _ in range(100):
            if not (upload_dir / "old.jpg").exists():
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert not (upload_dir / "old.jpg").exists()
        assert not sweeper.running

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self, sweeper):
        await sweeper.stop()
        assert not sweeper.running

    @pytest.mark.asyncio
    async def test_loop_survives_unreadable_directory(self, tmp_path):
        sweeper = RetentionSweeper(str(tmp_path / "missing"), MAX_AGE, interval_seconds=0.01)
        await sweeper.start()
        await asyncio.sleep(0.05)
        assert sweeper.running
        await sweeper.stop()
