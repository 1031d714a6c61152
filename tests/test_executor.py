# Unit tests for executor module
"""Tests for the bounded-concurrency extraction scheduler."""

import logging
import math
import threading
import time
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.config import RunConfig
from common.errors import DecodeError
from common.executor import ExtractionScheduler
from common.models import ExtractionResult, RawType, RotationReport
from common.planner import plan_passes
from common.utils import get_output_path


class RecordingDecoder:
    """Fake decoder that writes a stub JPEG and records concurrency."""

    name = 'fake'

    def __init__(self, delay=0.02, fail=(), crash=(), orientation=0.0, hold_until_active=None):
        self.delay = delay
        self.fail = set(fail)
        self.crash = set(crash)
        self.orientation = orientation
        self.hold_until_active = hold_until_active
        self._reached = threading.Event()
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls = []
        self.spans = {}

    def extract(self, source, dest_dir, quality):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.calls.append(source.path.name)
            if self.hold_until_active and self.active >= self.hold_until_active:
                self._reached.set()
        started = time.monotonic()
        try:
            if self.hold_until_active:
                self._reached.wait(timeout=5)
            time.sleep(self.delay)
            if source.path.name in self.crash:
                raise RuntimeError('decoder bug')
            if source.path.name in self.fail:
                raise DecodeError(source.path, 'corrupt file')
            output_path = get_output_path(source.path, dest_dir)
            output_path.write_bytes(b'jpeg')
            return ExtractionResult(source=source, output_path=output_path, orientation=self.orientation)
        finally:
            with self._lock:
                self.active -= 1
                self.spans[source.path.name] = (started, time.monotonic())


class FakeRotator:
    """Stands in for RotationDispatcher."""

    def __init__(self):
        self.dispatched = []
        self.wait_calls = []

    def dispatch(self, result):
        if result.needs_rotation:
            self.dispatched.append(result.output_path.name)

    def wait(self, timeout=None):
        self.wait_calls.append(timeout)
        return RotationReport(completed=len(self.dispatched))


def touch(folder: Path, *names):
    folder.mkdir(parents=True, exist_ok=True)
    for name in names:
        (folder / name).write_bytes(b'raw')


def make_config(src_dirs, dest_dir, raw_types=(RawType.CR2,), **kwargs):
    return RunConfig(
        raw_types=tuple(raw_types),
        src_dirs=tuple(src_dirs),
        dest_dir=dest_dir,
        **kwargs,
    )


@pytest.fixture
def dest_dir(tmp_path):
    dest = tmp_path / 'jpeg'
    dest.mkdir()
    return dest


class TestAdmission:
    """Tests for the concurrency budget."""

    def test_two_of_three_active_while_third_waits(self, tmp_path, dest_dir):
        """3 CR2 files with a budget of 2: exactly 2 run together, total is 3."""
        src = tmp_path / 'raw'
        touch(src, 'a.CR2', 'b.CR2', 'c.CR2')
        config = make_config([src], dest_dir, num_routines=2)
        decoder = RecordingDecoder(hold_until_active=2)

        summary = ExtractionScheduler(config, decoder, progress=False).run(plan_passes([src], config.raw_types))

        assert decoder.max_active == 2
        assert summary.total == 3
        assert summary.extracted == 3
        assert sorted(decoder.calls) == ['a.CR2', 'b.CR2', 'c.CR2']

    @pytest.mark.parametrize('budget', [1, 3, 5])
    def test_budget_never_exceeded(self, tmp_path, dest_dir, budget):
        src = tmp_path / 'raw'
        touch(src, *[f'IMG_{i:03d}.CR2' for i in range(12)])
        config = make_config([src], dest_dir, num_routines=budget)
        decoder = RecordingDecoder(delay=0.01)

        summary = ExtractionScheduler(config, decoder, progress=False).run(plan_passes([src], config.raw_types))

        assert decoder.max_active <= budget
        assert summary.total == 12
        # Each file admitted exactly once
        assert len(decoder.calls) == len(set(decoder.calls)) == 12

    def test_budget_larger_than_file_count(self, tmp_path, dest_dir):
        src = tmp_path / 'raw'
        touch(src, 'a.CR2')
        config = make_config([src], dest_dir, num_routines=8)

        summary = ExtractionScheduler(config, RecordingDecoder(), progress=False).run(
            plan_passes([src], config.raw_types)
        )

        assert summary.total == 1

    def test_invalid_budget(self, tmp_path, dest_dir):
        config = make_config([tmp_path], dest_dir, num_routines=0)
        with pytest.raises(ValueError):
            ExtractionScheduler(config, RecordingDecoder(), progress=False)


class TestPasses:
    """Tests for totals and draining across (directory x extension) passes."""

    def test_total_across_dirs_and_types(self, tmp_path, dest_dir):
        dir1, dir2 = tmp_path / 'one', tmp_path / 'two'
        touch(dir1, 'a.CR2', 'b.NEF')
        touch(dir2, 'c.CR2', 'd.CR2', 'e.NEF')
        config = make_config([dir1, dir2], dest_dir, raw_types=(RawType.CR2, RawType.NEF), num_routines=2)

        summary = ExtractionScheduler(config, RecordingDecoder(), progress=False).run(
            plan_passes(config.src_dirs, config.raw_types)
        )

        assert summary.total == 5
        assert summary.extracted == 5

    def test_pass_drained_before_next_pass_starts(self, tmp_path, dest_dir):
        dir1, dir2 = tmp_path / 'one', tmp_path / 'two'
        touch(dir1, 'a.CR2', 'b.CR2', 'c.CR2')
        touch(dir2, 'd.CR2', 'e.CR2')
        config = make_config([dir1, dir2], dest_dir, num_routines=3)
        decoder = RecordingDecoder(delay=0.03)

        ExtractionScheduler(config, decoder, progress=False).run(plan_passes(config.src_dirs, config.raw_types))

        first_pass_end = max(decoder.spans[n][1] for n in ('a.CR2', 'b.CR2', 'c.CR2'))
        second_pass_start = min(decoder.spans[n][0] for n in ('d.CR2', 'e.CR2'))
        assert first_pass_end <= second_pass_start

    def test_no_files(self, tmp_path, dest_dir):
        src = tmp_path / 'empty'
        src.mkdir()
        config = make_config([src], dest_dir)

        summary = ExtractionScheduler(config, RecordingDecoder(), progress=False).run(
            plan_passes([src], config.raw_types)
        )

        assert summary.total == 0


class TestFailures:
    """Tests for per-file failures."""

    def test_failed_decode_does_not_abort_batch(self, tmp_path, dest_dir, caplog):
        src = tmp_path / 'raw'
        touch(src, 'a.CR2', 'b.CR2', 'c.CR2')
        config = make_config([src], dest_dir, num_routines=2)
        decoder = RecordingDecoder(fail={'b.CR2'})

        with caplog.at_level(logging.ERROR):
            summary = ExtractionScheduler(config, decoder, progress=False).run(
                plan_passes([src], config.raw_types)
            )

        assert summary.total == 3
        assert summary.extracted == 2
        assert summary.failed == 1
        assert (dest_dir / 'a_extracted.jpg').exists()
        assert (dest_dir / 'c_extracted.jpg').exists()
        assert not (dest_dir / 'b_extracted.jpg').exists()
        assert 'b.CR2' in caplog.text

    def test_unexpected_exception_still_completes(self, tmp_path, dest_dir):
        """A crashing decoder must not leave the scheduler waiting forever."""
        src = tmp_path / 'raw'
        touch(src, 'a.CR2', 'b.CR2', 'c.CR2', 'd.CR2')
        config = make_config([src], dest_dir, num_routines=1)
        decoder = RecordingDecoder(crash={'a.CR2', 'c.CR2'})

        summary = ExtractionScheduler(config, decoder, progress=False).run(plan_passes([src], config.raw_types))

        assert summary.total == 4
        assert summary.failed == 2
        assert summary.extracted == 2


class TestRotation:
    """Tests for rotation hand-off."""

    def test_rotations_dispatched_and_waited_for(self, tmp_path, dest_dir):
        src = tmp_path / 'raw'
        touch(src, 'a.CR2', 'b.CR2')
        config = make_config([src], dest_dir, rotate=True, rotation_wait_timeout=30)
        rotator = FakeRotator()

        summary = ExtractionScheduler(
            config, RecordingDecoder(orientation=math.pi / 2), rotator=rotator, progress=False
        ).run(plan_passes([src], config.raw_types))

        assert sorted(rotator.dispatched) == ['a_extracted.jpg', 'b_extracted.jpg']
        assert rotator.wait_calls == [30]
        assert summary.rotated == 2

    def test_no_rotation_for_zero_orientation(self, tmp_path, dest_dir):
        src = tmp_path / 'raw'
        touch(src, 'a.CR2')
        config = make_config([src], dest_dir, rotate=True)
        rotator = FakeRotator()

        ExtractionScheduler(config, RecordingDecoder(), rotator=rotator, progress=False).run(
            plan_passes([src], config.raw_types)
        )

        assert rotator.dispatched == []

    def test_rotator_ignored_when_rotation_disabled(self, tmp_path, dest_dir):
        src = tmp_path / 'raw'
        touch(src, 'a.CR2')
        config = make_config([src], dest_dir, rotate=False)
        rotator = FakeRotator()

        ExtractionScheduler(
            config, RecordingDecoder(orientation=math.pi), rotator=rotator, progress=False
        ).run(plan_passes([src], config.raw_types))

        assert rotator.dispatched == []
        assert rotator.wait_calls == []


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
