# executor.py
"""Bounded-concurrency extraction scheduler."""

import logging
import queue
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Sequence

from tqdm import tqdm

from .config import RunConfig
from .decoder import Decoder
from .errors import DecodeError
from .models import BatchSummary, ExtractionResult, SourceFile
from .planner import DiscoveryPass, count_planned_files
from .rotation import RotationDispatcher


logger = logging.getLogger(__name__)


class ExtractionScheduler:
    """
    Admit discovered RAW files into at most `num_routines` concurrent decode tasks.

    Admission is a sliding window: once the window is full, the scheduler
    waits for exactly one task to finish before admitting the next file, so
    every completion immediately frees a slot. Tasks report completion by
    putting their finished future on a queue; that queue is the only thing
    shared between the scheduler thread and the workers.

    Every pass drains its outstanding completions before the next pass
    starts, and the worker pool is only shut down once nothing is in
    flight.
    """

    def __init__(
        self,
        config: RunConfig,
        decoder: Decoder,
        rotator: Optional[RotationDispatcher] = None,
        progress: bool = True,
    ):
        if config.num_routines < 1:
            raise ValueError(f"num_routines must be >= 1, got {config.num_routines}")
        self.config = config
        self.decoder = decoder
        self.rotator = rotator if config.rotate else None
        self.progress = progress

    def _extract(self, source: SourceFile) -> ExtractionResult:
        """Decode one file; runs on a worker thread."""
        try:
            result = self.decoder.extract(source, self.config.dest_dir, self.config.quality)
        except DecodeError as e:
            logger.error("Error processing file: '%s' error: %s", source.path, e)
            return ExtractionResult.failed(source, str(e))

        if self.rotator is not None:
            self.rotator.dispatch(result)
        return result

    def _collect(self, done: "queue.Queue[Future]", summary: BatchSummary, pbar: tqdm) -> None:
        """Block for one completion signal and tally it."""
        future = done.get()
        error = future.exception()
        if error is not None:
            logger.error("Decode task crashed", exc_info=error)
            summary.failed += 1
        else:
            result = future.result()
            summary.record(result)
            if result.success:
                pbar.set_description(f"✓ {result.source.path.name[:25]}")
            else:
                pbar.set_description(f"✗ {result.source.path.name[:25]}")
        pbar.update(1)
        pbar.set_postfix({'ok': summary.extracted, 'fail': summary.failed})

    def _run_pass(
        self,
        pool: ThreadPoolExecutor,
        batch: DiscoveryPass,
        summary: BatchSummary,
        pbar: tqdm,
    ) -> None:
        budget = self.config.num_routines
        done: "queue.Queue[Future]" = queue.Queue()
        active = 0

        logger.info(
            "Raw Type: %s ==> Processing '%s' %d files with %d concurrent tasks",
            batch.raw_type.value, batch.src_dir, batch.file_count, budget,
        )

        for source in batch.files:
            if active == budget:
                self._collect(done, summary, pbar)
                active -= 1

            future = pool.submit(self._extract, source)
            future.add_done_callback(done.put)
            active += 1

        # Nothing from this pass may still be running when it ends
        while active:
            self._collect(done, summary, pbar)
            active -= 1

        summary.add_discovered(batch.file_count)

    def run(self, passes: Sequence[DiscoveryPass]) -> BatchSummary:
        """
        Process every pass in order and return the run's totals.

        Per-file decode failures are logged and counted; they never stop
        the run. When rotation is enabled the outstanding rotations are
        waited for (bounded by `rotation_wait_timeout`) before returning.
        """
        summary = BatchSummary()
        total_files = count_planned_files(passes)

        pbar = tqdm(total=total_files, desc="Extracting", unit="file", disable=not self.progress)
        try:
            with ThreadPoolExecutor(
                max_workers=self.config.num_routines,
                thread_name_prefix='extract',
            ) as pool:
                for batch in passes:
                    if batch.file_count == 0:
                        continue
                    self._run_pass(pool, batch, summary, pbar)
        finally:
            pbar.close()

        if self.rotator is not None:
            summary.record_rotations(self.rotator.wait(self.config.rotation_wait_timeout))

        return summary
