# Rotation module
"""Rotate extracted JPEGs in place with ImageMagick's 'convert'."""

import logging
import subprocess
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import List, Optional

from .errors import RotationError
from .models import ExtractionResult, RotationReport, RotationRequest
from .utils import format_degrees


logger = logging.getLogger(__name__)

# ImageMagick's 'convert' utility
CONVERT_BIN = 'convert'


def build_rotate_command(request: RotationRequest, convert_bin: str = CONVERT_BIN) -> List[str]:
    """convert -rotate <degrees> <path> <path> (same file in and out)."""
    path = str(request.path)
    return [convert_bin, '-rotate', format_degrees(request.degrees), path, path]


def rotate_in_place(
    request: RotationRequest,
    convert_bin: str = CONVERT_BIN,
    timeout: Optional[float] = None,
) -> None:
    """
    Run the rotation tool on a single JPEG and wait for it.

    A process still running after `timeout` seconds is killed.

    Raises:
        RotationError: launch failure, timeout or nonzero exit status
    """
    cmd = build_rotate_command(request, convert_bin)
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise RotationError(f"'{convert_bin}' timed out after {e.timeout}s on {request.path}") from e
    except OSError as e:
        raise RotationError(f"unable to launch '{convert_bin}': {e}") from e

    if proc.returncode != 0:
        detail = (proc.stderr or '').strip() or f"Exit code: {proc.returncode}"
        raise RotationError(f"'{convert_bin}' failed on {request.path}: {detail}")


class RotationDispatcher:
    """
    Best-effort post-processing of decoded files, tracked until the end of a run.

    Rotations run on their own bounded pool so they never hold a decode
    slot. Every submitted rotation is remembered; `wait()` blocks (up to a
    timeout) until they finish and reports how they went. Failures are
    logged and counted, never retried and never propagated to the decode
    task that triggered them.
    """

    def __init__(
        self,
        convert_bin: str = CONVERT_BIN,
        max_workers: int = 2,
        timeout: Optional[float] = None,
    ):
        self.convert_bin = convert_bin
        self.timeout = timeout
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='rotate')
        self._futures: List[Future] = []
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_config(cls, config) -> 'RotationDispatcher':
        return cls(
            convert_bin=config.convert_bin,
            max_workers=config.rotation_workers,
            timeout=config.rotation_timeout,
        )

    def dispatch(self, result: ExtractionResult) -> Optional[Future]:
        """
        Queue a rotation for a decoded file if its orientation calls for one.

        Safe to call from decode worker threads. Returns the rotation future,
        or None when nothing needs rotating.
        """
        request = RotationRequest.from_result(result)
        if request is None:
            return None

        with self._lock:
            if self._closed:
                logger.warning("Rotation dispatcher closed; not rotating %s", request.path)
                return None
            future = self._pool.submit(self._run, request)
            self._futures.append(future)
        return future

    def _run(self, request: RotationRequest) -> bool:
        logger.info("Rotating image %s degrees for jpeg: '%s'", format_degrees(request.degrees), request.path)
        try:
            rotate_in_place(request, self.convert_bin, self.timeout)
        except RotationError as e:
            logger.error("Rotation failed: %s", e)
            return False
        return True

    @property
    def submitted(self) -> int:
        with self._lock:
            return len(self._futures)

    def wait(self, timeout: Optional[float] = None) -> RotationReport:
        """
        Wait for every dispatched rotation, then shut the pool down.

        Rotations still queued when `timeout` expires are cancelled; ones
        already running are left to their own process timeout. Both are
        reported as pending.
        """
        with self._lock:
            self._closed = True
            futures = list(self._futures)

        report = RotationReport()
        if futures:
            logger.info("Waiting for %d rotation(s) to finish", len(futures))

        done, not_done = wait(futures, timeout=timeout)
        for future in done:
            error = future.exception()
            if error is not None:
                logger.error("Rotation crashed: %r", error)
                report.failed += 1
            elif future.result():
                report.completed += 1
            else:
                report.failed += 1
        report.pending = len(not_done)

        if not_done:
            logger.warning("%d rotation(s) still outstanding after %ss", len(not_done), timeout)
        self._pool.shutdown(wait=False, cancel_futures=True)
        return report
