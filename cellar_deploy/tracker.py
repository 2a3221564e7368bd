"""
Module for progress accounting, console output and run logs.
"""
import json
import logging
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from tqdm import tqdm

from .models import DeployResult

logger = logging.getLogger(__name__)

# Shortest elapsed time used for rates, in seconds.
MIN_ELAPSED = 0.001

UPLOAD_BAR_FORMAT = (
    "Uploading... {n}/{total} ({percentage:.1f}%) - {elapsed_s:.1f}s at {rate_noinv_fmt}"
)
DELETE_BAR_FORMAT = (
    "Deleting objects... {n} deleted ({elapsed_s:.1f}s at {rate_noinv_fmt}) - {desc}"
)


@dataclass(frozen=True)
class Stats:
    """Elapsed time and throughput of a pass."""
    elapsed: float
    rate: float

    @property
    def elapsed_text(self) -> str:
        return f"{self.elapsed:.1f}"

    @property
    def rate_text(self) -> str:
        return f"{self.rate:.1f}"


def calculate_stats(started_at: float, count: int, now: Optional[float] = None) -> Stats:
    """Compute elapsed seconds and items per second.

    Args:
        started_at: ``time.monotonic()`` value when the pass started
        count: Number of items processed so far
        now: Current monotonic time, read from the clock when omitted

    Returns:
        Stats for the pass
    """
    if now is None:
        now = time.monotonic()
    elapsed = max(now - started_at, 0.0)
    return Stats(elapsed=elapsed, rate=count / max(elapsed, MIN_ELAPSED))


class ProgressCounters:
    """Counters shared by the workers of one clear or upload pass.

    When a progress bar is attached, each success advances it under the
    counters' lock.
    """

    def __init__(self, total: int = 0, clock=time.monotonic, bar: Optional[tqdm] = None):
        self.total = total
        self.processed = 0
        self.failed = 0
        self.bar = bar
        self._clock = clock
        self.started_at = clock()
        self._lock = threading.Lock()

    def record_success(self, count: int = 1) -> int:
        """Add confirmed items and return the new processed count."""
        with self._lock:
            self.processed += count
            if self.bar is not None:
                self.bar.update(count)
            return self.processed

    def record_failure(self, count: int = 1) -> int:
        """Add failed items and return the new failure count."""
        with self._lock:
            self.failed += count
            return self.failed

    def stats(self) -> Stats:
        with self._lock:
            processed = self.processed
        return calculate_stats(self.started_at, processed, self._clock())


class ConsoleReporter:
    """Single writer for progress bars and phase summaries.

    Lines are written with ``tqdm.write`` so a live bar on the same stream
    is cleared and redrawn around them.
    """

    def __init__(self, stream: Optional[TextIO] = None, err_stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self.err_stream = err_stream or sys.stderr

    def write(self, text: str) -> None:
        """Write text without a line break."""
        tqdm.write(text, file=self.stream, end="")
        self.stream.flush()

    def line(self, text: str = "") -> None:
        tqdm.write(text, file=self.stream)
        self.stream.flush()

    def error(self, text: str) -> None:
        tqdm.write(text, file=self.err_stream)
        self.err_stream.flush()

    def progress_bar(self, bar_format: str, total: Optional[int] = None,
                     desc: Optional[str] = None) -> tqdm:
        """Open a live progress bar on the output stream.

        Args:
            bar_format: tqdm format string for the whole line
            total: Expected item count, None when unknown
            desc: Initial description, available as ``{desc}``

        Returns:
            tqdm instance; close it (or use it as a context manager) when
            the pass ends
        """
        return tqdm(
            total=total,
            desc=desc,
            bar_format=bar_format,
            unit="",
            file=self.stream,
            leave=True,
            dynamic_ncols=False
        )


class DeploymentLog:
    """Persists a JSON record of each finished deployment."""

    def __init__(self, log_dir: Optional[Path] = None):
        """Initialize the deployment log.

        Args:
            log_dir: Directory to store run logs. If None, nothing is written.
        """
        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def _get_log_path(self, bucket_name: str) -> Optional[Path]:
        if not self.log_dir:
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self.log_dir / f"deploy_{bucket_name}_{timestamp}.json"

    def record(self, result: DeployResult) -> Optional[Path]:
        """Write the outcome of a deployment.

        Args:
            result: Finished deployment

        Returns:
            Path of the written log, or None when logging is disabled
        """
        log_data = {
            "timestamp": datetime.now().isoformat(),
            "bucket": result.bucket_name,
            "state": result.state.value,
            "bucket_created": result.bucket_created,
        }

        if clear := result.clear_summary:
            log_data["clear"] = {
                "deleted": clear.deleted,
                "failed": clear.failed,
                "batches": clear.batches,
                "elapsed_seconds": round(clear.elapsed_seconds, 1),
                "failed_keys": clear.failed_keys,
            }

        if upload := result.upload_summary:
            log_data["upload"] = {
                "total_files": upload.total_files,
                "successful_uploads": upload.successful_uploads,
                "failed_uploads": upload.failed_uploads,
                "elapsed_seconds": round(upload.elapsed_seconds, 1),
                "failures": [
                    {"file_path": str(r.file_path), "key": r.key, "error": r.error}
                    for r in upload.failed_results
                ],
            }

        log_path = self._get_log_path(result.bucket_name)
        if log_path:
            with open(log_path, 'w') as f:
                json.dump(log_data, f, indent=2)
            logger.debug(f"Wrote deployment log {log_path}")

        return log_path
