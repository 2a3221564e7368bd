"""
Module for uploading a folder with a pool of workers pulling from a shared cursor.
"""
import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from contextlib import ExitStack
from pathlib import Path
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .gateway import CellarGateway
from .models import DEFAULT_WORKERS, UploadResult, UploadSummary, UploadTask
from .scanner import FileScanner, resolve_content_type
from .tracker import UPLOAD_BAR_FORMAT, ConsoleReporter, ProgressCounters

logger = logging.getLogger(__name__)

# Per-file failures that are counted instead of aborting the pass.
UPLOAD_ERRORS = (OSError, ClientError, BotoCoreError)


class TaskCursor:
    """Hands out each index of a task list to exactly one caller."""

    def __init__(self, size: int):
        self._size = size
        self._next = 0
        self._lock = threading.Lock()

    def claim(self) -> Optional[int]:
        """Claim the next unclaimed index, or None once the list is exhausted."""
        with self._lock:
            if self._next >= self._size:
                return None
            index = self._next
            self._next += 1
            return index

    def close(self) -> None:
        """Stop handing out indexes."""
        with self._lock:
            self._next = self._size


class UploadScheduler:
    """Uploads every file of a folder with a bounded worker pool."""

    def __init__(self, gateway: CellarGateway,
                 reporter: Optional[ConsoleReporter] = None,
                 worker_count: int = DEFAULT_WORKERS,
                 scanner: Optional[FileScanner] = None):
        """Initialize the upload scheduler.

        Args:
            gateway: Store gateway bound to the bucket
            reporter: Console writer for progress lines
            worker_count: Maximum number of concurrent uploads
            scanner: File scanner used to enumerate the folder
        """
        if worker_count < 1:
            raise ValueError("worker_count must be positive")
        self.gateway = gateway
        self.reporter = reporter or ConsoleReporter()
        self.worker_count = worker_count
        self.scanner = scanner or FileScanner()

    def _upload_file(self, task: UploadTask) -> UploadResult:
        """Upload a single file.

        Args:
            task: File and destination key

        Returns:
            UploadResult object
        """
        size_bytes = None
        content_type = resolve_content_type(task.local_path)
        try:
            body = task.local_path.read_bytes()
            size_bytes = len(body)
            self.gateway.put_object(task.key, body, content_type)
            return UploadResult(
                file_path=task.local_path,
                key=task.key,
                success=True,
                size_bytes=size_bytes,
                content_type=content_type
            )
        except UPLOAD_ERRORS as e:
            logger.error(f"Error uploading {task.local_path} to {task.key}: {e}")
            return UploadResult(
                file_path=task.local_path,
                key=task.key,
                success=False,
                error=str(e),
                size_bytes=size_bytes,
                content_type=content_type
            )

    def _worker(self, tasks: List[UploadTask], cursor: TaskCursor,
                counters: ProgressCounters, results: List[Optional[UploadResult]]) -> None:
        while (index := cursor.claim()) is not None:
            task = tasks[index]
            result = self._upload_file(task)
            results[index] = result

            if result.success:
                counters.record_success()
            else:
                counters.record_failure()
                self.reporter.error(f"Failed to upload {task.local_path}: {result.error}")

    def upload_tasks(self, tasks: List[UploadTask]) -> UploadSummary:
        """Upload a fixed list of tasks.

        The first unexpected worker exception stops the cursor, so the
        remaining workers finish their current file and exit before it is
        re-raised.

        Args:
            tasks: Files and their destination keys

        Returns:
            UploadSummary object
        """
        cursor = TaskCursor(len(tasks))
        results: List[Optional[UploadResult]] = [None] * len(tasks)
        workers = min(self.worker_count, len(tasks))

        with ExitStack() as stack:
            bar = None
            if workers:
                bar = stack.enter_context(
                    self.reporter.progress_bar(UPLOAD_BAR_FORMAT, total=len(tasks))
                )
            counters = ProgressCounters(total=len(tasks), bar=bar)

            if workers:
                executor = stack.enter_context(
                    ThreadPoolExecutor(max_workers=workers, thread_name_prefix="upload")
                )
                futures = [
                    executor.submit(self._worker, tasks, cursor, counters, results)
                    for _ in range(workers)
                ]
                try:
                    done, _ = wait(futures, return_when=FIRST_EXCEPTION)
                    for future in done:
                        future.result()
                except BaseException:
                    cursor.close()
                    raise

        stats = counters.stats()
        return UploadSummary(
            total_files=len(tasks),
            successful_uploads=counters.processed,
            failed_uploads=counters.failed,
            elapsed_seconds=stats.elapsed,
            rate=stats.rate,
            results=[r for r in results if r is not None]
        )

    def upload_folder(self, folder: Path) -> UploadSummary:
        """Upload every file below a folder.

        Args:
            folder: Upload root

        Returns:
            UploadSummary object

        Raises:
            ScanError: If the folder cannot be enumerated
        """
        folder = Path(folder)
        self.reporter.write("Scanning folder... ")
        try:
            tasks = self.scanner.build_tasks(folder)
            self.reporter.line(f"found {len(tasks)} files")

            summary = self.upload_tasks(tasks)
        except Exception as e:
            self.reporter.line("Upload failed")
            self.reporter.error(f"   Error: {e}")
            logger.error(f"Error uploading {folder}: {e}")
            raise

        stats_text = f"{summary.elapsed_seconds:.1f}s ({summary.rate:.1f}/s)"
        if summary.has_errors:
            self.reporter.line(
                f"Upload completed with errors! {summary.successful_uploads} successful, "
                f"{summary.failed_uploads} failed in {stats_text}"
            )
        else:
            self.reporter.line(f"Upload complete! {summary.total_files} files in {stats_text}")

        logger.info(
            f"Uploaded {folder}: "
            f"{summary.successful_uploads}/{summary.total_files} files uploaded successfully"
        )
        return summary
