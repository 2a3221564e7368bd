"""
Module for emptying a bucket in sequential batches of parallel deletions.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from typing import List, Optional, Set

from .errors import ClearError
from .gateway import CellarGateway
from .models import BATCH_DELETE_SIZE, ClearSummary
from .tracker import DELETE_BAR_FORMAT, ConsoleReporter, ProgressCounters

logger = logging.getLogger(__name__)

DEFAULT_DELETE_WORKERS = 100


class BucketClearer:
    """Deletes every object of a bucket before a fresh upload."""

    def __init__(self, gateway: CellarGateway,
                 reporter: Optional[ConsoleReporter] = None,
                 batch_size: int = BATCH_DELETE_SIZE,
                 delete_workers: int = DEFAULT_DELETE_WORKERS):
        """Initialize the clearer.

        Args:
            gateway: Store gateway bound to the bucket
            reporter: Console writer for progress lines
            batch_size: Keys requested per listing
            delete_workers: Threads deleting the keys of one page
        """
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.gateway = gateway
        self.reporter = reporter or ConsoleReporter()
        self.batch_size = batch_size
        self.delete_workers = max(1, delete_workers)

    def clear(self) -> ClearSummary:
        """Delete all objects currently in the bucket.

        Pages are processed one at a time: the next listing is only
        requested once every deletion of the current page has settled.

        Returns:
            ClearSummary of the pass

        Raises:
            ClearError: If the bucket cannot be emptied
        """
        self.reporter.write("Clearing bucket... ")
        counters = ProgressCounters()
        failed_keys: Set[str] = set()
        failed_order: List[str] = []
        batches = 0

        try:
            with ExitStack() as stack:
                executor = stack.enter_context(
                    ThreadPoolExecutor(max_workers=self.delete_workers, thread_name_prefix="delete")
                )
                while True:
                    page = self.gateway.list_objects(self.batch_size)
                    if not page.objects:
                        break

                    # Keys that failed once stay failed for the rest of the run.
                    keys = [obj.key for obj in page.objects if obj.key not in failed_keys]
                    if not keys:
                        if len(page) >= self.batch_size:
                            raise ClearError(
                                f"{len(failed_keys)} objects could not be deleted, "
                                "no progress possible"
                            )
                        break

                    batches += 1
                    if counters.bar is None:
                        self.reporter.line("found objects, starting deletion...")
                        counters.bar = stack.enter_context(
                            self.reporter.progress_bar(DELETE_BAR_FORMAT)
                        )
                    counters.bar.set_description_str(f"batch {batches}", refresh=False)

                    results = list(executor.map(self.gateway.delete_object, keys))
                    for key, deleted in zip(keys, results):
                        if deleted:
                            counters.record_success()
                        else:
                            counters.record_failure()
                            failed_keys.add(key)
                            failed_order.append(key)

                    if len(page) < self.batch_size and not page.is_truncated:
                        break

                    self.reporter.line(f"Batch {batches} complete, checking for more...")

        except Exception as e:
            self.reporter.line("failed")
            self.reporter.error(f"   Error: {e}")
            logger.error(f"Error clearing bucket: {e}")
            raise

        stats = counters.stats()
        summary = ClearSummary(
            deleted=counters.processed,
            failed=counters.failed,
            batches=batches,
            elapsed_seconds=stats.elapsed,
            rate=stats.rate,
            failed_keys=failed_order
        )
        self._report(summary, stats)
        return summary

    def _report(self, summary: ClearSummary, stats) -> None:
        if summary.already_empty:
            self.reporter.line("already empty")
        elif summary.has_errors:
            self.reporter.line(
                f"Clearing completed with errors! {summary.deleted} deleted, "
                f"{summary.failed} failed in {stats.elapsed_text}s (avg: {stats.rate_text}/s)"
            )
        else:
            self.reporter.line(
                f"All objects deleted! Total: {summary.deleted} files in "
                f"{stats.elapsed_text}s (avg: {stats.rate_text}/s)"
            )
        logger.info(
            f"Cleared bucket {self.gateway.bucket_name}: "
            f"{summary.deleted} deleted, {summary.failed} failed in {summary.batches} batches"
        )
