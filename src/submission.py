"""Scan submission: analyze now when online, queue for later when offline."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import StrEnum

from src.connectivity import ConnectivityMonitor
from src.datamodels import MenuItem
from src.datamodels import PendingScan
from src.datamodels import User
from src.image_validation import ImageValidationError
from src.services.menu_analyzer import AnalysisError
from src.storage import PendingScanStore
from src.storage import StorageQuotaError
from src.storage import TranslationCache

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_MESSAGE = "Failed to translate menu. Please try again."
EMPTY_SCAN_TRANSLATED_SUMMARY = "Menu Scan"
EMPTY_SCAN_ORIGINAL_SUMMARY = "Original Menu"

Analyzer = Callable[[str, str], list[MenuItem]]
HistorySaver = Callable[[str, str, str, str], int]


class SubmissionInProgressError(Exception):
    """Raised when a scan is submitted while another is still being analyzed."""


class PendingScanNotFoundError(Exception):
    """Raised when loading a pending scan that is not in the queue."""


class SubmissionState(StrEnum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    QUEUED = "queued"


@dataclass
class SubmissionResult:
    state: SubmissionState
    items: list[MenuItem] = field(default_factory=list)
    pending_scan: PendingScan | None = None


def summarize(items: list[MenuItem]) -> tuple[str, str]:
    """Return the (original, translated) summary stored in history."""
    if not items:
        return EMPTY_SCAN_ORIGINAL_SUMMARY, EMPTY_SCAN_TRANSLATED_SUMMARY
    return items[0].original, items[0].translated


class ScanSubmissionController:
    """Decides, per user request, whether a scan is analyzed now or queued.

    Offline is checked before any network call; a known-offline scan goes
    straight to the pending queue. History is saved in a detached task whose
    failure is logged and never changes the outcome already returned.
    """

    def __init__(
        self,
        connectivity: ConnectivityMonitor,
        pending_scans: PendingScanStore,
        analyze: Analyzer,
        save_history: HistorySaver,
        translation_cache: TranslationCache | None = None,
    ) -> None:
        self.connectivity = connectivity
        self.pending_scans = pending_scans
        self.analyze = analyze
        self.save_history = save_history
        self.translation_cache = translation_cache
        self.state = SubmissionState.IDLE
        self.selected_image: str | None = None
        self.error: str | None = None
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def is_busy(self) -> bool:
        return self.state == SubmissionState.SUBMITTING

    async def submit(self, image_data: str, target_language: str, current_user: User | None = None) -> SubmissionResult:
        """Analyze a menu image, or queue it when offline.

        Raises:
            ImageValidationError: If no image is given.
            SubmissionInProgressError: If another submission is running.
            StorageQuotaError: If the offline queue is full even without cached translations.
            AnalysisError: If the analyzer fails, with a user-facing message.
        """
        if not image_data:
            raise ImageValidationError("No image selected")
        if self.is_busy:
            raise SubmissionInProgressError("A scan is already being translated")

        self.error = None
        if not self.connectivity.is_online:
            scan = self._queue_scan(image_data)
            self.state = SubmissionState.QUEUED
            logger.info(f"Offline, queued scan {scan.id} for later")
            return SubmissionResult(state=SubmissionState.QUEUED, pending_scan=scan)

        self.state = SubmissionState.SUBMITTING
        try:
            items = await asyncio.to_thread(self.analyze, image_data, target_language)
        except Exception as e:
            self.state = SubmissionState.FAILED
            self.error = ANALYSIS_FAILED_MESSAGE
            logger.error(f"Menu analysis failed: {e}")
            raise AnalysisError(ANALYSIS_FAILED_MESSAGE) from e

        self.state = SubmissionState.SUCCEEDED
        original_summary, translated_summary = summarize(items)
        self._cache_translation(items, image_data, original_summary, translated_summary)
        if current_user is not None:
            self._start_history_save(current_user.id, original_summary, translated_summary, image_data)
        return SubmissionResult(state=SubmissionState.SUCCEEDED, items=items)

    def process_pending(self, scan_id: str) -> PendingScan:
        """Bring a queued scan back as the selected image and drop it from the queue.

        The scan is not resubmitted; that is a separate submit by the user.
        """
        scan = self.pending_scans.get(scan_id)
        if scan is None:
            raise PendingScanNotFoundError(f"No pending scan with id {scan_id}")
        self.selected_image = scan.image_data
        self.pending_scans.remove(scan.id)
        return scan

    async def wait_for_background(self) -> None:
        """Wait until all detached history saves have finished."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    def _queue_scan(self, image_data: str) -> PendingScan:
        """Save to the offline queue, clearing cached translations if they fill the storage."""
        try:
            return self.pending_scans.save(image_data)
        except StorageQuotaError:
            if self.translation_cache is None or not self.translation_cache.list():
                raise
            logger.warning("Storage full, clearing cached translations to queue the scan")
            self.translation_cache.clear()
            return self.pending_scans.save(image_data)

    def _cache_translation(self, items, image_data, original_summary, translated_summary) -> None:
        if self.translation_cache is None:
            return
        try:
            self.translation_cache.save(items, image_data, original_summary, translated_summary)
        except Exception as e:
            logger.warning(f"Could not cache translation: {e}")

    def _start_history_save(self, user_id, original_summary, translated_summary, image_data) -> None:
        task = asyncio.create_task(
            asyncio.to_thread(self.save_history, user_id, original_summary, translated_summary, image_data)
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._on_history_saved)

    def _on_history_saved(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            logger.warning("History save was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Failed to save scan to history: {error}")
        else:
            logger.info(f"Saved scan to history as record {task.result()}")
