"""Tests for the scan submission controller."""

import asyncio
import logging
import threading
from unittest.mock import MagicMock
from unittest.mock import patch

import pytest

from src.connectivity import ConnectivityMonitor
from src.datamodels import MenuItem
from src.datamodels import User
from src.image_validation import ImageValidationError
from src.services.history_client import HistorySaveError
from src.services.menu_analyzer import AnalysisError
from src.storage import InMemoryStorage
from src.storage import PendingScanStore
from src.storage import StorageQuotaError
from src.storage import TranslationCache
from src.submission import ANALYSIS_FAILED_MESSAGE
from src.submission import PendingScanNotFoundError
from src.submission import ScanSubmissionController
from src.submission import SubmissionInProgressError
from src.submission import SubmissionState

USER = User(id="google-123", email="ana@example.com", name="Ana")
ITEMS = [
    MenuItem(original="Gazpacho", translated="Cold tomato soup", dietary=["Vegan"]),
    MenuItem(original="Croquetas", translated="Croquettes", allergens=["dairy"]),
]


def make_controller(online: bool = True, analyze=None, save_history=None, storage=None):
    storage = storage or InMemoryStorage()
    return ScanSubmissionController(
        connectivity=ConnectivityMonitor(online=online),
        pending_scans=PendingScanStore(storage),
        analyze=analyze or MagicMock(return_value=ITEMS),
        save_history=save_history or MagicMock(return_value=1),
        translation_cache=TranslationCache(storage),
    )


async def submit_and_settle(controller, image_data="aW1hZ2U=", language="English", user=None):
    result = await controller.submit(image_data, language, user)
    await controller.wait_for_background()
    return result


def test_offline_submission_queues_without_analyzing():
    """Test a known-offline scan goes straight to the pending queue."""
    controller = make_controller(online=False)

    with patch.object(controller.pending_scans, "save", wraps=controller.pending_scans.save) as save:
        result = asyncio.run(submit_and_settle(controller, user=USER))

    assert result.state == SubmissionState.QUEUED
    assert controller.state == SubmissionState.QUEUED
    assert result.items == []
    assert result.pending_scan.image_data == "aW1hZ2U="
    save.assert_called_once_with("aW1hZ2U=")
    controller.analyze.assert_not_called()
    controller.save_history.assert_not_called()
    assert controller.pending_scans.list() == [result.pending_scan]


def test_offline_submission_propagates_quota_error():
    """Test a full queue is reported instead of silently dropping the scan."""
    controller = make_controller(online=False, storage=InMemoryStorage(quota_bytes=50))

    with pytest.raises(StorageQuotaError):
        asyncio.run(submit_and_settle(controller, image_data="x" * 100))


def test_offline_save_after_large_online_scan_clears_cache():
    """Test cached translations give way so a same-sized scan can still be queued."""
    controller = make_controller(storage=InMemoryStorage())
    image_data = "x" * 3_000_000

    asyncio.run(submit_and_settle(controller, image_data=image_data))
    assert len(controller.translation_cache.list()) == 1

    controller.connectivity.set_offline()
    result = asyncio.run(submit_and_settle(controller, image_data=image_data))

    assert result.state == SubmissionState.QUEUED
    assert controller.pending_scans.list() == [result.pending_scan]
    assert controller.translation_cache.list() == []


def test_online_submission_returns_items_and_saves_history():
    """Test a successful scan returns the dishes and records a summary."""
    controller = make_controller()

    result = asyncio.run(submit_and_settle(controller, language="German", user=USER))

    assert result.state == SubmissionState.SUCCEEDED
    assert controller.state == SubmissionState.SUCCEEDED
    assert result.items == ITEMS
    controller.analyze.assert_called_once_with("aW1hZ2U=", "German")
    controller.save_history.assert_called_once_with("google-123", "Gazpacho", "Cold tomato soup", "aW1hZ2U=")
    assert controller.pending_scans.list() == []


def test_successful_scan_is_cached():
    controller = make_controller()

    asyncio.run(submit_and_settle(controller))

    cached = controller.translation_cache.list()
    assert len(cached) == 1
    assert cached[0].menu_items == ITEMS
    assert cached[0].original_text == "Gazpacho"


def test_empty_result_uses_placeholder_summary():
    """Test an empty menu is saved to history with fixed placeholders."""
    controller = make_controller(analyze=MagicMock(return_value=[]))

    result = asyncio.run(submit_and_settle(controller, user=USER))

    assert result.items == []
    controller.save_history.assert_called_once_with("google-123", "Original Menu", "Menu Scan", "aW1hZ2U=")


def test_anonymous_submission_skips_history():
    controller = make_controller()

    asyncio.run(submit_and_settle(controller, user=None))

    controller.save_history.assert_not_called()


def test_history_failure_does_not_affect_result(caplog):
    """Test a failed history save is logged and the scan still succeeds."""
    controller = make_controller(save_history=MagicMock(side_effect=HistorySaveError("server down")))

    with caplog.at_level(logging.ERROR, logger="src.submission"):
        result = asyncio.run(submit_and_settle(controller, user=USER))

    assert result.state == SubmissionState.SUCCEEDED
    assert result.items == ITEMS
    assert controller.state == SubmissionState.SUCCEEDED
    assert "Failed to save scan to history: server down" in caplog.text


def test_analyzer_failure_surfaces_uniform_error():
    """Test any analyzer failure becomes the same user-facing AnalysisError."""
    cause = AnalysisError("Response truncated at token limit")
    controller = make_controller(analyze=MagicMock(side_effect=cause))

    with pytest.raises(AnalysisError) as exc_info:
        asyncio.run(submit_and_settle(controller, user=USER))

    assert str(exc_info.value) == ANALYSIS_FAILED_MESSAGE
    assert exc_info.value.__cause__ is cause
    assert controller.state == SubmissionState.FAILED
    assert controller.error == ANALYSIS_FAILED_MESSAGE
    assert not controller.is_busy
    assert controller.pending_scans.list() == []
    controller.save_history.assert_not_called()


def test_unexpected_analyzer_exception_is_treated_the_same():
    controller = make_controller(analyze=MagicMock(side_effect=ConnectionError("reset")))

    with pytest.raises(AnalysisError, match=ANALYSIS_FAILED_MESSAGE):
        asyncio.run(submit_and_settle(controller))

    assert controller.state == SubmissionState.FAILED


def test_empty_image_rejected():
    controller = make_controller()

    with pytest.raises(ImageValidationError, match="No image selected"):
        asyncio.run(submit_and_settle(controller, image_data=""))

    assert controller.state == SubmissionState.IDLE
    controller.analyze.assert_not_called()


def test_overlapping_submission_rejected():
    """Test a second submit while the first is in flight is refused."""
    release = threading.Event()

    def slow_analyze(image_data, language):
        release.wait(timeout=5)
        return ITEMS

    controller = make_controller(analyze=slow_analyze)

    async def scenario():
        first = asyncio.create_task(controller.submit("aW1hZ2U=", "English"))
        await asyncio.sleep(0)
        assert controller.is_busy
        with pytest.raises(SubmissionInProgressError):
            await controller.submit("b3RoZXI=", "English")
        release.set()
        return await first

    result = asyncio.run(scenario())

    assert result.items == ITEMS
    assert controller.state == SubmissionState.SUCCEEDED


def test_process_pending_loads_and_removes_one_scan():
    """Test loading a pending scan selects it and drops exactly that scan."""
    controller = make_controller(online=False)
    first = controller.pending_scans.save("Zmlyc3Q=")
    second = controller.pending_scans.save("c2Vjb25k")

    scan = controller.process_pending(first.id)

    assert scan == first
    assert controller.selected_image == "Zmlyc3Q="
    assert controller.pending_scans.list() == [second]
    controller.analyze.assert_not_called()


def test_process_pending_unknown_id():
    controller = make_controller()
    scan = controller.pending_scans.save("aW1hZ2U=")

    with pytest.raises(PendingScanNotFoundError):
        controller.process_pending("missing")

    assert controller.pending_scans.list() == [scan]
    assert controller.selected_image is None


def test_queued_scan_can_be_resubmitted_once_online():
    """Test the offline-to-online round trip is driven by the user."""
    controller = make_controller(online=False)
    queued = asyncio.run(submit_and_settle(controller))

    controller.connectivity.set_online()
    controller.process_pending(queued.pending_scan.id)
    result = asyncio.run(submit_and_settle(controller, image_data=controller.selected_image))

    assert result.state == SubmissionState.SUCCEEDED
    assert controller.pending_scans.list() == []
