from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock, patch

from ticket_recon.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:

    def test_init_with_tty_enabled(self):
        with patch('ticket_recon.services.progress.is_tty_enabled', return_value=True), \
             patch('ticket_recon.services.progress.tqdm') as mock_tqdm:

            tracker = ProgressTracker(5, description="Test files")

            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Test files",
                unit="file",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('ticket_recon.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(5)

            assert tracker.description == "Reconciling files"
            assert tracker.enabled is False
            assert tracker.pbar is None

    def test_file_lifecycle_updates_bar(self):
        mock_pbar = Mock()

        with patch('ticket_recon.services.progress.is_tty_enabled', return_value=True), \
             patch('ticket_recon.services.progress.tqdm', return_value=mock_pbar):

            tracker = ProgressTracker(3, description="Processing")
            tracker.start_file(Path("data/erp_a.xlsx"))
            assert tracker.current_file == 1
            mock_pbar.set_description.assert_called_with("Processing (erp_a.xlsx)")

            tracker.finish_file()
            mock_pbar.update.assert_called_once_with(1)
            mock_pbar.set_description.assert_called_with("Processing")

            tracker.set_postfix(success=1, failed=0)
            mock_pbar.set_postfix.assert_called_once_with(success=1, failed=0)

    def test_without_tty_nothing_is_drawn(self):
        with patch('ticket_recon.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(2)
            tracker.start_file(Path("a.xlsx"))
            tracker.finish_file()
            tracker.set_postfix(rows=10)
            tracker.close()
            assert tracker.current_file == 1

    def test_context_manager_closes_bar(self):
        mock_pbar = Mock()

        with patch('ticket_recon.services.progress.is_tty_enabled', return_value=True), \
             patch('ticket_recon.services.progress.tqdm', return_value=mock_pbar):

            with ProgressTracker(1) as tracker:
                tracker.finish_file()

            mock_pbar.close.assert_called_once()
            assert tracker.pbar is None
