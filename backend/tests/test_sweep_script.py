"""
Tests for scripts/sweep_expired_sessions.py.
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "scripts"))

import sweep_expired_sessions as sweep_script  # noqa: E402
from hiring_assessment.core.session_engine import SweepResult  # noqa: E402


@pytest.fixture
def mock_db():
    db = MagicMock()
    with patch.object(sweep_script, "SessionLocal", return_value=db), patch.object(
        sweep_script, "setup_logging"
    ):
        yield db


class TestSweepScript:
    """Tests for the sweep command line entry point."""

    def test_dry_run_lists_without_settling(self, mock_db, capsys):
        with patch.object(
            sweep_script.session_engine,
            "find_overdue_session_codes",
            return_value=iter(["TSA", "TSB"]),
        ), patch.object(
            sweep_script.session_engine, "sweep_expired_sessions"
        ) as mock_sweep:
            exit_code = sweep_script.main(["--dry-run"])

        assert exit_code == 0
        mock_sweep.assert_not_called()
        output = capsys.readouterr().out
        assert "[DRY RUN] 2 overdue session(s)" in output
        assert "TSB" in output
        mock_db.close.assert_called_once()

    def test_sweep_reports_counts(self, mock_db, capsys):
        with patch.object(
            sweep_script.session_engine,
            "sweep_expired_sessions",
            return_value=SweepResult(evaluated=["TSA"], expired=["TSB", "TSC"]),
        ):
            exit_code = sweep_script.main([])

        assert exit_code == 0
        assert "Evaluated: 1  Expired: 2  Failed: 0" in capsys.readouterr().out

    def test_failures_give_nonzero_exit(self, mock_db):
        with patch.object(
            sweep_script.session_engine,
            "sweep_expired_sessions",
            return_value=SweepResult(failed=["TSA"]),
        ):
            assert sweep_script.main([]) == 1
