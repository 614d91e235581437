"""Integration tests driving a fake tester through real subprocesses.

Usage:
    pytest test/integration -v
"""

import sys
import textwrap
from unittest.mock import MagicMock, call

import pytest

from freedview_runner.services.tester_runner import RunnerListener, TesterRunner

pytestmark = [pytest.mark.integration]

FAKE_TESTER = textwrap.dedent(
    """
    import os
    import sys
    import time

    verb = sys.argv[-1]
    print(f"args: {' '.join(sys.argv[1:])}", flush=True)
    if verb == "prepare-ui":
        print("Phase 4 completed", flush=True)
        sys.exit(int(os.environ.get("FAKE_PREPARE_EXIT", "0")))

    print("Starting comparison for: /r/testSets_results/S/A/B/C/F0001", flush=True)
    print("Starting comparison for: /r/testSets_results/S/A/B/C/F0002", flush=True)
    print("Progress: 5/50 frames (10%)", flush=True)
    print("Progress: 8/80 frames (10%)", flush=True)
    time.sleep(float(os.environ.get("FAKE_TESTER_SLEEP", "0")))
    print("Successfully completed comparison for: /r/testSets_results/S/A/B/C/F0001", flush=True)
    sys.exit(int(os.environ.get("FAKE_COMPARE_EXIT", "0")))
    """
)


@pytest.fixture
def tester_root(tmp_path):
    root = tmp_path / "freeDView_tester"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.py").write_text(FAKE_TESTER)
    (root / "freeDView_tester.ini").write_text("[paths]\n")
    return str(root)


@pytest.fixture
def listener():
    return MagicMock(spec=RunnerListener)


@pytest.fixture
def runner(listener):
    return TesterRunner(listener=listener, program=sys.executable, stop_grace_seconds=2.0)


def test_run_all_end_to_end(runner, listener, tester_root):
    assert runner.run_all(tester_root, "/unused/viewer.ini")
    assert runner.wait(timeout=30)

    listener.run_finished.assert_called_once()
    success, mode, exit_code, stdout, stderr = listener.run_finished.call_args[0]
    assert (success, mode, exit_code, stderr) == (True, "all", 0, "")
    assert "--ini" in stdout and "freeDView_tester.ini all" in stdout

    listener.task_progress_updated.assert_has_calls(
        [
            call("S/A/B/C/F0001", 0, "Starting..."),
            call("S/A/B/C/F0002", 0, "Starting..."),
            call("S/A/B/C/F0001", 10, "Processing: 5/50 frames"),
            call("S/A/B/C/F0002", 10, "Processing: 8/80 frames"),
            call("S/A/B/C/F0001", 100, "Completed"),
        ]
    )
    assert runner.active_tasks == {}


def test_compare_then_prepare_after_failed_compare(runner, listener, tester_root, monkeypatch):
    monkeypatch.setenv("FAKE_COMPARE_EXIT", "1")

    runner.run_compare_and_prepare(tester_root, "/unused/viewer.ini")
    assert runner.wait(timeout=30)

    listener.run_finished.assert_called_once()
    success, mode, exit_code, stdout, _ = listener.run_finished.call_args[0]
    assert (success, mode, exit_code) == (True, "compare+prepare", 0)
    assert "prepare-ui" in stdout
    listener.progress_updated.assert_any_call(-1, "Phase 4 completed")


def test_stop_cancels_running_tester(runner, listener, tester_root, monkeypatch):
    monkeypatch.setenv("FAKE_TESTER_SLEEP", "30")
    runner.run_all(tester_root, "/unused/viewer.ini")

    # Pump until both tasks have reported progress
    for _ in range(300):
        runner.process_events(timeout=0.1)
        if runner.active_tasks == {"S/A/B/C/F0001": 50, "S/A/B/C/F0002": 80}:
            break

    runner.stop()

    listener.run_finished.assert_called_once_with(
        False, "all", -1, "", "Operation cancelled by user"
    )
    listener.task_progress_updated.assert_any_call("S/A/B/C/F0001", -1, "Cancelled")
    listener.task_progress_updated.assert_any_call("S/A/B/C/F0002", -1, "Cancelled")
    assert runner.active_tasks == {}
    assert not runner.is_running

    # Exit of the killed process arrives late and is dropped
    runner.process_events(timeout=0.5)
    assert len(listener.run_finished.call_args_list) == 1


def test_parallel_prepare_ui(runner, listener, tester_root, monkeypatch):
    monkeypatch.setenv("FAKE_PREPARE_EXIT", "4")

    runner.run_prepare_ui(tester_root, "/unused/viewer.ini")
    assert runner.wait(timeout=30)

    listener.run_finished.assert_called_once()
    assert listener.run_finished.call_args[0][:3] == (False, "prepare-ui", 4)
    listener.output_line.assert_any_call("[Phase 4] Phase 4 completed", False)
