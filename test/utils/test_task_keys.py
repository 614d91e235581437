"""Unit tests for task key derivation."""

from freedview_runner.utils.task_keys import derive_task_key


class TestDeriveTaskKeyWithMarker:
    def test_round_trip_stops_at_frame_folder(self):
        path = "/mnt/data/testSets_results/Soccer/StadiumX/EventY/SetZ/F0042/results/diff"
        assert derive_task_key(path) == "Soccer/StadiumX/EventY/SetZ/F0042"

    def test_absolute_and_relative_paths_agree(self):
        absolute = "/mnt/data/run1/testSets_results/Soccer/StadiumX/EventY/SetZ/F0042"
        relative = "testSets_results/Soccer/StadiumX/EventY/SetZ/F0042"
        assert derive_task_key(absolute) == derive_task_key(relative)

    def test_windows_separators_normalized(self):
        path = r"D:\renders\testSets_results\Soccer\StadiumX\EventY\SetZ\F0042"
        assert derive_task_key(path) == "Soccer/StadiumX/EventY/SetZ/F0042"

    def test_marker_is_case_insensitive(self):
        path = "/data/TESTSETS_RESULTS/Soccer/StadiumX/EventY/SetZ/F0001/"
        assert derive_task_key(path) == "Soccer/StadiumX/EventY/SetZ/F0001"

    def test_trailing_and_duplicate_slashes_removed(self):
        path = "/data/testSets_results//Hockey/ArenaA/Game1/"
        assert derive_task_key(path) == "Hockey/ArenaA/Game1"

    def test_quoted_path(self):
        path = '"/data/testSets_results/Soccer/StadiumX/EventY/SetZ/F0042"'
        assert derive_task_key(path) == "Soccer/StadiumX/EventY/SetZ/F0042"


class TestDeriveTaskKeyFallback:
    def test_last_four_segments_when_marker_missing(self):
        path = "/other/root/Soccer/STADIUMX/EVENT01/F0042"
        assert derive_task_key(path) == "Soccer/STADIUMX/EVENT01/F0042"

    def test_no_frame_folder_yields_empty_key(self):
        assert derive_task_key("/other/root/Soccer/STADIUMX/EVENT01/output") == ""

    def test_too_few_segments_yields_empty_key(self):
        assert derive_task_key("EVENT01/F0042") == ""

    def test_frame_folder_requires_digits_only(self):
        assert derive_task_key("/a/b/c/d/F00x2") == ""

    def test_empty_path(self):
        assert derive_task_key("") == ""
