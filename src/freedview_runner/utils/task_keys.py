"""Task key derivation from tester result folder paths."""

import logging
import re

from freedview_runner.constants import TASK_KEY_FALLBACK_SEGMENTS, TASK_KEY_MARKER

logger = logging.getLogger(__name__)

# Frame folders are named F followed by digits only, e.g. F0042
FRAME_FOLDER_PATTERN = r"^F\d+$"


def _is_frame_folder(segment: str) -> bool:
    return re.match(FRAME_FOLDER_PATTERN, segment) is not None


def derive_task_key(path: str) -> str:
    """Derive the task key naming a comparison folder.

    With the ``testSets_results`` marker present the key is the relative path
    after it, cut after the frame folder:

        C:\\data\\testSets_results\\Soccer\\StadiumX\\EventY\\SetZ\\F0042\\out
        -> Soccer/StadiumX/EventY/SetZ/F0042

    Without the marker the last four segments are used when the path ends in a
    frame folder. Returns an empty string when neither applies.
    """
    normalized = path.strip().strip("\"'").replace("\\", "/")

    marker_index = normalized.lower().find(TASK_KEY_MARKER.lower())
    if marker_index >= 0:
        remainder = normalized[marker_index + len(TASK_KEY_MARKER) :]
        segments = [segment for segment in remainder.split("/") if segment]
        for idx, segment in enumerate(segments):
            if _is_frame_folder(segment):
                segments = segments[: idx + 1]
                break
        task_key = "/".join(segments)
        logger.debug(f"Extracted task key {task_key!r} from path {path!r}")
        return task_key

    segments = [segment for segment in normalized.split("/") if segment]
    if len(segments) >= TASK_KEY_FALLBACK_SEGMENTS and _is_frame_folder(segments[-1]):
        task_key = "/".join(segments[-TASK_KEY_FALLBACK_SEGMENTS:])
        logger.debug(f"Extracted task key {task_key!r} (fallback) from path {path!r}")
        return task_key

    logger.debug(f"Could not extract task key from path {path!r}")
    return ""
