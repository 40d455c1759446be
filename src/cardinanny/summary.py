"""Running record of every label dropped since the process started."""

from __future__ import annotations

import threading
from typing import Mapping, Sequence


class RemediationSummary:
    """
    Append-only mapping of job name to labels dropped for it.

    The control loop is the only writer; the status endpoint reads through
    ``snapshot()``, which copies under the lock so a reader never sees a
    half-applied update. Labels are not deduplicated: a label dropped again
    in a later pass is recorded again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._dropped: dict[str, list[str]] = {}

    def record(self, job_to_labels: Mapping[str, Sequence[str]]) -> None:
        with self._lock:
            for job, labels in job_to_labels.items():
                self._dropped.setdefault(job, []).extend(labels)

    def snapshot(self) -> dict[str, list[str]]:
        with self._lock:
            return {job: list(labels) for job, labels in self._dropped.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._dropped)
