"""Parse git transfer progress into discrete, monotonic phases."""

from __future__ import annotations

import re
from typing import Callable, Dict, Optional

ProgressObserver = Callable[[str, str, int], None]
"""Called with ``(url, phase, percent)``."""

PHASES = ("enumerate", "compress", "transfer", "resolve")

_PHASE_BY_LABEL: Dict[str, str] = {
    "Enumerating objects": "enumerate",
    "Counting objects": "enumerate",
    "Compressing objects": "compress",
    "Receiving objects": "transfer",
    "Resolving deltas": "resolve",
}

_PROGRESS_LINE = re.compile(
    r"(?:remote: )?(?P<label>Enumerating objects|Counting objects|Compressing objects"
    r"|Receiving objects|Resolving deltas):\s+(?P<percent>\d{1,3})%"
)


class ProgressTracker:
    """Feeds raw git stderr output to an observer.

    Git rewrites progress lines in place with carriage returns, so the stream is
    split on both ``\\r`` and ``\\n``. Reports never go backwards: a phase earlier
    than the current one, or a percentage not above the last reported one, is
    dropped.
    """

    def __init__(self, url: str, observer: Optional[ProgressObserver]) -> None:
        self.url = url
        self.observer = observer
        self._buffer = ""
        self._phase_index = -1
        self._percent = -1

    def feed(self, chunk: str) -> None:
        if not chunk:
            return
        self._buffer += chunk
        *lines, self._buffer = re.split(r"[\r\n]", self._buffer)
        for line in lines:
            self._handle_line(line)

    def close(self) -> None:
        if self._buffer:
            self._handle_line(self._buffer)
            self._buffer = ""

    def _handle_line(self, line: str) -> None:
        match = _PROGRESS_LINE.search(line)
        if match is None:
            return
        phase = _PHASE_BY_LABEL[match.group("label")]
        percent = min(int(match.group("percent")), 100)
        index = PHASES.index(phase)
        if index < self._phase_index:
            return
        if index == self._phase_index and percent <= self._percent:
            return
        self._phase_index = index
        self._percent = percent
        if self.observer is not None:
            self.observer(self.url, phase, percent)


__all__ = ["PHASES", "ProgressObserver", "ProgressTracker"]
