"""A small stopwatch for timing processing steps."""

from __future__ import annotations

import time

_UNIT_SCALES = {"sec": 1.0, "msec": 1000.0}


class TicToc:
    """Stopwatch that starts on creation and can be restarted with :meth:`tic`."""

    def __init__(self) -> None:
        self._start = 0.0
        self.tic()

    def tic(self) -> None:
        """Restart the stopwatch."""
        self._start = time.perf_counter()

    def toc(self, unit: str = "sec") -> float:
        """Return the time elapsed since the last :meth:`tic` in ``sec`` or ``msec``."""
        elapsed = time.perf_counter() - self._start
        try:
            scale = _UNIT_SCALES[unit]
        except KeyError:
            raise ValueError(f"Unsupported unit: {unit}. Use 'msec' or 'sec'.") from None
        return elapsed * scale