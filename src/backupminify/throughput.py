from __future__ import annotations

from collections import deque


DEFAULT_WINDOW_SIZE = 100


def format_eta(minutes: float | None) -> str:
    if minutes is None:
        return "n/a"
    whole_minutes = int(minutes)
    return f"{whole_minutes // 60}:{whole_minutes % 60:02d} h"


class ThroughputTracker:
    """Rolling window of per-conversion durations (seconds) for rate and ETA estimates."""

    def __init__(self, capacity: int = DEFAULT_WINDOW_SIZE) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._durations: deque[float] = deque(maxlen=capacity)
        self._total_count = 0
        self._total_seconds = 0.0

    @property
    def capacity(self) -> int:
        return self._durations.maxlen or 0

    @property
    def durations(self) -> list[float]:
        return list(self._durations)

    def record(self, duration: float) -> None:
        self._durations.append(duration)
        self._total_count += 1
        self._total_seconds += duration

    def average_duration(self) -> float | None:
        if not self._durations:
            return None
        average = sum(self._durations) / len(self._durations)
        return average if average > 0 else None

    def conversions_per_minute(self) -> float | None:
        average = self.average_duration()
        if average is None:
            return None
        return 60 / average

    def overall_conversions_per_minute(self) -> float | None:
        if not self._total_count or self._total_seconds <= 0:
            return None
        return 60 * self._total_count / self._total_seconds

    @staticmethod
    def eta(conversions_per_minute: float | None, total_files: int, processed_files: int) -> float | None:
        """Minutes left for the remaining files at the given rate."""
        if conversions_per_minute is None or conversions_per_minute <= 0:
            return None
        files_left = max(0, total_files - processed_files)
        return files_left / conversions_per_minute
