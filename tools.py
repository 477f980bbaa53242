from typing import Iterable, Tuple


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    MS_PER_SECOND: int = 1000

    @staticmethod
    def volume(sets: Iterable[Tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @classmethod
    def elapsed_seconds(cls, start_ms: int, end_ms: int) -> float:
        """Return the seconds between two epoch-millisecond timestamps."""
        return (end_ms - start_ms) / cls.MS_PER_SECOND

    @staticmethod
    def volume_rate(volume: float, duration_seconds: float) -> float:
        """Return volume per second, or 0.0 when no time has elapsed."""
        if duration_seconds <= 0:
            return 0.0
        return volume / duration_seconds
