"""
Series Resampler

Turns an irregular provider price series into a bounded, evenly strided one.
This is plain decimation: every step-th point is kept, nothing is averaged,
interpolated or padded.

    step = max(1, n // target_count)
    keep points[0], points[step], points[2*step], ... until target_count points

If the input is shorter than the target every point is kept. An empty input
gives an empty output; the caller treats that period as unpopulated.
"""

from typing import List, Sequence

from core.periods import RetentionPeriod
from core.schemas import PricePoint


def resample(points: Sequence[PricePoint], target_count: int) -> List[PricePoint]:
    """
    Decimate a series to at most target_count points.

    Args:
        points: Ordered (time, price) points
        target_count: Maximum number of points to keep

    Returns:
        Order-preserving sub-sequence of length min(len(points), target_count)

    Example:
        >>> pts = [PricePoint(time=i, price=float(i)) for i in range(10)]
        >>> [p.time for p in resample(pts, 3)]
        [0, 3, 6]
    """
    if target_count <= 0 or not points:
        return []

    step = max(1, len(points) // target_count)
    return list(points[::step][:target_count])


def resample_period(points: Sequence[PricePoint], period: RetentionPeriod) -> List[PricePoint]:
    """Resample to the capacity of a retention period."""
    return resample(points, period.capacity)
