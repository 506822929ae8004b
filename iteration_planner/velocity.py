"""
Velocity Estimator

Works out how many points the team gets through per iteration from the
iterations it has already closed.
"""

import math
from dataclasses import dataclass
from typing import Sequence

from .config import DEFAULT_VELOCITY, DEFAULT_VELOCITY_LOOKBACK
from .iteration import Iteration


@dataclass
class VelocityStats:
    """Historical velocity statistics, for display only."""
    average: float
    median: float
    min: float
    max: float
    trend: str  # "improving", "stable", "declining", "unknown"
    iterations_analyzed: int

    def to_dict(self) -> dict:
        return {
            "average": round(self.average, 1),
            "median": self.median,
            "min": self.min,
            "max": self.max,
            "trend": self.trend,
            "iterations_analyzed": self.iterations_analyzed,
        }


class VelocityEstimator:
    """
    Estimates capacity for upcoming iterations.

    Usage:
        estimator = VelocityEstimator(default_velocity=10)
        velocity = estimator.estimate(done_iterations)
    """

    def __init__(
        self,
        default_velocity: int = DEFAULT_VELOCITY,
        lookback: int = DEFAULT_VELOCITY_LOOKBACK
    ):
        self.default_velocity = default_velocity
        self.lookback = lookback

    def estimate(self, done_iterations: Sequence[Iteration]) -> int:
        """
        Average points of the most recent done iterations.

        Args:
            done_iterations: Closed iterations in ascending number order

        Returns:
            The floored average, never less than 1. The default velocity
            when there is no history.
        """
        if not done_iterations:
            return self.default_velocity

        recent = list(done_iterations)[-self.lookback:]
        total = sum(i.points() for i in recent)
        velocity = math.floor(total / len(recent))

        # Zero capacity would leave every backlog story unschedulable
        return max(1, velocity)


def calculate_velocity_stats(done_iterations: Sequence[Iteration]) -> VelocityStats:
    """
    Calculate velocity statistics over all done iterations.

    Args:
        done_iterations: Closed iterations in ascending number order
    """
    if not done_iterations:
        return VelocityStats(
            average=0, median=0, min=0, max=0,
            trend="unknown", iterations_analyzed=0
        )

    points = [i.points() for i in done_iterations]
    n = len(points)

    average = sum(points) / n
    sorted_points = sorted(points)
    median = sorted_points[n // 2] if n % 2 == 1 else (sorted_points[n//2 - 1] + sorted_points[n//2]) / 2

    # Trend (compare first half to second half)
    if n >= 4:
        first_half_avg = sum(points[:n//2]) / (n//2)
        second_half_avg = sum(points[n//2:]) / (n - n//2)

        if second_half_avg > first_half_avg * 1.1:
            trend = "improving"
        elif second_half_avg < first_half_avg * 0.9:
            trend = "declining"
        else:
            trend = "stable"
    else:
        trend = "unknown"

    return VelocityStats(
        average=average,
        median=median,
        min=min(points),
        max=max(points),
        trend=trend,
        iterations_analyzed=n
    )
