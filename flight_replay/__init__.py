"""
Flight replay calculations.

Optimized task distance and per-tick flight metrics for replaying recorded
tracks against a competition task.
"""

from flight_replay.data.models import (
    Fix,
    FlightStatistics,
    GeoPoint,
    MetricsSample,
    OptimizedPath,
    PathStatus,
    SampleStatus,
    TurnpointConstraint,
    TurnpointRole,
)
from flight_replay.core.task_optimizer import (
    TaskOptimizer,
    optimize_task,
    optimize_task_cached,
)
from flight_replay.core.flight_metrics import FlightMetrics
from flight_replay.analysis.flight_stats import calculate_flight_stats, track_distance

__all__ = [
    'Fix',
    'FlightStatistics',
    'GeoPoint',
    'MetricsSample',
    'OptimizedPath',
    'PathStatus',
    'SampleStatus',
    'TurnpointConstraint',
    'TurnpointRole',
    'TaskOptimizer',
    'optimize_task',
    'optimize_task_cached',
    'FlightMetrics',
    'calculate_flight_stats',
    'track_distance',
]
