"""
Whole-flight statistics for the pilot summary panel.
"""

import logging
from typing import Sequence

import numpy as np

from flight_replay import config
from flight_replay.data.models import Fix, FlightStatistics
from flight_replay.utils.geometry import path_length

logger = logging.getLogger('flightReplay.stats')


def _haversine_steps(lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Great circle distance between consecutive points (meters)."""
    phi = np.radians(lats)
    delta_phi = np.diff(phi)
    delta_lambda = np.radians(np.diff(lons))

    a = (np.sin(delta_phi / 2) ** 2 +
         np.cos(phi[:-1]) * np.cos(phi[1:]) * np.sin(delta_lambda / 2) ** 2)
    a = np.minimum(a, 1.0)
    return 2 * config.EARTH_RADIUS_M * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def calculate_flight_stats(fixes: Sequence[Fix]) -> FlightStatistics:
    """
    Summarise a recorded flight.

    Climb, sink and distance are taken fix to fix, skipping pairs that share
    a timestamp. Fixes with NaN or infinite values are left out.

    Args:
        fixes: Track fixes in ascending timestamp order

    Returns:
        FlightStatistics (all zero for an empty track)
    """
    if not fixes:
        return FlightStatistics()

    data = np.array(
        [(fix.timestamp, fix.lat, fix.lon, fix.altitude) for fix in fixes],
        dtype=np.float64,
    )
    finite = np.all(np.isfinite(data), axis=1)
    if not np.all(finite):
        logger.warning("Skipping %d non-finite fixes", int(np.count_nonzero(~finite)))
        data = data[finite]
    if data.shape[0] == 0:
        return FlightStatistics()

    times = data[:, 0] / 1000.0
    lats = data[:, 1]
    lons = data[:, 2]
    altitudes = data[:, 3]

    stats = FlightStatistics(
        duration_s=float(times[-1] - times[0]),
        max_altitude_m=max(0.0, float(altitudes.max())),
        fix_count=int(data.shape[0]),
    )

    if data.shape[0] < 2:
        return stats

    dt = np.diff(times)
    moving = dt > 0
    if not np.any(moving):
        return stats

    vario = np.diff(altitudes)[moving] / dt[moving]
    stats.max_climb_ms = max(0.0, float(vario.max()))
    stats.max_sink_ms = min(0.0, float(vario.min()))
    stats.total_distance_m = float(_haversine_steps(lats, lons)[moving].sum())

    return stats


def track_distance(fixes: Sequence[Fix]) -> float:
    """Total distance flown along the track (meters)."""
    return path_length(fixes)
