"""
Flight metrics - speed, vario and height above ground during playback.

Indexes a recorded track by timestamp so every query is two binary
searches (O(log n)). Queries hold no cursor state: the same track and
query time always give the same sample.
"""

import logging
import math
from typing import Optional, Sequence, Tuple

import numpy as np

from flight_replay import config
from flight_replay.data.models import Fix, MetricsSample, SampleStatus, TerrainLookup
from flight_replay.utils.geometry import NonFiniteError, haversine_distance, require_finite

logger = logging.getLogger('flightReplay.metrics')


class FlightMetrics:
    """Time-indexed metrics over one recorded track."""

    def __init__(
        self,
        fixes: Sequence[Fix],
        window_seconds: float = config.METRICS_WINDOW_SECONDS,
        terrain: Optional[TerrainLookup] = None,
    ):
        """
        Index a track for metric queries.

        Args:
            fixes: Track fixes in ascending timestamp order
            window_seconds: Default trailing window for speed and vario
            terrain: Default ground elevation lookup for AGL

        Raises:
            ValueError: If the window is not positive or timestamps descend
        """
        _check_window(window_seconds)

        self.fixes: Tuple[Fix, ...] = tuple(fixes)
        self.window_seconds = window_seconds
        self.terrain = terrain

        # float64 holds millisecond epoch timestamps exactly
        self.timestamps = np.fromiter(
            (fix.timestamp for fix in self.fixes),
            dtype=np.float64,
            count=len(self.fixes),
        )
        if self.timestamps.size > 1 and np.any(np.diff(self.timestamps) < 0):
            raise ValueError("Track fixes must be in ascending timestamp order")
        self.timestamps.flags.writeable = False

    def __len__(self):
        return len(self.fixes)

    @property
    def time_range(self) -> Optional[Tuple[float, float]]:
        """(first, last) fix timestamps in ms, or None for an empty track."""
        if not self.fixes:
            return None
        return float(self.timestamps[0]), float(self.timestamps[-1])

    def fix_index_at(self, timestamp_ms: float, upper: Optional[int] = None) -> int:
        """
        Find the latest fix at or before a time.

        Args:
            timestamp_ms: Query time in milliseconds
            upper: Only consider fixes up to this index (inclusive)

        Returns:
            Fix index, or -1 if the time precedes every considered fix
        """
        timestamps = self.timestamps if upper is None else self.timestamps[:upper + 1]
        return int(np.searchsorted(timestamps, timestamp_ms, side='right')) - 1

    def sample_at(
        self,
        timestamp_ms: float,
        window_seconds: Optional[float] = None,
        terrain: Optional[TerrainLookup] = None,
    ) -> MetricsSample:
        """
        Calculate metrics at a playback time.

        Speed and vario are averaged between the current fix and the latest
        fix at least one window earlier. AGL uses the current fix.

        Args:
            timestamp_ms: Query time in milliseconds
            window_seconds: Trailing window, defaults to the tracker's
            terrain: Ground elevation lookup, defaults to the tracker's

        Returns:
            MetricsSample with unavailable values set to None
        """
        if window_seconds is None:
            window_seconds = self.window_seconds
        else:
            _check_window(window_seconds)
        if terrain is None:
            terrain = self.terrain

        if not math.isfinite(timestamp_ms):
            logger.warning("Metrics query with non-finite time %s", timestamp_ms)
            return MetricsSample(status=SampleStatus.FAILED)

        index = self.fix_index_at(timestamp_ms)
        if index < 0:
            return MetricsSample(status=SampleStatus.UNAVAILABLE)

        try:
            current = self.fixes[index]
            agl = self._agl(current, terrain)
            speed, vario = self._motion(index, timestamp_ms - window_seconds * 1000.0)
        except NonFiniteError as e:
            logger.warning("Metrics at %s ms failed: %s", timestamp_ms, e)
            return MetricsSample(status=SampleStatus.FAILED, fix_index=index)

        if speed is None and agl is None:
            status = SampleStatus.UNAVAILABLE
        else:
            status = SampleStatus.OK

        return MetricsSample(
            speed_kmh=speed,
            vertical_speed_ms=vario,
            agl_m=agl,
            status=status,
            fix_index=index,
        )

    def _motion(self, index: int, window_start_ms: float) -> Tuple[Optional[float], Optional[float]]:
        """Ground speed (km/h) and vertical speed (m/s) ending at fix index."""
        past_index = self.fix_index_at(window_start_ms, upper=index)
        if past_index < 0:
            return None, None

        current = self.fixes[index]
        past = self.fixes[past_index]
        dt = (current.timestamp - past.timestamp) / 1000.0
        if dt <= 0:
            return None, None

        distance = haversine_distance(past.lat, past.lon, current.lat, current.lon)
        speed = distance / dt * config.MPS_TO_KMH
        vario = (current.altitude - past.altitude) / dt
        require_finite(speed, vario)
        return speed, vario

    @staticmethod
    def _agl(fix: Fix, terrain: Optional[TerrainLookup]) -> Optional[float]:
        """Height above ground, or None when terrain is unknown."""
        if terrain is None:
            return None
        ground = terrain(fix.lat, fix.lon)
        if ground is None:
            return None
        agl = fix.altitude - ground
        require_finite(agl)
        return agl


def _check_window(window_seconds: float):
    if not window_seconds > 0 or not math.isfinite(window_seconds):
        raise ValueError(f"Window must be a positive number of seconds, got {window_seconds}")
