"""
Core data structures for flight replay.

Unit Conventions
----------------
All measurements in this module use SI units unless otherwise noted:

- Time: milliseconds (int, fix timestamps) or seconds (float, durations)
- Distance and altitude: metres
- Vertical speed: metres per second (m/s)
- Ground speed: km/h (MetricsSample only, matching the pilot display)
- Coordinates: decimal degrees (WGS84)

Task and track data are produced by external file decoders; everything
here is immutable once constructed.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple


# Ground elevation lookup supplied by the terrain service: (lat, lon) -> metres
# or None when the elevation is unknown.
TerrainLookup = Callable[[float, float], Optional[float]]


class TurnpointRole(Enum):
    """Position of a turnpoint within a competition task."""
    TAKEOFF = "takeoff"
    START = "start"
    INTERMEDIATE = "intermediate"
    END = "end"

    @classmethod
    def from_task_type(cls, task_type: Optional[str]) -> 'TurnpointRole':
        """
        Map a competition task turnpoint type to a role.

        Args:
            task_type: Type string as used by task files ("TAKEOFF", "SSS",
                "ESS", "GOAL", "TURNPOINT") or None

        Returns:
            Matching role; unknown or missing types are INTERMEDIATE
        """
        if not task_type:
            return cls.INTERMEDIATE
        return _TASK_TYPE_ROLES.get(task_type.strip().upper(), cls.INTERMEDIATE)


_TASK_TYPE_ROLES = {
    'TAKEOFF': TurnpointRole.TAKEOFF,
    'SSS': TurnpointRole.START,
    'ESS': TurnpointRole.END,
    'GOAL': TurnpointRole.END,
}


class PathStatus(Enum):
    """Outcome of a task optimization."""
    OK = "ok"
    INSUFFICIENT_INPUT = "insufficient_input"
    NON_FINITE = "non_finite"


class SampleStatus(Enum):
    """Outcome of a flight metrics query."""
    OK = "ok"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass(frozen=True)
class GeoPoint:
    """
    Geographic position.

    Attributes:
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.
        alt: Altitude in metres. Carried along, not used for 2D geometry.
    """
    lat: float
    lon: float
    alt: float = 0.0


@dataclass(frozen=True)
class TurnpointConstraint:
    """
    Circular turnpoint the task path must touch.

    Attributes:
        center: Cylinder centre.
        radius: Cylinder radius in metres. Zero makes it a point.
        role: Where the turnpoint sits in the task.
        altitude: Turnpoint altitude in metres, if known.
        name: Display name from the task file.
    """
    center: GeoPoint
    radius: float
    role: TurnpointRole = TurnpointRole.INTERMEDIATE
    altitude: Optional[float] = None
    name: str = ""

    def __post_init__(self):
        if not math.isfinite(self.radius) or self.radius < 0:
            raise ValueError(f"Turnpoint radius must be a finite value >= 0, got {self.radius}")

    @classmethod
    def from_task_point(cls, lat: float, lon: float, radius: float,
                        task_type: Optional[str] = None,
                        altitude: Optional[float] = None,
                        name: str = "") -> 'TurnpointConstraint':
        """Build a constraint from decoded task turnpoint fields."""
        return cls(
            center=GeoPoint(lat, lon),
            radius=radius,
            role=TurnpointRole.from_task_type(task_type),
            altitude=altitude,
            name=name,
        )


@dataclass(frozen=True)
class OptimizedPath:
    """
    Shortest path through a task's turnpoints.

    Attributes:
        points: Solved touch point for each constraint in the optimized
            section, in task order. Empty unless status is OK.
        distance_m: Great-circle length of the path in metres.
        status: Whether a path could be computed.
        passes: Relaxation passes performed.
        converged: True if the passes stopped early on the movement threshold.
        planar_lengths: Local-plane path length after each pass (metres).
        section: (first, last) indices of the optimized section within the
            input constraints, or None when no section could be chosen.
    """
    points: Tuple[GeoPoint, ...] = ()
    distance_m: float = 0.0
    status: PathStatus = PathStatus.OK
    passes: int = 0
    converged: bool = False
    planar_lengths: Tuple[float, ...] = ()
    section: Optional[Tuple[int, int]] = None

    def __bool__(self):
        return self.status is PathStatus.OK

    @classmethod
    def unavailable(cls, status: PathStatus,
                    section: Optional[Tuple[int, int]] = None) -> 'OptimizedPath':
        """Empty result carrying the reason no path is available."""
        return cls(status=status, section=section)


@dataclass(frozen=True)
class Fix:
    """
    Single recorded track position.

    Attributes:
        timestamp: Milliseconds, ascending along a track.
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.
        gps_altitude: GPS altitude in metres, if recorded.
        baro_altitude: Pressure altitude in metres, if recorded.
    """
    timestamp: int
    lat: float
    lon: float
    gps_altitude: Optional[float] = None
    baro_altitude: Optional[float] = None

    @property
    def altitude(self) -> float:
        """Effective altitude: GPS, else barometric, else 0."""
        if self.gps_altitude is not None:
            return self.gps_altitude
        if self.baro_altitude is not None:
            return self.baro_altitude
        return 0.0


@dataclass(frozen=True)
class MetricsSample:
    """
    Instantaneous flight metrics at a query time.

    Each value is None when it cannot be derived (before the track starts,
    not enough history for the window, unknown terrain).

    Attributes:
        speed_kmh: Ground speed over the trailing window in km/h.
        vertical_speed_ms: Climb rate over the trailing window in m/s.
            Negative means sink.
        agl_m: Height above ground at the current fix in metres.
        status: UNAVAILABLE when no value could be derived, FAILED when a
            non-finite value appeared during the calculation.
        fix_index: Index of the fix the sample was taken at.
    """
    speed_kmh: Optional[float] = None
    vertical_speed_ms: Optional[float] = None
    agl_m: Optional[float] = None
    status: SampleStatus = SampleStatus.OK
    fix_index: Optional[int] = None

    @property
    def has_motion(self) -> bool:
        """True if speed and vertical speed are both available."""
        return self.speed_kmh is not None and self.vertical_speed_ms is not None


@dataclass
class FlightStatistics:
    """
    Whole-flight summary figures.

    Attributes:
        duration_s: Time from first to last fix in seconds.
        max_altitude_m: Highest effective altitude in metres.
        max_climb_ms: Strongest fix-to-fix climb in m/s.
        max_sink_ms: Strongest fix-to-fix sink in m/s (negative or zero).
        total_distance_m: Sum of fix-to-fix great-circle distances in metres.
        fix_count: Number of fixes summarised.
    """
    duration_s: float = 0.0
    max_altitude_m: float = 0.0
    max_climb_ms: float = 0.0
    max_sink_ms: float = 0.0
    total_distance_m: float = 0.0
    fix_count: int = 0

    @property
    def duration_text(self) -> str:
        """Duration as "Xh Ym"."""
        total_minutes = int(self.duration_s // 60)
        return f"{total_minutes // 60}h {total_minutes % 60}m"

    @property
    def total_distance_km(self) -> float:
        return self.total_distance_m / 1000.0
