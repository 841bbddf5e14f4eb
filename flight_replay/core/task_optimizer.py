"""
Task optimizer - shortest path through ordered turnpoint cylinders.

Solves the optimized task distance with an iterative "taut string"
relaxation in a local planar frame anchored at the first turnpoint of the
speed section. Each pass moves every working point to the best position
given its neighbours' current positions:

- Exit cylinders (start) go to the boundary facing the next point.
- Entry cylinders (end) go to the boundary facing the previous point.
- Touched cylinders take the point on the neighbour chord closest to their
  centre, or the boundary point nearest that chord when the chord misses.

A move that would lengthen the two legs at a point is skipped for that
pass, so the planar length never grows from one pass to the next.

The reported distance is the great-circle length between the solved points;
the planar frame only drives the relaxation.
"""

import functools
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from flight_replay import config
from flight_replay.data.models import (
    GeoPoint, OptimizedPath, PathStatus, TurnpointConstraint, TurnpointRole,
)
from flight_replay.utils.geometry import (
    LocalProjection, NonFiniteError, closest_point_on_segment, path_length,
    require_finite,
)

logger = logging.getLogger('flightReplay.optimizer')


class BoundaryMode(Enum):
    """How a working point relates to its cylinder."""
    EXIT = "exit"      # Leave the cylinder toward the next point
    ENTER = "enter"    # Arrive at the cylinder from the previous point
    TOUCH = "touch"    # Touch or cross the cylinder between neighbours


@dataclass
class _WorkingPoint:
    """Mutable relaxation state for one constraint (local meters)."""
    x: float
    y: float
    cx: float
    cy: float
    radius: float
    mode: BoundaryMode


def select_section(constraints: Sequence[TurnpointConstraint]) -> Optional[Tuple[int, int]]:
    """
    Choose the speed section of a task.

    The section runs from the first START turnpoint to the first END
    turnpoint. Without a START the first turnpoint is used; without an END
    the last one is.

    Returns:
        (first, last) indices, or None if fewer than 2 turnpoints or the
        end does not come after the start
    """
    if len(constraints) < 2:
        return None

    start = next(
        (i for i, c in enumerate(constraints) if c.role is TurnpointRole.START), 0
    )
    end = next(
        (i for i, c in enumerate(constraints) if c.role is TurnpointRole.END),
        len(constraints) - 1,
    )

    if start >= end:
        return None
    return start, end


def center_distance(constraints: Sequence[TurnpointConstraint]) -> float:
    """
    Great-circle length joining the speed section's cylinder centres.

    Returns 0.0 if no section can be chosen.
    """
    section = select_section(constraints)
    if section is None:
        return 0.0
    first, last = section
    return path_length(c.center for c in constraints[first:last + 1])


class TaskOptimizer:
    """Compute the optimized path through a task's turnpoints."""

    def __init__(
        self,
        max_passes: int = config.OPTIMIZER_MAX_PASSES,
        epsilon_m: float = config.OPTIMIZER_CONVERGENCE_EPSILON_M,
        degenerate_m: float = config.OPTIMIZER_DEGENERATE_NEIGHBOUR_M,
    ):
        """
        Initialise optimizer.

        Args:
            max_passes: Upper bound on relaxation passes
            epsilon_m: Stop once no point moves further than this in a pass
            degenerate_m: Distance below which neighbours count as coincident
        """
        if max_passes < 1:
            raise ValueError(f"max_passes must be at least 1, got {max_passes}")
        if epsilon_m < 0 or degenerate_m < 0:
            raise ValueError("Optimizer tolerances must be non-negative")

        self.max_passes = max_passes
        self.epsilon_m = epsilon_m
        self.degenerate_m = degenerate_m

    def optimize(self, constraints: Sequence[TurnpointConstraint]) -> OptimizedPath:
        """
        Solve the shortest path through the task's speed section.

        Args:
            constraints: Turnpoints in task order

        Returns:
            OptimizedPath; empty with INSUFFICIENT_INPUT if no section can be
            chosen, empty with NON_FINITE if the calculation produced NaN or
            infinity
        """
        constraints = tuple(constraints)
        section = select_section(constraints)
        if section is None:
            logger.debug("No optimizable section in task of %d turnpoints", len(constraints))
            return OptimizedPath.unavailable(PathStatus.INSUFFICIENT_INPUT)

        first, last = section
        try:
            return self._solve(constraints[first:last + 1], section)
        except NonFiniteError as e:
            logger.warning("Task optimization aborted: %s", e)
            return OptimizedPath.unavailable(PathStatus.NON_FINITE, section)

    def _solve(self, selected: Tuple[TurnpointConstraint, ...],
               section: Tuple[int, int]) -> OptimizedPath:
        projection = LocalProjection.at(selected[0].center)
        require_finite(projection.kx, projection.ky)

        points = []
        for i, constraint in enumerate(selected):
            cx, cy = projection.to_local(constraint.center.lat, constraint.center.lon)
            require_finite(cx, cy)
            points.append(_WorkingPoint(
                x=cx, y=cy, cx=cx, cy=cy,
                radius=constraint.radius,
                mode=self._boundary_mode(constraint, i, len(selected)),
            ))

        planar_lengths = []
        converged = False
        passes = 0

        while passes < self.max_passes:
            passes += 1
            movement = 0.0

            for i, point in enumerate(points):
                target = self._relax(points, i)
                if target is None:
                    continue
                tx, ty = target
                require_finite(tx, ty)
                # Only the two legs at point i change, so keeping them from
                # growing keeps the whole path from growing
                if (_leg_length(points, i, tx, ty) >
                        _leg_length(points, i, point.x, point.y) + config.OPTIMIZER_LENGTH_TOLERANCE_M):
                    continue
                movement = max(movement, math.hypot(tx - point.x, ty - point.y))
                point.x, point.y = tx, ty

            planar_lengths.append(_planar_length(points))

            if movement < self.epsilon_m:
                converged = True
                break

        if not converged:
            logger.debug("Optimizer stopped after %d passes without settling", passes)

        solved = []
        for point, constraint in zip(points, selected):
            lat, lon = projection.from_local(point.x, point.y)
            require_finite(lat, lon)
            alt = constraint.altitude if constraint.altitude is not None else 0.0
            solved.append(GeoPoint(lat, lon, alt))

        distance = path_length(solved)
        require_finite(distance)

        return OptimizedPath(
            points=tuple(solved),
            distance_m=distance,
            status=PathStatus.OK,
            passes=passes,
            converged=converged,
            planar_lengths=tuple(planar_lengths),
            section=section,
        )

    @staticmethod
    def _boundary_mode(constraint: TurnpointConstraint, index: int, count: int) -> BoundaryMode:
        """Section ends always exit/enter; inside the section the role decides."""
        if index == 0:
            return BoundaryMode.EXIT
        if index == count - 1:
            return BoundaryMode.ENTER
        if constraint.role is TurnpointRole.START:
            return BoundaryMode.EXIT
        if constraint.role is TurnpointRole.END:
            return BoundaryMode.ENTER
        return BoundaryMode.TOUCH

    def _relax(self, points: List[_WorkingPoint], i: int) -> Optional[Tuple[float, float]]:
        """New position for point i, or None to leave it where it is."""
        point = points[i]

        if point.mode is BoundaryMode.EXIT:
            toward = points[i + 1]
            return self._boundary_toward(point, toward.x, toward.y)

        if point.mode is BoundaryMode.ENTER:
            toward = points[i - 1]
            return self._boundary_toward(point, toward.x, toward.y)

        prev_point = points[i - 1]
        next_point = points[i + 1]
        if math.hypot(next_point.x - prev_point.x,
                      next_point.y - prev_point.y) <= self.degenerate_m:
            return None

        qx, qy, _ = closest_point_on_segment(
            point.cx, point.cy,
            prev_point.x, prev_point.y,
            next_point.x, next_point.y,
        )
        dist = math.hypot(qx - point.cx, qy - point.cy)

        # Chord passes through the cylinder: fly straight
        if dist <= point.radius:
            return qx, qy

        # Chord misses: bend around the boundary on the chord side
        return (point.cx + (qx - point.cx) / dist * point.radius,
                point.cy + (qy - point.cy) / dist * point.radius)

    def _boundary_toward(self, point: _WorkingPoint, tx: float, ty: float) -> Optional[Tuple[float, float]]:
        """Boundary point of the cylinder facing (tx, ty)."""
        dx = tx - point.cx
        dy = ty - point.cy
        length = math.hypot(dx, dy)
        if length <= self.degenerate_m:
            return None
        return (point.cx + dx / length * point.radius,
                point.cy + dy / length * point.radius)


def _leg_length(points: List[_WorkingPoint], i: int, x: float, y: float) -> float:
    """Length of the legs into and out of point i if it sat at (x, y)."""
    total = 0.0
    if i > 0:
        total += math.hypot(x - points[i - 1].x, y - points[i - 1].y)
    if i < len(points) - 1:
        total += math.hypot(points[i + 1].x - x, points[i + 1].y - y)
    return total


def _planar_length(points: List[_WorkingPoint]) -> float:
    return sum(
        math.hypot(b.x - a.x, b.y - a.y)
        for a, b in zip(points, points[1:])
    )


def optimize_task(constraints: Sequence[TurnpointConstraint], **kwargs) -> OptimizedPath:
    """
    Optimize a task with a one-off TaskOptimizer.

    Keyword arguments are passed to TaskOptimizer.
    """
    return TaskOptimizer(**kwargs).optimize(constraints)


@functools.lru_cache(maxsize=config.OPTIMIZER_CACHE_SIZE)
def _optimize_cached(constraints: Tuple[TurnpointConstraint, ...]) -> OptimizedPath:
    return TaskOptimizer().optimize(constraints)


def optimize_task_cached(constraints: Sequence[TurnpointConstraint]) -> OptimizedPath:
    """
    Optimize with default settings, memoized on task content.

    For render loops that ask for the same task every frame.
    """
    return _optimize_cached(tuple(constraints))


def clear_optimizer_cache():
    """Drop memoized optimizer results."""
    _optimize_cached.cache_clear()
