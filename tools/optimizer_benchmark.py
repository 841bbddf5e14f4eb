#!/usr/bin/env python3
"""
Timing and convergence check for the task optimizer and flight metrics.

Solves a reference task (or a synthetic one), reports distance and
convergence, then times metric lookups over a synthetic 1 Hz track.
"""

import argparse
import logging
import os
import sys
import time

import numpy as np

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from flight_replay.core.flight_metrics import FlightMetrics
from flight_replay.core.task_optimizer import TaskOptimizer, center_distance
from flight_replay.data.models import Fix, GeoPoint, TurnpointConstraint, TurnpointRole


REFERENCE_TASK = [
    TurnpointConstraint(GeoPoint(46.00, 8.00), 1000, TurnpointRole.START, name="Start"),
    TurnpointConstraint(GeoPoint(46.05, 8.05), 500, name="TP1"),
    TurnpointConstraint(GeoPoint(46.02, 8.10), 500, name="TP2"),
    TurnpointConstraint(GeoPoint(46.00, 8.15), 1000, TurnpointRole.END, name="End"),
]


def synthetic_task(count: int, rng: np.random.Generator):
    """Random walk of turnpoints about 5-15 km apart."""
    lat, lon = 46.0, 8.0
    task = []
    for i in range(count):
        if i == 0:
            role = TurnpointRole.START
        elif i == count - 1:
            role = TurnpointRole.END
        else:
            role = TurnpointRole.INTERMEDIATE
        radius = float(rng.choice([400, 1000, 2000, 3000]))
        task.append(TurnpointConstraint(GeoPoint(lat, lon), radius, role, name=f"TP{i}"))
        lat += float(rng.uniform(-0.12, 0.12))
        lon += float(rng.uniform(-0.15, 0.15))
    return task


def synthetic_track(seconds: int, rng: np.random.Generator):
    """1 Hz fixes drifting east with thermal-like altitude changes."""
    start_ms = 1_700_000_000_000
    altitudes = 1500 + np.cumsum(rng.normal(0.0, 1.5, seconds))
    return [
        Fix(
            timestamp=start_ms + i * 1000,
            lat=46.0 + i * 1e-5,
            lon=8.0 + i * 1.5e-4,
            gps_altitude=float(altitudes[i]),
        )
        for i in range(seconds)
    ]


def print_timings(label: str, times):
    times = np.asarray(times)
    print(f"{label} ({times.size} runs):")
    print(f"  Average: {times.mean():.3f} ms")
    print(f"  Min:     {times.min():.3f} ms")
    print(f"  Max:     {times.max():.3f} ms")
    print(f"  P95:     {np.percentile(times, 95):.3f} ms")
    print()


def benchmark_optimizer(task, runs: int, optimizer: TaskOptimizer):
    result = optimizer.optimize(task)
    print(f"Turnpoints:       {len(task)}")
    print(f"Status:           {result.status.value}")
    print(f"Centre distance:  {center_distance(task) / 1000:.3f} km")
    print(f"Optimized:        {result.distance_m / 1000:.3f} km")
    print(f"Passes:           {result.passes} (converged: {result.converged})")
    print()

    times = []
    for _ in range(runs):
        start = time.perf_counter()
        optimizer.optimize(task)
        times.append((time.perf_counter() - start) * 1000.0)
    print_timings("Optimizer", times)


def benchmark_metrics(seconds: int, runs: int, rng: np.random.Generator):
    metrics = FlightMetrics(synthetic_track(seconds, rng), terrain=lambda lat, lon: 800.0)
    first, last = metrics.time_range
    queries = rng.uniform(first, last, runs)

    times = []
    for query in queries:
        start = time.perf_counter()
        metrics.sample_at(float(query))
        times.append((time.perf_counter() - start) * 1000.0)
    print_timings(f"Metrics over {seconds} fixes", times)


def main():
    parser = argparse.ArgumentParser(
        description="Task optimizer and flight metrics benchmark",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reference 4-turnpoint task
  python optimizer_benchmark.py

  # Synthetic 15-turnpoint task, 25 passes max
  python optimizer_benchmark.py --turnpoints 15 --passes 25
        """,
    )
    parser.add_argument(
        "--turnpoints", "-n",
        type=int,
        default=0,
        help="Synthetic task size (default: reference task)",
    )
    parser.add_argument(
        "--passes", "-p",
        type=int,
        default=TaskOptimizer().max_passes,
        help="Maximum relaxation passes",
    )
    parser.add_argument(
        "--runs", "-r",
        type=int,
        default=200,
        help="Timed runs per benchmark (default: 200)",
    )
    parser.add_argument(
        "--track-seconds",
        type=int,
        default=20000,
        help="Synthetic track length at 1 Hz (default: 20000)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=1,
        help="Random seed for synthetic data (default: 1)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show optimizer debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )

    rng = np.random.default_rng(args.seed)
    task = synthetic_task(args.turnpoints, rng) if args.turnpoints >= 2 else REFERENCE_TASK

    print("=" * 60)
    print("Flight Replay Benchmark")
    print("=" * 60)
    print()

    benchmark_optimizer(task, args.runs, TaskOptimizer(max_passes=args.passes))
    benchmark_metrics(args.track_seconds, args.runs, rng)


if __name__ == "__main__":
    main()
