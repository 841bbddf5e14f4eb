"""
Shared pytest fixtures for flight replay tests.
"""

import os
import sys
import pytest

# Add project root to path for imports
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from flight_replay.core.task_optimizer import clear_optimizer_cache
from flight_replay.data.models import Fix, TurnpointConstraint
from tests.fixtures.flight_test_data import (
    GROUND_ELEVATION, TASKS, TRACK_CLIMB_RATE, TRACK_LON_STEP,
    TRACK_START_ALTITUDE, TRACK_START_LAT, TRACK_START_LON, TRACK_START_MS,
)


def build_task(name):
    """Turnpoint constraints for a named task layout."""
    return [
        TurnpointConstraint.from_task_point(lat, lon, radius, task_type, name=f"{name}{i}")
        for i, (lat, lon, radius, task_type) in enumerate(TASKS[name])
    ]


@pytest.fixture
def reference_task():
    """Four turnpoint race task."""
    return build_task('reference')


@pytest.fixture
def full_task():
    """Task with takeoff before the start and goal after the end."""
    return build_task('full')


@pytest.fixture
def climbing_track():
    """60 s of 1 Hz fixes flying east while climbing steadily."""
    return [
        Fix(
            timestamp=TRACK_START_MS + i * 1000,
            lat=TRACK_START_LAT,
            lon=TRACK_START_LON + i * TRACK_LON_STEP,
            gps_altitude=TRACK_START_ALTITUDE + i * TRACK_CLIMB_RATE,
        )
        for i in range(60)
    ]


@pytest.fixture
def flat_terrain():
    """Terrain lookup returning a constant ground elevation."""
    return lambda lat, lon: GROUND_ELEVATION


@pytest.fixture(autouse=True)
def fresh_optimizer_cache():
    """Each test starts with an empty optimizer cache."""
    clear_optimizer_cache()
    yield
    clear_optimizer_cache()


@pytest.fixture
def task_factory():
    """Build constraints for any layout in TASKS by name."""
    return build_task
