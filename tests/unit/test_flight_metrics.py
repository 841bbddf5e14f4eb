"""Tests for flight_replay/core/flight_metrics.py - speed, vario and AGL lookups."""

import math
import pytest

from flight_replay.core.flight_metrics import FlightMetrics
from flight_replay.data.models import Fix, SampleStatus
from flight_replay.utils.geometry import haversine_distance
from tests.fixtures.flight_test_data import (
    GROUND_ELEVATION, TRACK_CLIMB_RATE, TRACK_START_ALTITUDE, TRACK_START_MS,
)


def ms(seconds):
    """Absolute timestamp for seconds into the synthetic track."""
    return TRACK_START_MS + int(seconds * 1000)


class TestFixLookup:
    """Test binary search over fix timestamps."""

    @pytest.mark.unit
    def test_exact_timestamp(self, climbing_track):
        """A query on a fix's timestamp returns that fix."""
        metrics = FlightMetrics(climbing_track)
        assert metrics.fix_index_at(ms(30)) == 30

    @pytest.mark.unit
    def test_between_fixes(self, climbing_track):
        """A query between fixes returns the earlier fix."""
        metrics = FlightMetrics(climbing_track)
        assert metrics.fix_index_at(ms(30.999)) == 30

    @pytest.mark.unit
    def test_before_track(self, climbing_track):
        """A query before the first fix returns -1."""
        metrics = FlightMetrics(climbing_track)
        assert metrics.fix_index_at(ms(-1)) == -1

    @pytest.mark.unit
    def test_after_track(self, climbing_track):
        """A query after the last fix returns the last fix."""
        metrics = FlightMetrics(climbing_track)
        assert metrics.fix_index_at(ms(3600)) == 59

    @pytest.mark.unit
    def test_upper_bound(self, climbing_track):
        """The search can be limited to fixes up to an index."""
        metrics = FlightMetrics(climbing_track)
        assert metrics.fix_index_at(ms(50), upper=20) == 20
        assert metrics.fix_index_at(ms(10), upper=20) == 10

    @pytest.mark.unit
    def test_tied_timestamps_take_last(self):
        """Fixes sharing a timestamp resolve to the later one in track order."""
        fixes = [
            Fix(0, 46.0, 8.0),
            Fix(1000, 46.0, 8.001),
            Fix(1000, 46.0, 8.002),
            Fix(2000, 46.0, 8.003),
        ]
        assert FlightMetrics(fixes).fix_index_at(1000) == 2

    @pytest.mark.unit
    def test_empty_track(self):
        """An empty track has no fixes to find."""
        metrics = FlightMetrics([])
        assert metrics.fix_index_at(0) == -1
        assert len(metrics) == 0
        assert metrics.time_range is None

    @pytest.mark.unit
    def test_time_range(self, climbing_track):
        """Time range spans first to last fix."""
        assert FlightMetrics(climbing_track).time_range == (float(ms(0)), float(ms(59)))


class TestSpeedAndVario:
    """Test windowed speed and vertical speed."""

    @pytest.mark.unit
    def test_full_window(self, climbing_track):
        """Speed and vario are averaged over the 15 s window."""
        metrics = FlightMetrics(climbing_track)
        sample = metrics.sample_at(ms(20))

        past, current = climbing_track[5], climbing_track[20]
        expected_speed = haversine_distance(past.lat, past.lon, current.lat, current.lon) / 15.0 * 3.6

        assert sample.status is SampleStatus.OK
        assert sample.fix_index == 20
        assert sample.speed_kmh == pytest.approx(expected_speed, rel=1e-12)
        assert sample.vertical_speed_ms == pytest.approx(TRACK_CLIMB_RATE, rel=1e-12)

    @pytest.mark.unit
    def test_query_between_fixes(self, climbing_track):
        """Both ends of the window snap to the fix at or before them."""
        metrics = FlightMetrics(climbing_track)
        sample = metrics.sample_at(ms(20.5))

        assert sample.fix_index == 20
        assert sample.vertical_speed_ms == pytest.approx(TRACK_CLIMB_RATE)

    @pytest.mark.unit
    def test_ground_speed_reasonable(self, climbing_track):
        """0.0001 degrees of longitude per second at 46N is about 27.8 km/h."""
        sample = FlightMetrics(climbing_track).sample_at(ms(40))
        assert 27.0 < sample.speed_kmh < 28.5

    @pytest.mark.unit
    def test_sink_is_negative(self):
        """Descending flight gives a negative vertical speed."""
        fixes = [Fix(i * 1000, 46.0, 8.0, gps_altitude=2000.0 - 3.0 * i) for i in range(30)]
        sample = FlightMetrics(fixes).sample_at(25_000)
        assert sample.vertical_speed_ms == pytest.approx(-3.0)

    @pytest.mark.unit
    def test_stationary(self):
        """No movement gives zero speed, not unavailable."""
        fixes = [Fix(i * 1000, 46.0, 8.0, gps_altitude=500.0) for i in range(30)]
        sample = FlightMetrics(fixes).sample_at(20_000)

        assert sample.speed_kmh == 0.0
        assert sample.vertical_speed_ms == 0.0
        assert sample.has_motion

    @pytest.mark.unit
    def test_custom_window(self, climbing_track):
        """A shorter window reaches back fewer fixes."""
        metrics = FlightMetrics(climbing_track, window_seconds=5.0)
        sample = metrics.sample_at(ms(10))
        assert sample.vertical_speed_ms == pytest.approx(TRACK_CLIMB_RATE)

        override = FlightMetrics(climbing_track).sample_at(ms(10), window_seconds=5.0)
        assert override == sample

    @pytest.mark.unit
    def test_sparse_fixes(self):
        """Gaps longer than the window use the previous fix."""
        fixes = [
            Fix(0, 46.0, 8.0, gps_altitude=1000.0),
            Fix(100_000, 46.0, 8.1, gps_altitude=1500.0),
        ]
        sample = FlightMetrics(fixes).sample_at(100_000)

        expected = haversine_distance(46.0, 8.0, 46.0, 8.1) / 100.0 * 3.6
        assert sample.speed_kmh == pytest.approx(expected)
        assert sample.vertical_speed_ms == pytest.approx(5.0)

    @pytest.mark.unit
    def test_baro_altitude_used_without_gps(self):
        """Vario falls back to pressure altitude."""
        fixes = [Fix(i * 1000, 46.0, 8.0, baro_altitude=1000.0 + i) for i in range(20)]
        sample = FlightMetrics(fixes).sample_at(15_000)
        assert sample.vertical_speed_ms == pytest.approx(1.0)


class TestInsufficientHistory:
    """Test unavailable samples."""

    @pytest.mark.unit
    def test_before_track_start(self, climbing_track, flat_terrain):
        """Nothing is available before the first fix."""
        sample = FlightMetrics(climbing_track, terrain=flat_terrain).sample_at(ms(-5))

        assert sample.status is SampleStatus.UNAVAILABLE
        assert sample.speed_kmh is None
        assert sample.vertical_speed_ms is None
        assert sample.agl_m is None
        assert sample.fix_index is None

    @pytest.mark.unit
    def test_inside_first_window(self, climbing_track, flat_terrain):
        """Speed and vario wait for a full window; AGL does not."""
        sample = FlightMetrics(climbing_track, terrain=flat_terrain).sample_at(ms(10))

        assert sample.status is SampleStatus.OK
        assert sample.speed_kmh is None
        assert sample.vertical_speed_ms is None
        assert not sample.has_motion
        assert sample.agl_m == TRACK_START_ALTITUDE + 10 * TRACK_CLIMB_RATE - GROUND_ELEVATION

    @pytest.mark.unit
    def test_inside_first_window_without_terrain(self, climbing_track):
        """With no AGL either, the whole sample is unavailable."""
        sample = FlightMetrics(climbing_track).sample_at(ms(10))
        assert sample.status is SampleStatus.UNAVAILABLE
        assert sample.fix_index == 10

    @pytest.mark.unit
    def test_window_exactly_reaches_first_fix(self, climbing_track):
        """A window ending on the first fix is enough."""
        sample = FlightMetrics(climbing_track).sample_at(ms(15))
        assert sample.vertical_speed_ms == pytest.approx(TRACK_CLIMB_RATE)

    @pytest.mark.unit
    def test_single_fix(self):
        """A single fix never has motion."""
        sample = FlightMetrics([Fix(0, 46.0, 8.0)]).sample_at(60_000)
        assert sample.speed_kmh is None
        assert sample.status is SampleStatus.UNAVAILABLE

    @pytest.mark.unit
    def test_zero_dt(self):
        """A window landing on a tied fix gives no motion rather than dividing by zero."""
        fixes = [Fix(0, 46.0, 8.0), Fix(0, 46.0, 8.1)]
        metrics = FlightMetrics(fixes, window_seconds=0.001)
        sample = metrics.sample_at(1.0)

        assert sample.speed_kmh is None
        assert sample.vertical_speed_ms is None

    @pytest.mark.unit
    def test_empty_track(self):
        """An empty track is unavailable, not an error."""
        sample = FlightMetrics([]).sample_at(ms(10))
        assert sample.status is SampleStatus.UNAVAILABLE


class TestAgl:
    """Test height above ground."""

    @pytest.mark.unit
    def test_exact_fix_altitude(self, climbing_track, flat_terrain):
        """AGL at a fix timestamp is that fix's altitude minus ground, exactly."""
        sample = FlightMetrics(climbing_track).sample_at(ms(30), terrain=flat_terrain)
        assert sample.agl_m == climbing_track[30].gps_altitude - GROUND_ELEVATION

    @pytest.mark.unit
    def test_unknown_terrain(self, climbing_track):
        """Unknown ground elevation leaves AGL unavailable."""
        sample = FlightMetrics(climbing_track, terrain=lambda lat, lon: None).sample_at(ms(30))

        assert sample.agl_m is None
        assert sample.speed_kmh is not None

    @pytest.mark.unit
    def test_terrain_queried_at_current_fix(self, climbing_track):
        """The terrain service is asked about the current fix position."""
        calls = []

        def terrain(lat, lon):
            calls.append((lat, lon))
            return 0.0

        FlightMetrics(climbing_track, terrain=terrain).sample_at(ms(30))
        assert calls == [(climbing_track[30].lat, climbing_track[30].lon)]

    @pytest.mark.unit
    def test_below_ground_is_negative(self):
        """Altitude below the terrain gives negative AGL."""
        metrics = FlightMetrics([Fix(0, 46.0, 8.0, gps_altitude=700.0)])
        sample = metrics.sample_at(0, terrain=lambda lat, lon: 750.0)
        assert sample.agl_m == -50.0


class TestNonFinite:
    """Test failed samples."""

    @pytest.mark.unit
    def test_nan_query_time(self, climbing_track):
        """A NaN query time fails instead of matching the last fix."""
        sample = FlightMetrics(climbing_track).sample_at(float('nan'))

        assert sample.status is SampleStatus.FAILED
        assert sample.speed_kmh is None

    @pytest.mark.unit
    def test_nan_altitude(self):
        """A NaN altitude fails the sample."""
        fixes = [
            Fix(0, 46.0, 8.0, gps_altitude=1000.0),
            Fix(20_000, 46.0, 8.01, gps_altitude=float('nan')),
        ]
        sample = FlightMetrics(fixes).sample_at(20_000)

        assert sample.status is SampleStatus.FAILED
        assert sample.vertical_speed_ms is None
        assert sample.fix_index == 1

    @pytest.mark.unit
    def test_infinite_terrain(self, climbing_track):
        """An infinite ground elevation fails the sample."""
        sample = FlightMetrics(climbing_track).sample_at(ms(30), terrain=lambda lat, lon: float('inf'))

        assert sample.status is SampleStatus.FAILED
        assert sample.agl_m is None
        assert not any(
            value is not None and not math.isfinite(value)
            for value in (sample.speed_kmh, sample.vertical_speed_ms, sample.agl_m)
        )


class TestValidation:
    """Test rejected tracks and settings."""

    @pytest.mark.unit
    def test_descending_timestamps(self):
        """Out of order fixes are rejected."""
        with pytest.raises(ValueError):
            FlightMetrics([Fix(1000, 46.0, 8.0), Fix(0, 46.0, 8.0)])

    @pytest.mark.unit
    @pytest.mark.parametrize("window", [0.0, -15.0, float('nan'), float('inf')])
    def test_bad_window(self, climbing_track, window):
        """Windows must be positive and finite."""
        with pytest.raises(ValueError):
            FlightMetrics(climbing_track, window_seconds=window)
        with pytest.raises(ValueError):
            FlightMetrics(climbing_track).sample_at(ms(30), window_seconds=window)

    @pytest.mark.unit
    def test_index_is_read_only(self, climbing_track):
        """The timestamp index cannot be modified by callers."""
        metrics = FlightMetrics(climbing_track)
        with pytest.raises(ValueError):
            metrics.timestamps[0] = 0


class TestDeterminism:
    """Test that queries carry no hidden state."""

    @pytest.mark.unit
    def test_query_order_does_not_matter(self, climbing_track, flat_terrain):
        """Samples are identical whatever was queried before."""
        metrics = FlightMetrics(climbing_track, terrain=flat_terrain)
        times = [ms(s) for s in (45, 16, 59, 3, 30, 45, 16)]

        forward = [metrics.sample_at(t) for t in times]
        backward = [metrics.sample_at(t) for t in reversed(times)]

        assert forward == list(reversed(backward))
        assert forward[0] == forward[5]
        assert forward[1] == forward[6]

    @pytest.mark.unit
    def test_independent_instances_agree(self, climbing_track):
        """Two indexes over one track give the same samples."""
        first = FlightMetrics(climbing_track).sample_at(ms(33))
        second = FlightMetrics(climbing_track).sample_at(ms(33))
        assert first == second
