"""
Configuration file for flight replay calculations.

Contains tuning for the task optimizer, flight metrics and geodesy constants.
"""

# =============================================================================
# Geodesy
# =============================================================================

EARTH_RADIUS_M = 6371000.0      # Mean Earth radius (meters)

# WGS84 degree lengths, evaluated at the projection origin latitude
METERS_PER_DEG_LAT_BASE = 111132.954   # ky = base - correction * cos(2 * lat)
METERS_PER_DEG_LAT_CORRECTION = 559.822
METERS_PER_DEG_LON_BASE = 111132.954   # kx = base * cos(lat)

MPS_TO_KMH = 3.6


# =============================================================================
# Task Optimizer Settings
# =============================================================================

OPTIMIZER_MAX_PASSES = 50       # Relaxation passes before giving up
                                 # Realistic tasks settle in 20-50 passes

OPTIMIZER_CONVERGENCE_EPSILON_M = 0.01  # Stop when no point moves further
                                         # than this in one pass (meters)

OPTIMIZER_DEGENERATE_NEIGHBOUR_M = 1e-6  # Neighbours closer than this are
                                          # treated as coincident (meters)

OPTIMIZER_LENGTH_TOLERANCE_M = 1e-9  # An update may lengthen its two legs by at
                                     # most this (meters, float rounding)

OPTIMIZER_CACHE_SIZE = 32      # Solved tasks kept by optimize_task_cached()


# =============================================================================
# Flight Metrics Settings
# =============================================================================

METRICS_WINDOW_SECONDS = 15.0   # Trailing window for speed and vario (seconds)
                                 # Shorter = more responsive but noisier
                                 # Longer = smoother, lags thermals
