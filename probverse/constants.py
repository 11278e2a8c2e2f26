"""
Central configuration constants for the probabilistic universe.

Defines default values, thresholds, and configuration parameters
used across multiple modules. Every value here can be overridden
from the data pack (see loader.py).
"""

# ============================================================================
# Simulation Clock
# ============================================================================

# Fixed tick length (seconds), ~60 ticks per second
DEFAULT_DT = 0.016

# Default world seed (drives beliefs, observation noise, preset spawning)
DEFAULT_SEED = 12345

# Trail ring buffer capacity (positions + variance per particle)
TRAIL_CAPACITY = 50

# Full width of uniform observation noise per axis (+/- half of this)
OBSERVATION_NOISE_WIDTH = 0.01


# ============================================================================
# True Physical Constants (hidden from estimators)
# ============================================================================

TRUE_GRAVITY = 9.8    # m/s^2, pulls toward -y
TRUE_MASS = 1.0       # kg
TRUE_FRICTION = 0.1   # 1/s, linear velocity decay


# ============================================================================
# World Bounds
# ============================================================================

BOUNDS_MIN = -5.0
BOUNDS_MAX = 5.0
BOUNDARY_DAMPING = 0.85  # Velocity retained (and negated) on wall bounce


# ============================================================================
# Initial Beliefs (spawn priors and physical clamp ranges)
# ============================================================================

# Each prior: belief = clamp(center + uniform(-spread, spread), min, max)
GRAVITY_PRIOR = {'center': 9.8, 'spread': 5.0, 'min': 0.0, 'max': 20.0}
MASS_PRIOR = {'center': 1.0, 'spread': 1.0, 'min': 0.1, 'max': 10.0}
FRICTION_PRIOR = {'center': 0.1, 'spread': 0.25, 'min': 0.0, 'max': 2.0}


# ============================================================================
# State Estimator (Extended Kalman Filter)
# ============================================================================

STATE_DIM = 7        # [px, py, vx, vy, g, m, mu]
OBSERVATION_DIM = 4  # [px, py, vx, vy]

INITIAL_COVARIANCE = 10.0       # Baseline diagonal for kinematic components
INITIAL_GRAVITY_VARIANCE = 5.0
INITIAL_MASS_VARIANCE = 2.0
INITIAL_FRICTION_VARIANCE = 1.0

KINEMATIC_PROCESS_NOISE = 0.01   # Q diagonal for px, py, vx, vy
CONSTANT_PROCESS_NOISE = 0.0001  # Q diagonal for g, m, mu (must not drift)
MEASUREMENT_NOISE = 0.1          # Scalar R (S = HPH^T + R*I4)

# Damping on corrections to never-observed constants
PARAMETER_LEARNING_RATE = 0.1

# Determinant magnitude below which the innovation covariance is singular
SINGULAR_EPSILON = 1e-10


# ============================================================================
# Collision System
# ============================================================================

COLLISION_RADIUS = 0.4
RESTITUTION = 0.8
MIN_IMPACT_VELOCITY = 0.5   # Impacts at or below this are resolved but not reported
MIN_SEPARATION = 0.01       # Pairs closer than this have no usable normal

# Sentinel used as participant B for wall impacts
BOUNDARY_ID = 'boundary'

# Enable scipy.cKDTree broad phase for pair detection
# Set to False to use O(n^2) scan (identical results, used for A/B testing)
USE_CKDTREE = True
CKDTREE_LEAFSIZE = 16


# ============================================================================
# Hierarchical Aggregator
# ============================================================================

AGGREGATOR_EPSILON = 0.01        # Added to variances before inversion
POSTERIOR_HISTORY_CAPACITY = 1000
CONVERGENCE_WINDOW = 20          # History entries used for rate/stability
CONVERGENCE_MIN_HISTORY = 10     # Below this, report not converged
CONVERGENCE_VARIANCE_THRESHOLD = 0.1
CONVERGENCE_STABILITY_THRESHOLD = 0.9
MUTUAL_INFORMATION_EPSILON = 0.1

# Global prior before any particle reports: (mean, variance)
GLOBAL_PRIOR = {
    'gravity': (9.8, 25.0),
    'mass': (1.0, 4.0),
    'friction': (0.1, 1.0),
}


# ============================================================================
# Equation Discovery
# ============================================================================

DISCOVERY_CAPACITY = 500
MIN_GRAVITY_SAMPLES = 10
MIN_VELOCITY_SAMPLES = 10
MIN_POSITION_SAMPLES = 20
GRAVITY_CONFIDENCE_SATURATION = 100  # Sample count at which confidence saturates
R_SQUARED_EPSILON = 1e-12            # Sums of squares below this count as zero


# ============================================================================
# Meta-Learning Adapter
# ============================================================================

META_HISTORY_CAPACITY = 100
META_INITIAL_LEARNING_RATE = 1.0
META_INITIAL_PROCESS_NOISE = 0.01
META_INITIAL_MEASUREMENT_NOISE = 0.1

META_GROWTH = 1.01
META_DECAY = 0.99
META_LEARNING_RATE_MAX = 2.0
META_LEARNING_RATE_MIN = 0.1
META_PERFORMANCE_THRESHOLD = 0.01

# processNoise = base + variance * scale
META_PROCESS_NOISE_BASE = 0.005
META_PROCESS_NOISE_SCALE = 0.001
# measurementNoise = max(floor, base - avg_performance * scale)
META_MEASUREMENT_NOISE_BASE = 0.1
META_MEASUREMENT_NOISE_SCALE = 0.5
META_MEASUREMENT_NOISE_FLOOR = 0.01

# Minimum performance entries for a learning efficiency figure
META_MIN_EFFICIENCY_HISTORY = 10


# ============================================================================
# Spawning
# ============================================================================

# spawn_random(): position half-extents and velocity half-extents
RANDOM_SPAWN_POSITION_EXTENT = (2.0, 2.0, 1.0)
RANDOM_SPAWN_VELOCITY_EXTENT = (1.0, 1.0, 0.0)

# spawn_preset(): vertical offset of the spawn ring and velocity jitter half-width
PRESET_RING_HEIGHT = 2.0
PRESET_VELOCITY_JITTER = 0.25


# ============================================================================
# Performance Configuration
# ============================================================================

# Tick timing window for rolling average
TICK_TIME_WINDOW = 100  # Number of ticks to average

# Default tick summary interval (print every N ticks)
TICK_SUMMARY_INTERVAL = 100


# ============================================================================
# Logging
# ============================================================================

LOGGER_NAME = 'probverse'
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
