"""
Data types for the probabilistic universe.

Configuration dataclasses mirror the YAML data pack (populated by loader.py).
Record dataclasses mirror the values exchanged between components every tick;
all of them serialize to JSON-compatible dicts with builtin floats only.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Tuple

import numpy as np

from .constants import (
    DEFAULT_DT, DEFAULT_SEED, TRAIL_CAPACITY, OBSERVATION_NOISE_WIDTH,
    TRUE_GRAVITY, TRUE_MASS, TRUE_FRICTION,
    BOUNDS_MIN, BOUNDS_MAX, BOUNDARY_DAMPING,
    GRAVITY_PRIOR, MASS_PRIOR, FRICTION_PRIOR,
    INITIAL_COVARIANCE, INITIAL_GRAVITY_VARIANCE, INITIAL_MASS_VARIANCE,
    INITIAL_FRICTION_VARIANCE, KINEMATIC_PROCESS_NOISE, CONSTANT_PROCESS_NOISE,
    MEASUREMENT_NOISE, PARAMETER_LEARNING_RATE, SINGULAR_EPSILON,
    COLLISION_RADIUS, RESTITUTION, MIN_IMPACT_VELOCITY, MIN_SEPARATION, USE_CKDTREE,
    AGGREGATOR_EPSILON, POSTERIOR_HISTORY_CAPACITY, CONVERGENCE_WINDOW,
    CONVERGENCE_MIN_HISTORY, CONVERGENCE_VARIANCE_THRESHOLD,
    CONVERGENCE_STABILITY_THRESHOLD,
    DISCOVERY_CAPACITY, MIN_GRAVITY_SAMPLES, MIN_VELOCITY_SAMPLES,
    MIN_POSITION_SAMPLES, GRAVITY_CONFIDENCE_SATURATION,
    META_HISTORY_CAPACITY, META_INITIAL_LEARNING_RATE, META_INITIAL_PROCESS_NOISE,
    META_INITIAL_MEASUREMENT_NOISE,
    LOG_LEVEL, LOG_FORMAT,
)


# ============================================================================
# Universe Configuration
# ============================================================================

@dataclass
class SimulationConfig:
    """Tick driver settings"""
    dt: float = DEFAULT_DT
    trail_capacity: int = TRAIL_CAPACITY
    observation_noise: float = OBSERVATION_NOISE_WIDTH  # Full width of uniform noise
    learning_enabled: bool = True
    apply_meta_learning: bool = False  # Push adapted Q/R back into estimators


@dataclass
class TrueConstants:
    """Hidden constants of the real universe"""
    gravity: float = TRUE_GRAVITY
    mass: float = TRUE_MASS
    friction: float = TRUE_FRICTION


@dataclass
class BoundsConfig:
    """Axis-aligned box shared by all three axes"""
    min: float = BOUNDS_MIN
    max: float = BOUNDS_MAX
    damping: float = BOUNDARY_DAMPING


@dataclass
class BeliefPrior:
    """Spawn distribution and physical clamp range for one believed constant"""
    center: float
    spread: float
    min: float
    max: float

    def clamp(self, value: float) -> float:
        return max(self.min, min(self.max, value))


@dataclass
class PriorsConfig:
    """Belief priors for the three unknown constants"""
    gravity: BeliefPrior = field(default_factory=lambda: BeliefPrior(**GRAVITY_PRIOR))
    mass: BeliefPrior = field(default_factory=lambda: BeliefPrior(**MASS_PRIOR))
    friction: BeliefPrior = field(default_factory=lambda: BeliefPrior(**FRICTION_PRIOR))


@dataclass
class EstimatorConfig:
    """Extended Kalman Filter hyperparameters"""
    initial_covariance: float = INITIAL_COVARIANCE
    gravity_variance: float = INITIAL_GRAVITY_VARIANCE
    mass_variance: float = INITIAL_MASS_VARIANCE
    friction_variance: float = INITIAL_FRICTION_VARIANCE
    kinematic_process_noise: float = KINEMATIC_PROCESS_NOISE
    constant_process_noise: float = CONSTANT_PROCESS_NOISE
    measurement_noise: float = MEASUREMENT_NOISE
    parameter_learning_rate: float = PARAMETER_LEARNING_RATE
    singular_epsilon: float = SINGULAR_EPSILON


@dataclass
class CollisionConfig:
    """Collision system parameters"""
    radius: float = COLLISION_RADIUS
    restitution: float = RESTITUTION
    min_impact_velocity: float = MIN_IMPACT_VELOCITY
    min_separation: float = MIN_SEPARATION
    use_ckdtree: bool = USE_CKDTREE


@dataclass
class AggregatorConfig:
    """Hierarchical aggregator parameters"""
    epsilon: float = AGGREGATOR_EPSILON
    history_capacity: int = POSTERIOR_HISTORY_CAPACITY
    convergence_window: int = CONVERGENCE_WINDOW
    min_history: int = CONVERGENCE_MIN_HISTORY
    variance_threshold: float = CONVERGENCE_VARIANCE_THRESHOLD
    stability_threshold: float = CONVERGENCE_STABILITY_THRESHOLD


@dataclass
class DiscoveryConfig:
    """Equation discovery parameters"""
    capacity: int = DISCOVERY_CAPACITY
    min_gravity_samples: int = MIN_GRAVITY_SAMPLES
    min_velocity_samples: int = MIN_VELOCITY_SAMPLES
    min_position_samples: int = MIN_POSITION_SAMPLES
    confidence_saturation: int = GRAVITY_CONFIDENCE_SATURATION


@dataclass
class MetaLearningConfig:
    """Meta-learning adapter parameters"""
    history_capacity: int = META_HISTORY_CAPACITY
    initial_learning_rate: float = META_INITIAL_LEARNING_RATE
    initial_process_noise: float = META_INITIAL_PROCESS_NOISE
    initial_measurement_noise: float = META_INITIAL_MEASUREMENT_NOISE


@dataclass
class LoggingConfig:
    """Logging settings for runners"""
    level: str = LOG_LEVEL
    format: str = LOG_FORMAT
    log_dir: Optional[str] = None  # None = console only


@dataclass
class UniverseConfig:
    """Complete universe configuration"""
    universe_id: str = 'default'
    name: str = 'Probabilistic Universe'
    seed: int = DEFAULT_SEED
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    true_constants: TrueConstants = field(default_factory=TrueConstants)
    bounds: BoundsConfig = field(default_factory=BoundsConfig)
    priors: PriorsConfig = field(default_factory=PriorsConfig)
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    collision: CollisionConfig = field(default_factory=CollisionConfig)
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    meta_learning: MetaLearningConfig = field(default_factory=MetaLearningConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    description: Optional[str] = None


@dataclass
class Preset:
    """Named spawn scenario"""
    preset_id: str
    name: str
    count: int
    initial_velocity: List[float]  # [vx, vy, vz]
    spread: float
    description: Optional[str] = None


# ============================================================================
# Estimator Records
# ============================================================================

@dataclass
class StateVector:
    """
    Belief state of one particle.

    Position and velocity in the x/y plane plus the three believed
    constants (gravity, mass, friction).
    """
    px: float
    py: float
    vx: float
    vy: float
    g: float
    m: float
    mu: float

    def to_array(self) -> np.ndarray:
        return np.array([self.px, self.py, self.vx, self.vy, self.g, self.m, self.mu],
                        dtype=np.float64)

    @classmethod
    def from_array(cls, values: np.ndarray) -> 'StateVector':
        px, py, vx, vy, g, m, mu = (float(v) for v in values)
        return cls(px=px, py=py, vx=vx, vy=vy, g=g, m=m, mu=mu)

    def to_dict(self) -> Dict[str, float]:
        return {
            'px': float(self.px), 'py': float(self.py),
            'vx': float(self.vx), 'vy': float(self.vy),
            'g': float(self.g), 'm': float(self.m), 'mu': float(self.mu)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'StateVector':
        return cls(**{key: float(data[key]) for key in ('px', 'py', 'vx', 'vy', 'g', 'm', 'mu')})


@dataclass
class Belief:
    """One particle's current belief about the constants, as seen by the aggregator"""
    g: float
    m: float
    mu: float
    variance: float  # Normalized covariance trace of the owning estimator

    def to_dict(self) -> Dict[str, float]:
        return {'g': float(self.g), 'm': float(self.m), 'mu': float(self.mu),
                'variance': float(self.variance)}

    @classmethod
    def from_dict(cls, data: dict) -> 'Belief':
        return cls(g=float(data['g']), m=float(data['m']), mu=float(data['mu']),
                   variance=float(data['variance']))


# ============================================================================
# Aggregator Records
# ============================================================================

@dataclass
class ConstantPosterior:
    """Global posterior for a single physical constant"""
    mean: float
    variance: float
    samples: List[float] = field(default_factory=list)  # Current per-particle means
    entropy: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mean': float(self.mean),
            'variance': float(self.variance),
            'samples': [float(s) for s in self.samples],
            'entropy': float(self.entropy)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ConstantPosterior':
        return cls(
            mean=float(data['mean']),
            variance=float(data['variance']),
            samples=[float(s) for s in data.get('samples', [])],
            entropy=float(data.get('entropy', 0.0))
        )


@dataclass
class GlobalPosterior:
    """Consensus posterior over gravity, mass and friction"""
    gravity: ConstantPosterior
    mass: ConstantPosterior
    friction: ConstantPosterior
    consensus_strength: float = 0.0  # 0-1, agreement across particles
    information_gain: float = 0.0    # Accumulated entropy reduction (nats)

    def constants(self) -> Dict[str, ConstantPosterior]:
        return {'gravity': self.gravity, 'mass': self.mass, 'friction': self.friction}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gravity': self.gravity.to_dict(),
            'mass': self.mass.to_dict(),
            'friction': self.friction.to_dict(),
            'consensus_strength': float(self.consensus_strength),
            'information_gain': float(self.information_gain)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'GlobalPosterior':
        return cls(
            gravity=ConstantPosterior.from_dict(data['gravity']),
            mass=ConstantPosterior.from_dict(data['mass']),
            friction=ConstantPosterior.from_dict(data['friction']),
            consensus_strength=float(data.get('consensus_strength', 0.0)),
            information_gain=float(data.get('information_gain', 0.0))
        )


@dataclass
class ConvergenceMetrics:
    """Convergence of the gravity posterior over recent history"""
    converged: bool = False
    convergence_rate: float = 0.0
    stability: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'converged': bool(self.converged),
            'convergence_rate': float(self.convergence_rate),
            'stability': float(self.stability)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ConvergenceMetrics':
        return cls(
            converged=bool(data['converged']),
            convergence_rate=float(data['convergence_rate']),
            stability=float(data['stability'])
        )


# ============================================================================
# Equation Discovery Records
# ============================================================================

@dataclass
class KinematicObservation:
    """One sample in the discovery buffer (x/y plane)"""
    position: Tuple[float, float]
    velocity: Tuple[float, float]
    acceleration: Tuple[float, float]
    time: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'position': [float(v) for v in self.position],
            'velocity': [float(v) for v in self.velocity],
            'acceleration': [float(v) for v in self.acceleration],
            'time': float(self.time)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'KinematicObservation':
        return cls(
            position=tuple(float(v) for v in data['position']),
            velocity=tuple(float(v) for v in data['velocity']),
            acceleration=tuple(float(v) for v in data['acceleration']),
            time=float(data['time'])
        )


@dataclass
class EquationParameter:
    """Fitted parameter of a discovered equation"""
    name: str
    value: float
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'value': float(self.value), 'confidence': float(self.confidence)}

    @classmethod
    def from_dict(cls, data: dict) -> 'EquationParameter':
        return cls(name=str(data['name']), value=float(data['value']), confidence=float(data['confidence']))


@dataclass
class DiscoveredEquation:
    """Closed-form motion law fitted from observations"""
    form: str
    parameters: List[EquationParameter]
    r_squared: float
    complexity: int

    def parameter(self, name: str) -> Optional[EquationParameter]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'form': self.form,
            'parameters': [p.to_dict() for p in self.parameters],
            'r_squared': float(self.r_squared),
            'complexity': int(self.complexity)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'DiscoveredEquation':
        return cls(
            form=str(data['form']),
            parameters=[EquationParameter.from_dict(p) for p in data['parameters']],
            r_squared=float(data['r_squared']),
            complexity=int(data['complexity'])
        )


# ============================================================================
# Meta-Learning Records
# ============================================================================

@dataclass
class AdaptationRecord:
    """One meta-learning adaptation step"""
    time: float
    learning_rate: float
    performance: float

    def to_dict(self) -> Dict[str, float]:
        return {'time': float(self.time), 'learning_rate': float(self.learning_rate),
                'performance': float(self.performance)}

    @classmethod
    def from_dict(cls, data: dict) -> 'AdaptationRecord':
        return cls(time=float(data['time']), learning_rate=float(data['learning_rate']),
                   performance=float(data['performance']))


@dataclass
class MetaLearningState:
    """Advisory estimator hyperparameters"""
    learning_rate: float
    process_noise: float
    measurement_noise: float
    adaptation_history: List[AdaptationRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'learning_rate': float(self.learning_rate),
            'process_noise': float(self.process_noise),
            'measurement_noise': float(self.measurement_noise),
            'adaptation_history': [r.to_dict() for r in self.adaptation_history]
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'MetaLearningState':
        return cls(
            learning_rate=float(data['learning_rate']),
            process_noise=float(data['process_noise']),
            measurement_noise=float(data['measurement_noise']),
            adaptation_history=[AdaptationRecord.from_dict(r) for r in data.get('adaptation_history', [])]
        )


# ============================================================================
# Collision and Trail Records
# ============================================================================

@dataclass(frozen=True)
class CollisionEvent:
    """
    Impact reported for one tick.

    particle_b is another particle id, or BOUNDARY_ID for wall impacts.
    """
    particle_a: str
    particle_b: str
    position: Tuple[float, float, float]  # Midpoint (pairs) or particle position (walls)
    velocity: Tuple[float, float, float]  # Averaged velocity (pairs) or particle velocity
    impact: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'particle_a': self.particle_a,
            'particle_b': self.particle_b,
            'position': list(self.position),
            'velocity': list(self.velocity),
            'impact': float(self.impact)
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CollisionEvent':
        return cls(
            particle_a=str(data['particle_a']),
            particle_b=str(data['particle_b']),
            position=tuple(float(v) for v in data['position']),
            velocity=tuple(float(v) for v in data['velocity']),
            impact=float(data['impact'])
        )


@dataclass(frozen=True)
class TrailPoint:
    """Recorded particle position with the estimator variance at that tick"""
    x: float
    y: float
    z: float
    variance: float

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y, 'z': self.z, 'variance': self.variance}

    @classmethod
    def from_dict(cls, data: dict) -> 'TrailPoint':
        return cls(x=float(data['x']), y=float(data['y']), z=float(data['z']),
                   variance=float(data['variance']))
