"""
Probabilistic universe simulation kernel.

Owns the particles and the shared learning components (aggregator,
equation discovery, meta-learning) and advances them in a fixed order
once per tick. All query methods return copies.
"""

import copy
import logging
import math
import time
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .particle import Particle
from .estimator import ExtendedKalmanFilter
from .physics import GroundTruthIntegrator, ObservationModel, apply_bounds
from .collision import CollisionSystem
from .aggregator import HierarchicalAggregator
from .discovery import EquationDiscovery, observation_from_trail
from .meta_learning import MetaLearningAdapter
from .loader import load_all_data
from .rng import make_seed, make_generator, sample_initial_beliefs
from .data_types import (
    UniverseConfig, Preset, StateVector, CollisionEvent, GlobalPosterior,
    ConvergenceMetrics, DiscoveredEquation, MetaLearningState
)
from .constants import (
    TICK_TIME_WINDOW,
    RANDOM_SPAWN_POSITION_EXTENT,
    RANDOM_SPAWN_VELOCITY_EXTENT,
    PRESET_RING_HEIGHT,
    PRESET_VELOCITY_JITTER,
)

logger = logging.getLogger(__name__)


class UniverseSimulation:
    """
    Main simulation class for the probabilistic universe.

    Particles move under hidden true constants; each one learns those
    constants from noisy observations with its own EKF, and the beliefs are
    fused, mined for equations, and used to tune the estimators.
    """

    def __init__(
        self,
        config: Optional[UniverseConfig] = None,
        presets: Optional[Dict[str, Preset]] = None
    ):
        """
        Args:
            config: Universe configuration (defaults if None)
            presets: Spawn presets keyed by preset_id
        """
        self.config: UniverseConfig = config or UniverseConfig()
        self.presets: Dict[str, Preset] = dict(presets or {})

        self.dt: float = self.config.simulation.dt
        self.seed: int = self.config.seed

        # Simulation state (insertion order is tick order)
        self._particles: Dict[str, Particle] = {}
        self.tick_count: int = 0
        self.time: float = 0.0
        self._spawn_index: int = 0

        # Components
        self.integrator = GroundTruthIntegrator(self.config.true_constants, dt=self.dt)
        self.observer = ObservationModel(
            make_generator(self.seed, "observation_noise"),
            self.config.simulation.observation_noise
        )
        self.collisions = CollisionSystem(self.config.collision)
        self.aggregator = HierarchicalAggregator(self.config.aggregator)
        self.discovery = EquationDiscovery(self.config.discovery, dt=self.dt)
        self.meta_learning = MetaLearningAdapter(self.config.meta_learning)

        # Spawn placement draws (spawn_random, spawn_preset)
        self._spawn_rng = make_generator(self.seed, "spawn")

        # Performance metrics
        self._tick_times: List[float] = []
        self._tick_time_sum: float = 0.0
        self._tick_time_window: int = TICK_TIME_WINDOW

        # Telemetry
        self._telemetry: Dict = {
            'singular_fallbacks': 0,
            'collisions_this_tick': 0,
            'total_collisions': 0,
            'boundary_collisions_this_tick': 0,
        }

        logger.info(f"Universe '{self.config.universe_id}' initialized: "
                    f"dt={self.dt}s, seed={self.seed}, presets={len(self.presets)}")

    @classmethod
    def from_data_pack(cls, data_root: Path, schema_dir: Optional[Path] = None) -> 'UniverseSimulation':
        """
        Build a simulation from a data directory.

        Args:
            data_root: Directory holding universe.yaml (and optionally presets.yaml)
            schema_dir: Optional path to JSON schemas
        """
        data = load_all_data(data_root, schema_dir)
        return cls(data['universe'], data['presets'])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def spawn(self, particle_id: str, position, velocity) -> Particle:
        """
        Create a particle with randomized (clamped) beliefs about the constants.

        Beliefs are drawn from the configured priors with a seed derived from
        (universe seed, particle_id), so the same id always starts with the
        same beliefs in a given universe.

        Args:
            particle_id: Unique identifier
            position: Initial true position [x, y, z]
            velocity: Initial true velocity [vx, vy, vz]

        Returns:
            Copy of the spawned particle

        Raises:
            ValueError: Duplicate id or malformed vectors
        """
        if particle_id in self._particles:
            raise ValueError(f"Particle '{particle_id}' already exists")

        position = np.array(position, dtype=np.float64)
        velocity = np.array(velocity, dtype=np.float64)
        if position.shape != (3,) or velocity.shape != (3,):
            raise ValueError(f"Particle '{particle_id}': position and velocity must be 3-vectors")

        g, m, mu = sample_initial_beliefs(
            make_seed(self.seed, particle_id, "initial_beliefs"),
            self.config.priors
        )
        initial_state = StateVector(
            px=float(position[0]), py=float(position[1]),
            vx=float(velocity[0]), vy=float(velocity[1]),
            g=g, m=m, mu=mu
        )
        estimator = ExtendedKalmanFilter(
            initial_state,
            dt=self.dt,
            config=self.config.estimator,
            priors=self.config.priors
        )

        particle = Particle(
            particle_id=particle_id,
            position=position,
            velocity=velocity,
            estimator=estimator,
            trail_capacity=self.config.simulation.trail_capacity
        )
        particle.record_trail()

        self._particles[particle_id] = particle
        self._spawn_index += 1

        logger.debug(f"Spawned {particle_id} at {position.tolist()} "
                     f"with beliefs g={g:.3f} m={m:.3f} mu={mu:.3f}")
        return copy.deepcopy(particle)

    def spawn_random(self) -> Particle:
        """Spawn one particle at a random position near the origin with a random drift"""
        pos_extent = np.array(RANDOM_SPAWN_POSITION_EXTENT, dtype=np.float64)
        vel_extent = np.array(RANDOM_SPAWN_VELOCITY_EXTENT, dtype=np.float64)

        position = self._spawn_rng.uniform(-1.0, 1.0, 3) * pos_extent
        velocity = self._spawn_rng.uniform(-1.0, 1.0, 3) * vel_extent

        particle_id = f"particle-{self._spawn_index:04d}"
        while particle_id in self._particles:
            self._spawn_index += 1
            particle_id = f"particle-{self._spawn_index:04d}"

        return self.spawn(particle_id, position, velocity)

    def spawn_preset(self, preset_id: str) -> List[Particle]:
        """
        Clear the universe and spawn a named preset.

        Particle i of N sits on a ring at angle 2*pi*i/N with a random radius
        below `spread`, lifted by PRESET_RING_HEIGHT, and gets the preset
        velocity plus a small uniform jitter.

        Raises:
            ValueError: Unknown preset id
        """
        preset = self.presets.get(preset_id)
        if preset is None:
            raise ValueError(f"Unknown preset '{preset_id}' "
                             f"(available: {sorted(self.presets)})")

        self.clear()

        base_velocity = np.array(preset.initial_velocity, dtype=np.float64)
        spawned = []
        for i in range(preset.count):
            angle = 2.0 * math.pi * i / preset.count
            radius = self._spawn_rng.uniform(0.0, preset.spread)
            position = np.array([
                math.cos(angle) * radius,
                math.sin(angle) * radius + PRESET_RING_HEIGHT,
                self._spawn_rng.uniform(-preset.spread / 4.0, preset.spread / 4.0)
            ], dtype=np.float64)
            jitter = self._spawn_rng.uniform(-PRESET_VELOCITY_JITTER, PRESET_VELOCITY_JITTER, 3)

            spawned.append(self.spawn(f"{preset_id}-{i:03d}", position, base_velocity + jitter))

        logger.info(f"Spawned preset '{preset.name}': {len(spawned)} particles")
        return spawned

    def remove_particle(self, particle_id: str):
        """Remove a particle and its belief (no-op for unknown ids)"""
        if self._particles.pop(particle_id, None) is not None:
            self.aggregator.remove_particle(particle_id)
            logger.debug(f"Removed {particle_id}")

    def clear(self):
        """Remove all particles and reset aggregator, discovery and meta-learning"""
        self._particles.clear()
        self.aggregator.reset()
        self.discovery.reset()
        self.meta_learning.reset()
        self._spawn_index = 0
        logger.info("Universe cleared")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, learning_enabled: Optional[bool] = None) -> List[CollisionEvent]:
        """
        Advance the universe by one time step.

        Order:
            1. Particle-particle collisions on true state
            2. Per particle: predict, integrate truth, observe, update
               (if learning), sync variance/age/trail, bounds
            3. Aggregator: all beliefs submitted, then one recompute
            4. Equation discovery: one sample per particle with a trail
            5. Meta-learning: one adaptation per particle
            6. Optional meta-learning feedback, then clock advance

        Args:
            learning_enabled: Run the estimator correction step
                              (None = simulation.learning_enabled)

        Returns:
            Collision events reported this tick (particle pairs first, then walls)
        """
        start_time = time.perf_counter()

        if learning_enabled is None:
            learning_enabled = self.config.simulation.learning_enabled

        particles = list(self._particles.values())

        # ============================================================
        # PHASE 1: PARTICLE COLLISIONS
        # ============================================================
        events = self.collisions.check_particle_collisions(particles)

        # ============================================================
        # PHASE 2: ESTIMATION + TRUE PHYSICS
        # ============================================================
        boundary_events = []
        for particle in particles:
            estimator = particle.estimator
            fallbacks_before = estimator.singular_fallbacks

            estimator.predict()

            particle.position, particle.velocity = self.integrator.step(particle.position, particle.velocity)

            if learning_enabled:
                observed_position, observed_velocity = self.observer.observe(particle.position, particle.velocity)
                estimator.update(observed_position, observed_velocity)

            self._telemetry['singular_fallbacks'] += estimator.singular_fallbacks - fallbacks_before

            particle.variance = estimator.get_variance()
            particle.age += self.dt
            particle.record_trail()

            event = apply_bounds(particle, self.config.bounds, self.collisions)
            if event is not None:
                boundary_events.append(event)

        events.extend(boundary_events)

        # ============================================================
        # PHASE 3: AGGREGATION (all submissions, then one recompute)
        # ============================================================
        if particles:
            self.aggregator.update_beliefs({p.particle_id: p.belief() for p in particles})

        # ============================================================
        # PHASE 4: EQUATION DISCOVERY
        # ============================================================
        for particle in particles:
            observation = observation_from_trail(particle.trail, self.dt, self.time)
            if observation is not None:
                self.discovery.add(observation)

        # ============================================================
        # PHASE 5: META-LEARNING
        # ============================================================
        for particle in particles:
            if len(particle.trail) >= 2:
                previous_variance = particle.trail[-2].variance
                self.meta_learning.adapt(particle.variance, previous_variance, self.time)

        # ============================================================
        # PHASE 6: FEEDBACK + CLOCK
        # ============================================================
        if self.config.simulation.apply_meta_learning and particles:
            params = self.meta_learning.get_optimal_parameters()
            for particle in particles:
                particle.estimator.set_noise_parameters(
                    process_noise=params['process_noise'],
                    measurement_noise=params['measurement_noise']
                )

        self.time += self.dt
        self.tick_count += 1

        self._telemetry['collisions_this_tick'] = len(events)
        self._telemetry['boundary_collisions_this_tick'] = len(boundary_events)
        self._telemetry['total_collisions'] += len(events)

        # Record timing
        elapsed = time.perf_counter() - start_time
        self._record_tick_time(elapsed)

        return events

    def run(self, ticks: int, learning_enabled: Optional[bool] = None) -> List[CollisionEvent]:
        """Advance `ticks` steps; returns all events in order"""
        events: List[CollisionEvent] = []
        for _ in range(ticks):
            events.extend(self.tick(learning_enabled))
        return events

    # ------------------------------------------------------------------
    # Queries (copies only)
    # ------------------------------------------------------------------

    def get_particles(self) -> List[Particle]:
        return copy.deepcopy(list(self._particles.values()))

    def get_particle(self, particle_id: str) -> Optional[Particle]:
        particle = self._particles.get(particle_id)
        return copy.deepcopy(particle) if particle is not None else None

    @property
    def particle_count(self) -> int:
        return len(self._particles)

    def get_global_posterior(self) -> GlobalPosterior:
        return self.aggregator.get_global_posterior()

    def get_mutual_information(self) -> float:
        return self.aggregator.calculate_mutual_information()

    def get_convergence_metrics(self) -> ConvergenceMetrics:
        return self.aggregator.get_convergence_metrics()

    def get_discovered_equations(self) -> Dict[str, Optional[DiscoveredEquation]]:
        return self.discovery.get_all_discovered_equations()

    def get_meta_learning_state(self) -> MetaLearningState:
        return self.meta_learning.get_state()

    def get_telemetry(self) -> dict:
        return dict(self._telemetry)

    def get_tick_stats(self) -> dict:
        """
        Get current tick timing statistics.

        Returns:
            Dict with tick_count, avg_tick_time_ms, last_tick_time_ms
        """
        if not self._tick_times:
            return {
                'tick_count': self.tick_count,
                'avg_tick_time_ms': 0.0,
                'last_tick_time_ms': 0.0
            }

        avg_time = self._tick_time_sum / len(self._tick_times)
        last_time = self._tick_times[-1]

        return {
            'tick_count': self.tick_count,
            'avg_tick_time_ms': avg_time * 1000.0,
            'last_tick_time_ms': last_time * 1000.0
        }

    def _record_tick_time(self, elapsed: float):
        """
        Record tick timing for rolling average.

        Args:
            elapsed: Tick time in seconds
        """
        self._tick_times.append(elapsed)
        self._tick_time_sum += elapsed

        # Maintain rolling window
        if len(self._tick_times) > self._tick_time_window:
            removed = self._tick_times.pop(0)
            self._tick_time_sum -= removed

    def get_snapshot(self) -> dict:
        """
        Get complete simulation state snapshot (JSON-compatible).

        Returns:
            Dict with clock, particles, learning state and timing
        """
        equations = self.get_discovered_equations()
        return {
            'tick_count': self.tick_count,
            'time': self.time,
            'particle_count': len(self._particles),
            'particles': [p.to_dict() for p in self._particles.values()],
            'global_posterior': self.aggregator.get_global_posterior().to_dict(),
            'mutual_information': self.get_mutual_information(),
            'convergence': self.get_convergence_metrics().to_dict(),
            'equations': {name: eq.to_dict() if eq is not None else None
                          for name, eq in equations.items()},
            'meta_learning': self.meta_learning.get_state().to_dict(),
            'learning_efficiency': self.meta_learning.get_learning_efficiency(),
            'telemetry': self.get_telemetry(),
            'timing': self.get_tick_stats()
        }

    def print_tick_summary(self):
        """Print tick summary to console (lightweight monitoring)"""
        stats = self.get_tick_stats()
        posterior = self.aggregator.get_global_posterior()
        print(f"Tick {stats['tick_count']:5d} | "
              f"Avg: {stats['avg_tick_time_ms']:6.3f} ms | "
              f"Last: {stats['last_tick_time_ms']:6.3f} ms | "
              f"Particles: {len(self._particles)} | "
              f"g={posterior.gravity.mean:6.3f} (var {posterior.gravity.variance:.4f}) | "
              f"consensus={posterior.consensus_strength:.3f}")
