"""
Particle runtime representation.

A particle couples the true kinematic state (advanced by the physics
integrator, never shown to the estimator directly) with the estimator
that holds its beliefs, plus a bounded trail for consumers.
"""

import numpy as np
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional

from .estimator import ExtendedKalmanFilter
from .data_types import TrailPoint, Belief, StateVector
from .constants import TRAIL_CAPACITY


@dataclass
class Particle:
    """
    Runtime particle in the universe.

    Attributes:
        particle_id: Unique identifier
        position: True 3D position [x, y, z] (z is a free, unobserved axis)
        velocity: True 3D velocity [vx, vy, vz]
        estimator: Owned Extended Kalman Filter (beliefs)
        variance: Estimator variance after the last tick (trace / 7)
        trail: Recent positions with variance, oldest evicted first
        age: Simulated seconds since spawn
    """
    particle_id: str
    position: np.ndarray
    velocity: np.ndarray
    estimator: ExtendedKalmanFilter
    variance: Optional[float] = None
    trail_capacity: int = TRAIL_CAPACITY
    trail: Deque[TrailPoint] = field(default=None)
    age: float = 0.0

    def __post_init__(self):
        """Ensure position and velocity are float64 (3,) arrays, initialize trail"""
        self.position = np.array(self.position, dtype=np.float64)
        self.velocity = np.array(self.velocity, dtype=np.float64)
        if self.position.shape != (3,) or self.velocity.shape != (3,):
            raise ValueError(f"Particle {self.particle_id}: position and velocity must be 3-vectors")

        if self.trail is None:
            self.trail = deque(maxlen=self.trail_capacity)
        else:
            self.trail = deque(self.trail, maxlen=self.trail_capacity)

        if self.variance is None:
            self.variance = self.estimator.get_variance()

    def record_trail(self):
        """Append the current position and variance (evicts oldest at capacity)"""
        self.trail.append(TrailPoint(
            x=float(self.position[0]),
            y=float(self.position[1]),
            z=float(self.position[2]),
            variance=float(self.variance)
        ))

    def belief(self) -> Belief:
        """Current belief about the constants, as submitted to the aggregator"""
        state = self.estimator.get_state()
        return Belief(g=state.g, m=state.m, mu=state.mu, variance=self.estimator.get_variance())

    @property
    def believed_state(self) -> StateVector:
        return self.estimator.get_state()

    def to_dict(self) -> dict:
        """
        Serialize particle to JSON-compatible dict.

        Returns:
            Dict with true state, belief state, variance, trail and age
        """
        return {
            'particle_id': self.particle_id,
            'position': self.position.tolist(),
            'velocity': self.velocity.tolist(),
            'belief': self.estimator.get_state().to_dict(),
            'variance': float(self.variance),
            'trail': [p.to_dict() for p in self.trail],
            'age': float(self.age)
        }
