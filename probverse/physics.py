"""
Ground-truth physics for the probabilistic universe.

Advances true particle motion under the hidden true constants and
synthesizes the noisy observations the estimators consume. Nothing in
this module reads a particle's beliefs.
"""

import numpy as np
from typing import List, Optional, Tuple

from .data_types import TrueConstants, BoundsConfig, CollisionEvent
from .rng import uniform_noise


class GroundTruthIntegrator:
    """
    Integrates true motion with fixed constants.

        p' = p + v*dt - 0.5*g*dt^2 * y_hat
        v' = v - g*dt * y_hat - mu*v*dt

    Gravity acts on y only; z is a free axis (velocity and friction only).
    """

    def __init__(self, constants: Optional[TrueConstants] = None, dt: float = 0.016):
        self.constants = constants or TrueConstants()
        self.dt = float(dt)

    def step(self, position: np.ndarray, velocity: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute the true next state.

        Args:
            position: (3,) true position
            velocity: (3,) true velocity

        Returns:
            (next_position, next_velocity) as new arrays
        """
        dt = self.dt
        g = self.constants.gravity
        mu = self.constants.friction

        gravity_dir = np.array([0.0, 1.0, 0.0], dtype=np.float64)

        next_position = position + velocity * dt - 0.5 * g * dt * dt * gravity_dir
        next_velocity = velocity - g * dt * gravity_dir - mu * velocity * dt
        return next_position, next_velocity


class ObservationModel:
    """
    Synthesizes noisy observations of true x/y kinematics.

    Noise is zero-mean uniform with full width `noise_width` per axis,
    drawn from the generator owned by this model.
    """

    def __init__(self, rng: np.random.Generator, noise_width: float):
        self._rng = rng
        self.noise_width = float(noise_width)

    def observe(self, position: np.ndarray, velocity: np.ndarray) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """
        Returns:
            ((x, y) observed position, (vx, vy) observed velocity)
        """
        noise = uniform_noise(self._rng, self.noise_width, 4)
        observed_position = (float(position[0] + noise[0]), float(position[1] + noise[1]))
        observed_velocity = (float(velocity[0] + noise[2]), float(velocity[1] + noise[3]))
        return observed_position, observed_velocity


def apply_bounds(particle, bounds: BoundsConfig, collision_system) -> Optional[CollisionEvent]:
    """
    Clamp a particle into the box and bounce it off any wall it crossed.

    Per axis: position is clamped to the wall; if the velocity points out of
    the box it is negated and scaled by bounds.damping. The collision system
    classifies the impact (clamped position, pre-bounce velocity) before the
    bounce is applied.

    Args:
        particle: Particle to modify in place
        bounds: Box bounds and damping
        collision_system: CollisionSystem used to classify the impact

    Returns:
        CollisionEvent if the impact was strong enough to report, else None
    """
    bounce_axes: List[int] = []

    for axis in range(3):
        if particle.position[axis] < bounds.min:
            particle.position[axis] = bounds.min
            if particle.velocity[axis] < 0:
                bounce_axes.append(axis)
        elif particle.position[axis] > bounds.max:
            particle.position[axis] = bounds.max
            if particle.velocity[axis] > 0:
                bounce_axes.append(axis)

    if not bounce_axes:
        return None

    event = collision_system.check_boundary_collision(particle, bounds)

    for axis in bounce_axes:
        particle.velocity[axis] *= -bounds.damping

    return event
