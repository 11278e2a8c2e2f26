"""
Collision detection and response.

Particle-particle: single pass over all unordered pairs in insertion order.
Equal-mass elastic impulse with restitution, positional separation, and an
event when the impact along the normal exceeds the reporting threshold.

Particle-boundary: classification only. The caller (physics.apply_bounds)
clamps and bounces; this module decides whether the impact is reportable.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from .data_types import CollisionConfig, CollisionEvent, BoundsConfig
from .constants import BOUNDARY_ID
from .spatial import close_pairs, normalize

logger = logging.getLogger(__name__)


def _as_tuple(vec: np.ndarray) -> tuple:
    return (float(vec[0]), float(vec[1]), float(vec[2]))


class CollisionSystem:
    """
    Collision resolver with fixed parameters and no other state.

    Operates on any objects exposing particle_id, position (3,) and
    velocity (3,) numpy arrays; velocities and positions are mutated in place.
    """

    def __init__(self, config: Optional[CollisionConfig] = None):
        self.config = config or CollisionConfig()

    def check_particle_collisions(self, particles: Sequence) -> List[CollisionEvent]:
        """
        Resolve all particle-particle contacts for one tick.

        Candidate pairs come from the tick-start positions. Each pair is then
        resolved against current positions; a pair separated by an earlier
        resolution in the same pass is skipped, and nothing is re-checked.

        Args:
            particles: Particles in insertion order

        Returns:
            Reportable collision events, in pair order
        """
        events: List[CollisionEvent] = []
        if len(particles) < 2:
            return events

        contact_distance = 2.0 * self.config.radius
        positions = np.array([p.position for p in particles], dtype=np.float64)
        pairs = close_pairs(positions, contact_distance, use_ckdtree=self.config.use_ckdtree)

        for i, j in pairs:
            event = self._resolve_pair(particles[i], particles[j], contact_distance)
            if event is not None:
                events.append(event)

        if events:
            logger.debug(f"{len(events)} reportable particle collisions "
                         f"from {len(pairs)} candidate pairs")
        return events

    def _resolve_pair(self, p1, p2, contact_distance: float) -> Optional[CollisionEvent]:
        normal, distance = normalize(p2.position - p1.position)

        # Out of contact, or too close for a usable normal
        if distance >= contact_distance or distance <= self.config.min_separation:
            return None

        # Relative velocity along collision normal
        relative_velocity = p2.velocity - p1.velocity
        vel_along_normal = float(np.dot(relative_velocity, normal))

        # Separating (or resting): leave alone
        if vel_along_normal >= 0:
            return None

        # Equal masses: impulse split evenly
        impulse = -(1.0 + self.config.restitution) * vel_along_normal
        impulse_vec = impulse * normal * 0.5
        p1.velocity -= impulse_vec
        p2.velocity += impulse_vec

        # Push apart to remove overlap
        overlap = contact_distance - distance
        separation = normal * overlap * 0.5
        p1.position -= separation
        p2.position += separation

        impact = abs(vel_along_normal)
        if impact <= self.config.min_impact_velocity:
            return None

        return CollisionEvent(
            particle_a=p1.particle_id,
            particle_b=p2.particle_id,
            position=_as_tuple((p1.position + p2.position) / 2.0),
            velocity=_as_tuple((p1.velocity + p2.velocity) / 2.0),
            impact=impact
        )

    def check_boundary_collision(self, particle, bounds: BoundsConfig) -> Optional[CollisionEvent]:
        """
        Classify a wall impact. Does not modify the particle.

        An axis contributes its speed when the particle sits on (or beyond) a
        wall and is still moving outward. The event is reported when the
        combined outward speed exceeds min_impact_velocity.

        Args:
            particle: Particle with position clamped to the wall, pre-bounce velocity
            bounds: Box bounds

        Returns:
            CollisionEvent against BOUNDARY_ID, or None
        """
        impact = np.zeros(3, dtype=np.float64)

        for axis in range(3):
            pos = particle.position[axis]
            vel = particle.velocity[axis]
            if (pos <= bounds.min and vel < 0) or (pos >= bounds.max and vel > 0):
                impact[axis] = abs(vel)

        total_impact = float(np.linalg.norm(impact))
        if total_impact <= self.config.min_impact_velocity:
            return None

        return CollisionEvent(
            particle_a=particle.particle_id,
            particle_b=BOUNDARY_ID,
            position=_as_tuple(particle.position),
            velocity=_as_tuple(particle.velocity),
            impact=total_impact
        )
