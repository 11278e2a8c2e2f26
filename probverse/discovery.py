"""
Online equation discovery.

Keeps a bounded FIFO buffer of kinematic samples and fits three closed-form
laws of vertical motion on demand:

- gravity law     y'' = -g                  (constant predictor)
- velocity law    v = v0 + a*t              (simple linear regression)
- position law    y = y0 + v0*t + 0.5*a*t^2 (acceleration from first/last velocity)

The time axis is synthetic: sample i sits at i*dt. Each fit returns None
until it has its minimum number of samples.
"""

from collections import deque
from typing import Dict, Optional, Sequence

import numpy as np

from .data_types import (
    DiscoveryConfig, KinematicObservation, DiscoveredEquation, EquationParameter, TrailPoint
)
from .constants import DEFAULT_DT, R_SQUARED_EPSILON


def r_squared(observed: np.ndarray, predicted: np.ndarray) -> float:
    """
    Coefficient of determination of `predicted` against `observed`.

    A sample with no spread (up to rounding) scores 0.0.
    """
    ss_res = float(np.sum((observed - predicted) ** 2))
    ss_tot = float(np.sum((observed - np.mean(observed)) ** 2))
    if ss_tot <= R_SQUARED_EPSILON:
        return 0.0
    return 1.0 - ss_res / ss_tot


def observation_from_trail(trail: Sequence[TrailPoint], dt: float, time: float) -> Optional[KinematicObservation]:
    """
    Derive one kinematic sample from the newest trail points.

    velocity     = (p[-1] - p[-2]) / dt
    prev velocity = (p[-2] - p[-3]) / dt, or zero with only two points
    acceleration = (velocity - prev velocity) / dt

    Returns:
        KinematicObservation, or None with fewer than two trail points
    """
    if len(trail) < 2:
        return None

    curr, prev = trail[-1], trail[-2]
    vx = (curr.x - prev.x) / dt
    vy = (curr.y - prev.y) / dt

    if len(trail) >= 3:
        before = trail[-3]
        prev_vx = (prev.x - before.x) / dt
        prev_vy = (prev.y - before.y) / dt
    else:
        prev_vx, prev_vy = 0.0, 0.0

    return KinematicObservation(
        position=(curr.x, curr.y),
        velocity=(vx, vy),
        acceleration=((vx - prev_vx) / dt, (vy - prev_vy) / dt),
        time=time
    )


class EquationDiscovery:
    """Regression-based discovery of motion laws from a sliding window of samples"""

    def __init__(self, config: Optional[DiscoveryConfig] = None, dt: float = DEFAULT_DT):
        self.config = config or DiscoveryConfig()
        self.dt = float(dt)
        self._observations: deque = deque(maxlen=self.config.capacity)

    def add_observation(self, position, velocity, acceleration, time: float):
        """Append one sample (x/y pairs); the oldest is evicted at capacity"""
        self._observations.append(KinematicObservation(
            position=(float(position[0]), float(position[1])),
            velocity=(float(velocity[0]), float(velocity[1])),
            acceleration=(float(acceleration[0]), float(acceleration[1])),
            time=float(time)
        ))

    def add(self, observation: KinematicObservation):
        self.add_observation(observation.position, observation.velocity,
                             observation.acceleration, observation.time)

    def reset(self):
        self._observations.clear()

    def __len__(self) -> int:
        return len(self._observations)

    def _times(self, n: int) -> np.ndarray:
        return np.arange(n, dtype=np.float64) * self.dt

    def discover_gravity_equation(self) -> Optional[DiscoveredEquation]:
        """
        Fit y'' = -g: g is the negated mean vertical acceleration.

        Confidence scales R^2 by sample count, saturating at confidence_saturation.
        """
        n = len(self._observations)
        if n < self.config.min_gravity_samples:
            return None

        accelerations = np.array([o.acceleration[1] for o in self._observations], dtype=np.float64)
        mean_accel = float(np.mean(accelerations))
        g = -mean_accel

        r2 = r_squared(accelerations, np.full(n, mean_accel))
        confidence = min(1.0, r2 * (n / self.config.confidence_saturation))

        return DiscoveredEquation(
            form="y'' = -g",
            parameters=[EquationParameter(name='g', value=g, confidence=confidence)],
            r_squared=r2,
            complexity=1
        )

    def discover_velocity_equation(self) -> Optional[DiscoveredEquation]:
        """Fit v = v0 + a*t by closed-form least squares on the synthetic time axis"""
        n = len(self._observations)
        if n < self.config.min_velocity_samples:
            return None

        velocities = np.array([o.velocity[1] for o in self._observations], dtype=np.float64)
        times = self._times(n)

        sum_t = float(np.sum(times))
        sum_v = float(np.sum(velocities))
        sum_tv = float(np.sum(times * velocities))
        sum_t2 = float(np.sum(times * times))

        denom = n * sum_t2 - sum_t * sum_t
        slope = (n * sum_tv - sum_t * sum_v) / denom if denom != 0 else 0.0
        intercept = (sum_v - slope * sum_t) / n

        r2 = r_squared(velocities, intercept + slope * times)

        return DiscoveredEquation(
            form="v = v₀ + at",
            parameters=[
                EquationParameter(name='v₀', value=intercept, confidence=r2),
                EquationParameter(name='a', value=slope, confidence=r2),
            ],
            r_squared=r2,
            complexity=2
        )

    def discover_position_equation(self) -> Optional[DiscoveredEquation]:
        """
        Fit y = y0 + v0*t + 0.5*a*t^2.

        y0 and v0 are the first samples; a is the velocity change between the
        first and last samples over the elapsed synthetic time.
        """
        n = len(self._observations)
        if n < self.config.min_position_samples:
            return None

        positions = np.array([o.position[1] for o in self._observations], dtype=np.float64)
        velocities = np.array([o.velocity[1] for o in self._observations], dtype=np.float64)
        times = self._times(n)

        y0 = float(positions[0])
        v0 = float(velocities[0])
        total_time = float(times[-1] - times[0])
        a = float(velocities[-1] - velocities[0]) / total_time if total_time > 0 else 0.0

        r2 = r_squared(positions, y0 + v0 * times + 0.5 * a * times * times)

        return DiscoveredEquation(
            form="y = y₀ + v₀t + ½at²",
            parameters=[
                EquationParameter(name='y₀', value=y0, confidence=r2),
                EquationParameter(name='v₀', value=v0, confidence=r2),
                EquationParameter(name='a', value=a, confidence=r2),
            ],
            r_squared=r2,
            complexity=3
        )

    def get_all_discovered_equations(self) -> Dict[str, Optional[DiscoveredEquation]]:
        """Fresh fits of all three laws (None where data is insufficient)"""
        return {
            'gravity': self.discover_gravity_equation(),
            'velocity': self.discover_velocity_equation(),
            'position': self.discover_position_equation()
        }
