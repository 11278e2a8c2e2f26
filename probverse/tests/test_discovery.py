"""
Test online equation discovery.

Verifies:
- No result below the minimum sample counts (10 gravity/velocity, 20 position)
- Fitted parameters recover clean free-fall data
- Buffer is bounded FIFO
- Observations derived from trail deltas
"""

import sys
import json
import pytest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from probverse.discovery import EquationDiscovery, observation_from_trail, r_squared
from probverse.data_types import DiscoveryConfig, TrailPoint, DiscoveredEquation, KinematicObservation

import numpy as np

DT = 0.016


def feed_free_fall(discovery: EquationDiscovery, n: int, g: float = 9.8, y0: float = 3.0, v0: float = 1.0):
    """Exact free fall sampled on the synthetic time axis"""
    for i in range(n):
        t = i * DT
        discovery.add_observation(
            position=(0.0, y0 + v0 * t - 0.5 * g * t * t),
            velocity=(0.0, v0 - g * t),
            acceleration=(0.0, -g),
            time=t
        )


def test_insufficient_samples_return_none():
    discovery = EquationDiscovery(dt=DT)
    feed_free_fall(discovery, 9)

    equations = discovery.get_all_discovered_equations()
    assert equations == {'gravity': None, 'velocity': None, 'position': None}

    feed_free_fall(discovery, 1)
    assert discovery.discover_gravity_equation() is not None
    assert discovery.discover_velocity_equation() is not None
    assert discovery.discover_position_equation() is None

    feed_free_fall(discovery, 9)
    assert len(discovery) == 19
    assert discovery.discover_position_equation() is None

    feed_free_fall(discovery, 1)
    assert discovery.discover_position_equation() is not None


def test_gravity_equation():
    discovery = EquationDiscovery(dt=DT)
    feed_free_fall(discovery, 50)

    equation = discovery.discover_gravity_equation()

    assert equation.form == "y'' = -g"
    assert equation.complexity == 1
    assert equation.parameter('g').value == pytest.approx(9.8)
    # Constant acceleration has no spread to explain
    assert equation.r_squared == 0.0
    assert equation.parameter('g').confidence == 0.0


def test_gravity_identical_samples_score_zero():
    discovery = EquationDiscovery(dt=DT)
    for i in range(20):
        discovery.add_observation((0.0, 0.0), (0.0, 0.0), (0.0, -9.8), i * DT)

    equation = discovery.discover_gravity_equation()

    assert equation.parameter('g').value == pytest.approx(9.8)
    assert equation.r_squared == 0.0
    assert equation.parameter('g').confidence == 0.0


def test_gravity_r_squared_zero_for_noisy_accelerations():
    """The mean predicts a spread sample with zero explained variance"""
    discovery = EquationDiscovery(dt=DT)
    for i in range(20):
        discovery.add_observation((0.0, 0.0), (0.0, 0.0), (0.0, -9.8 + (1.0 if i % 2 else -1.0)), i * DT)

    equation = discovery.discover_gravity_equation()

    assert equation.parameter('g').value == pytest.approx(9.8)
    assert equation.r_squared == pytest.approx(0.0)
    assert equation.parameter('g').confidence == pytest.approx(0.0)


def test_velocity_equation():
    discovery = EquationDiscovery(dt=DT)
    feed_free_fall(discovery, 40, g=9.8, v0=2.0)

    equation = discovery.discover_velocity_equation()

    assert equation.complexity == 2
    assert equation.parameter('v₀').value == pytest.approx(2.0)
    assert equation.parameter('a').value == pytest.approx(-9.8)
    assert equation.r_squared == pytest.approx(1.0)


def test_position_equation():
    discovery = EquationDiscovery(dt=DT)
    feed_free_fall(discovery, 60, g=9.8, y0=4.0, v0=0.5)

    equation = discovery.discover_position_equation()

    assert equation.complexity == 3
    assert equation.parameter('y₀').value == pytest.approx(4.0)
    assert equation.parameter('v₀').value == pytest.approx(0.5)
    assert equation.parameter('a').value == pytest.approx(-9.8)
    assert equation.r_squared == pytest.approx(1.0)


def test_buffer_is_bounded_fifo():
    discovery = EquationDiscovery(DiscoveryConfig(capacity=25), dt=DT)
    for i in range(40):
        discovery.add_observation((0.0, float(i)), (0.0, 0.0), (0.0, 0.0), i * DT)

    assert len(discovery) == 25
    # Oldest 15 evicted: first retained sample has y = 15
    assert discovery.discover_position_equation().parameter('y₀').value == 15.0


def test_reset_clears_buffer():
    discovery = EquationDiscovery(dt=DT)
    feed_free_fall(discovery, 30)

    discovery.reset()

    assert len(discovery) == 0
    assert discovery.discover_gravity_equation() is None


def test_r_squared_degenerate():
    flat = np.array([2.0, 2.0, 2.0])
    assert r_squared(flat, flat) == 0.0
    assert r_squared(flat, flat + 1.0) == 0.0


def test_observation_from_trail():
    trail = [TrailPoint(0.0, 1.0, 0.0, 0.5)]
    assert observation_from_trail(trail, DT, 0.0) is None

    trail.append(TrailPoint(0.016, 0.984, 0.0, 0.4))
    two = observation_from_trail(trail, DT, 0.016)
    assert two.velocity == pytest.approx((1.0, -1.0))
    # Previous velocity taken as zero
    assert two.acceleration == pytest.approx((1.0 / DT, -1.0 / DT))

    trail.append(TrailPoint(0.032, 0.96, 0.0, 0.3))
    three = observation_from_trail(trail, DT, 0.032)
    assert three.position == (0.032, 0.96)
    assert three.velocity == pytest.approx((1.0, -1.5))
    assert three.acceleration == pytest.approx((0.0, -0.5 / DT))
    assert three.time == 0.032


def test_equations_json_round_trip():
    discovery = EquationDiscovery(dt=DT)
    feed_free_fall(discovery, 40, g=9.8, y0=2.0, v0=0.5)

    for name, equation in discovery.get_all_discovered_equations().items():
        restored = DiscoveredEquation.from_dict(json.loads(json.dumps(equation.to_dict())))
        assert restored == equation, name
        assert restored.parameter(equation.parameters[0].name) == equation.parameters[0]


def test_trail_records_json_round_trip():
    point = TrailPoint(0.5, -1.25, 0.0, 0.75)
    assert TrailPoint.from_dict(json.loads(json.dumps(point.to_dict()))) == point

    observation = KinematicObservation(position=(0.0, 1.5), velocity=(0.25, -2.0),
                                       acceleration=(0.0, -9.8), time=0.032)
    assert KinematicObservation.from_dict(json.loads(json.dumps(observation.to_dict()))) == observation
