"""
Test particle-particle collision response and the close-pair broad phase.

Verifies:
- Approaching pairs inside contact distance separate after resolution
- Impulse and positional separation are symmetric for equal masses
- Reporting threshold is strict (impacts at or below it are resolved silently)
- cKDTree and O(n^2) broad phases agree
"""

import sys
import json
import numpy as np
import pytest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from probverse.collision import CollisionSystem
from probverse.spatial import close_pairs, distance_3d, normalize
from probverse.estimator import ExtendedKalmanFilter
from probverse.particle import Particle
from probverse.data_types import CollisionConfig, CollisionEvent, StateVector


def make_particle(particle_id, position, velocity) -> Particle:
    state = StateVector(px=position[0], py=position[1], vx=velocity[0], vy=velocity[1],
                        g=9.8, m=1.0, mu=0.1)
    return Particle(particle_id=particle_id, position=position, velocity=velocity,
                    estimator=ExtendedKalmanFilter(state))


def test_head_on_pair_separates():
    """Distance 0.3 < 0.8, closing at 2 m/s: reverses and reports"""
    a = make_particle('a', (-0.15, 0.0, 0.0), (1.0, 0.0, 0.0))
    b = make_particle('b', (0.15, 0.0, 0.0), (-1.0, 0.0, 0.0))

    events = CollisionSystem().check_particle_collisions([a, b])

    normal, _ = normalize(b.position - a.position)
    relative = float(np.dot(b.velocity - a.velocity, normal))
    assert relative > 0

    # Restitution 0.8: closing speed 2.0 becomes separating speed 1.6
    assert relative == pytest.approx(1.6)
    assert a.velocity[0] == pytest.approx(-0.8)
    assert b.velocity[0] == pytest.approx(0.8)

    # Overlap removed symmetrically
    assert distance_3d(a.position, b.position) == pytest.approx(0.8)
    assert a.position[0] == pytest.approx(-0.4)
    assert b.position[0] == pytest.approx(0.4)

    assert len(events) == 1
    event = events[0]
    assert (event.particle_a, event.particle_b) == ('a', 'b')
    assert event.impact == pytest.approx(2.0)
    assert event.impact >= 0.5
    assert event.position == pytest.approx((0.0, 0.0, 0.0))


def test_separating_pair_untouched():
    a = make_particle('a', (-0.1, 0.0, 0.0), (-1.0, 0.0, 0.0))
    b = make_particle('b', (0.1, 0.0, 0.0), (1.0, 0.0, 0.0))

    events = CollisionSystem().check_particle_collisions([a, b])

    assert events == []
    assert a.velocity[0] == -1.0 and b.velocity[0] == 1.0
    assert a.position[0] == -0.1


def test_gentle_contact_resolved_but_not_reported():
    """Closing speed 0.4 <= 0.5: still bounces, no event"""
    a = make_particle('a', (0.0, 0.0, 0.0), (0.2, 0.0, 0.0))
    b = make_particle('b', (0.5, 0.0, 0.0), (-0.2, 0.0, 0.0))

    events = CollisionSystem().check_particle_collisions([a, b])

    assert events == []
    assert a.velocity[0] < 0 < b.velocity[0]


def test_out_of_range_and_coincident_pairs_ignored():
    far_a = make_particle('a', (0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
    far_b = make_particle('b', (0.8, 0.0, 0.0), (-1.0, 0.0, 0.0))  # exactly at contact distance
    same_c = make_particle('c', (3.0, 3.0, 3.0), (1.0, 0.0, 0.0))
    same_d = make_particle('d', (3.0, 3.0, 3.005), (-1.0, 0.0, 0.0))  # below min separation

    events = CollisionSystem().check_particle_collisions([far_a, far_b, same_c, same_d])

    assert events == []
    assert far_a.velocity[0] == 1.0
    assert same_c.velocity[0] == 1.0


def test_single_particle_no_events():
    assert CollisionSystem().check_particle_collisions([make_particle('a', (0, 0, 0), (1, 0, 0))]) == []


def test_events_in_pair_order():
    """Three disjoint head-on pairs report in insertion order"""
    particles = []
    for k, x in enumerate((-3.0, 0.0, 3.0)):
        particles.append(make_particle(f'p{2 * k}', (x - 0.2, 0.0, 0.0), (1.0, 0.0, 0.0)))
        particles.append(make_particle(f'p{2 * k + 1}', (x + 0.2, 0.0, 0.0), (-1.0, 0.0, 0.0)))

    events = CollisionSystem().check_particle_collisions(particles)

    assert [(e.particle_a, e.particle_b) for e in events] == [('p0', 'p1'), ('p2', 'p3'), ('p4', 'p5')]


def test_broad_phase_backends_agree():
    rng = np.random.default_rng(5)
    positions = rng.uniform(-2.0, 2.0, size=(60, 3))

    tree_pairs = close_pairs(positions, 0.8, use_ckdtree=True)
    scan_pairs = close_pairs(positions, 0.8, use_ckdtree=False)

    assert tree_pairs == scan_pairs
    assert all(i < j for i, j in tree_pairs)
    assert tree_pairs == sorted(tree_pairs)


def test_broad_phase_threshold_is_strict():
    positions = np.array([[0.0, 0.0, 0.0], [0.5, 0.0, 0.0]])

    assert close_pairs(positions, 0.5, use_ckdtree=True) == []
    assert close_pairs(positions, 0.5, use_ckdtree=False) == []
    assert close_pairs(positions, 0.51) == [(0, 1)]


def test_scan_backend_resolves_same_as_tree():
    a1 = make_particle('a', (-0.15, 0.0, 0.0), (1.0, 0.0, 0.0))
    b1 = make_particle('b', (0.15, 0.0, 0.0), (-1.0, 0.0, 0.0))
    a2 = make_particle('a', (-0.15, 0.0, 0.0), (1.0, 0.0, 0.0))
    b2 = make_particle('b', (0.15, 0.0, 0.0), (-1.0, 0.0, 0.0))

    tree_events = CollisionSystem(CollisionConfig(use_ckdtree=True)).check_particle_collisions([a1, b1])
    scan_events = CollisionSystem(CollisionConfig(use_ckdtree=False)).check_particle_collisions([a2, b2])

    assert tree_events == scan_events
    assert np.array_equal(a1.velocity, a2.velocity)


def test_collision_event_json_round_trip():
    a = make_particle('a', (-0.15, 0.0, 0.0), (1.0, 0.0, 0.0))
    b = make_particle('b', (0.15, 0.0, 0.0), (-1.0, 0.0, 0.0))
    event = CollisionSystem().check_particle_collisions([a, b])[0]

    restored = CollisionEvent.from_dict(json.loads(json.dumps(event.to_dict())))

    assert restored == event
