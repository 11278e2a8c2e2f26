"""
Deterministic RNG utilities for the probabilistic universe.

Uses SHA256 hashing to derive stable seeds from hierarchical components
(world_seed, particle_id, component_name). All randomness uses
numpy.random.Generator(PCG64) for reproducible cross-session results.
"""

import hashlib
import numpy as np
from typing import Any, Tuple

from .data_types import PriorsConfig


def make_seed(*components: Any) -> int:
    """
    Generate deterministic 64-bit seed from hierarchical components.

    Uses SHA256 to hash components into stable seed value.

    Args:
        *components: Seed components (world_seed, particle_id, etc.)

    Returns:
        64-bit integer seed for numpy RNG

    Example:
        belief_seed = make_seed(world_seed, particle_id, "initial_beliefs")
    """
    # Join all components with colon separator
    hash_input = ":".join(str(c) for c in components)

    # SHA256 hash and extract 64-bit integer
    hash_bytes = hashlib.sha256(hash_input.encode('utf-8')).digest()
    seed = int.from_bytes(hash_bytes[:8], byteorder='big')

    return seed


def make_generator(*components: Any) -> np.random.Generator:
    """Create a PCG64 generator seeded from hierarchical components"""
    return np.random.Generator(np.random.PCG64(make_seed(*components)))


def sample_initial_beliefs(seed: int, priors: PriorsConfig) -> Tuple[float, float, float]:
    """
    Draw a particle's starting beliefs about (gravity, mass, friction).

    Each belief is center + uniform(-spread, spread), clamped to the
    physical range of that constant.

    Args:
        seed: RNG seed (from make_seed())
        priors: Belief priors

    Returns:
        (g, m, mu) tuple of floats
    """
    rng = np.random.Generator(np.random.PCG64(seed))

    g = priors.gravity.clamp(priors.gravity.center + rng.uniform(-1.0, 1.0) * priors.gravity.spread)
    m = priors.mass.clamp(priors.mass.center + rng.uniform(-1.0, 1.0) * priors.mass.spread)
    mu = priors.friction.clamp(priors.friction.center + rng.uniform(-1.0, 1.0) * priors.friction.spread)

    return float(g), float(m), float(mu)


def uniform_noise(rng: np.random.Generator, width: float, size: int) -> np.ndarray:
    """
    Zero-mean uniform noise of total width `width` (values in +/- width/2).

    Args:
        rng: Generator owned by the caller (advances its stream)
        width: Full width of the distribution
        size: Number of samples

    Returns:
        (size,) float64 array
    """
    return (rng.random(size) - 0.5) * width
