"""
Spatial utility functions for 3D geometry.

Helper functions for distance calculations, normals, and the close-pair
broad phase used by the collision system.
"""

import numpy as np
from typing import List, Tuple
from scipy.spatial import cKDTree

from .constants import CKDTREE_LEAFSIZE


def distance_3d(pos_a: np.ndarray, pos_b: np.ndarray) -> float:
    """
    Calculate Euclidean distance between two 3D points.

    Args:
        pos_a: Position [x, y, z]
        pos_b: Position [x, y, z]

    Returns:
        Distance in meters
    """
    diff = pos_a - pos_b
    return float(np.sqrt(np.dot(diff, diff)))


def normalize(vec: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Normalize vector to unit length.

    Args:
        vec: Vector to normalize [x, y, z]

    Returns:
        Tuple of (normalized vector, original length)
    """
    length = float(np.sqrt(np.dot(vec, vec)))

    if length < 1e-9:
        # Zero vector, return arbitrary unit vector
        return np.array([1.0, 0.0, 0.0], dtype=np.float64), 0.0

    return vec / length, length


def close_pairs(positions: np.ndarray, max_distance: float, use_ckdtree: bool = True,
                leafsize: int = CKDTREE_LEAFSIZE) -> List[Tuple[int, int]]:
    """
    Find all unordered pairs (i, j), i < j, with distance strictly below max_distance.

    cKDTree mode: query_pairs on a tree built from positions
    Fallback mode: O(n^2) scan

    Both modes return pairs in lexicographic (i, j) order, i.e. the order a
    nested loop over the input sequence would visit them.

    Args:
        positions: (N, 3) array of positions
        max_distance: Exclusive distance threshold
        use_ckdtree: Select the cKDTree backend
        leafsize: cKDTree leaf size

    Returns:
        List of (i, j) index pairs
    """
    positions = np.asarray(positions, dtype=np.float64)
    n = len(positions)
    if n < 2:
        return []

    if use_ckdtree:
        tree = cKDTree(positions, leafsize=leafsize)
        # query_pairs is inclusive (<= r); filter to the strict threshold below
        candidates = tree.query_pairs(r=max_distance, output_type='ndarray')
        pairs = []
        for i, j in candidates:
            i, j = (int(i), int(j)) if i < j else (int(j), int(i))
            if distance_3d(positions[i], positions[j]) < max_distance:
                pairs.append((i, j))
        pairs.sort()
        return pairs

    pairs = []
    for i in range(n):
        for j in range(i + 1, n):
            if distance_3d(positions[i], positions[j]) < max_distance:
                pairs.append((i, j))
    return pairs
