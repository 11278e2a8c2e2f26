"""
Hierarchical Bayesian aggregation of particle beliefs.

Every living particle holds one belief record (replaced wholesale on each
submission). On every update the global posterior for gravity, mass and
friction is recomputed from the full current belief set:

- mean: inverse-variance weighted mean of particle means
- within-particle variance: harmonic mean of particle variances
- between-particle variance: population variance of particle means
- total variance = within + between, entropy of a Gaussian with that variance

Consensus is 1 / (1 + between) averaged over the three constants, and
information gain accumulates the clamped entropy decrease per update.
"""

import copy
import logging
import math
from collections import deque
from typing import Dict, List, Optional

import numpy as np

from .data_types import (
    AggregatorConfig, Belief, ConstantPosterior, GlobalPosterior, ConvergenceMetrics
)
from .constants import GLOBAL_PRIOR, MUTUAL_INFORMATION_EPSILON

logger = logging.getLogger(__name__)

# Belief attribute feeding each constant's posterior
CONSTANT_FIELDS = {'gravity': 'g', 'mass': 'm', 'friction': 'mu'}


def gaussian_entropy(variance: float) -> float:
    """Differential entropy of a Gaussian, H = 0.5 * ln(2*pi*e*sigma^2); 0 when variance <= 0"""
    if variance <= 0:
        return 0.0
    return 0.5 * math.log(2.0 * math.pi * math.e * variance)


def sample_variance(samples) -> float:
    """Population variance (divides by n); 0 for an empty sample"""
    if len(samples) == 0:
        return 0.0
    return float(np.var(np.asarray(samples, dtype=np.float64)))


def initial_posterior() -> GlobalPosterior:
    """Global prior before any particle has reported"""
    constants = {
        name: ConstantPosterior(mean=mean, variance=variance, samples=[],
                                entropy=gaussian_entropy(variance))
        for name, (mean, variance) in GLOBAL_PRIOR.items()
    }
    return GlobalPosterior(consensus_strength=0.0, information_gain=0.0, **constants)


def posterior_summary(posterior: GlobalPosterior) -> Dict[str, float]:
    """
    Recompute entropy and consensus figures from a stored posterior.

    Pure function of the stored variances and samples, so a serialized and
    restored posterior yields the same figures as the live one.

    Returns:
        Dict with '<constant>_entropy' per constant and 'consensus_strength'
    """
    summary = {}
    consensus = []
    for name, constant in posterior.constants().items():
        summary[f'{name}_entropy'] = gaussian_entropy(constant.variance)
        consensus.append(1.0 / (1.0 + sample_variance(constant.samples)))
    summary['consensus_strength'] = float(np.mean(consensus)) if consensus else 0.0
    return summary


class HierarchicalAggregator:
    """
    Fuses per-particle beliefs into one global posterior per constant.

    Owns the belief map and a bounded history of posterior snapshots.
    All getters return deep copies.
    """

    def __init__(self, config: Optional[AggregatorConfig] = None):
        self.config = config or AggregatorConfig()
        self._beliefs: Dict[str, Belief] = {}
        self._posterior: GlobalPosterior = initial_posterior()
        self._history: deque = deque(maxlen=self.config.history_capacity)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_global_posterior(self, particle_id: str, belief: Belief):
        """
        Replace one particle's belief and recompute the global posterior.

        Args:
            particle_id: Reporting particle
            belief: Its current belief (copied)
        """
        self._beliefs[particle_id] = copy.copy(belief)
        self._recompute()

    def update_beliefs(self, beliefs: Dict[str, Belief]):
        """
        Replace many beliefs, then recompute once.

        All submissions are applied before the posterior is recomputed, so a
        reader after this call sees every particle's belief for the tick.
        """
        for particle_id, belief in beliefs.items():
            self._beliefs[particle_id] = copy.copy(belief)
        self._recompute()

    def remove_particle(self, particle_id: str):
        """Drop a particle's belief (no-op for unknown ids). Posterior refreshes on next update."""
        self._beliefs.pop(particle_id, None)

    def reset(self):
        """Forget all beliefs and history, back to the global prior"""
        self._beliefs.clear()
        self._posterior = initial_posterior()
        self._history.clear()

    def _recompute(self):
        if not self._beliefs:
            # Nothing to fuse: keep the previous posterior
            logger.debug("Aggregator update with no beliefs; posterior unchanged")
            return

        beliefs = list(self._beliefs.values())
        variances = np.array([b.variance for b in beliefs], dtype=np.float64)
        eps = self.config.epsilon
        weights = 1.0 / (variances + eps)
        weight_sum = float(np.sum(weights))

        # Within-particle uncertainty: harmonic mean of variances
        within = len(beliefs) / weight_sum

        previous = self._posterior
        updated = {}
        consensus = []
        info_gain = []

        for name, attr in CONSTANT_FIELDS.items():
            samples = np.array([getattr(b, attr) for b in beliefs], dtype=np.float64)
            mean = float(np.sum(samples * weights) / weight_sum)
            between = sample_variance(samples)
            total = within + between
            entropy = gaussian_entropy(total)

            updated[name] = ConstantPosterior(
                mean=mean,
                variance=total,
                samples=samples.tolist(),
                entropy=entropy
            )
            consensus.append(1.0 / (1.0 + between))
            info_gain.append(max(0.0, getattr(previous, name).entropy - entropy))

        self._posterior = GlobalPosterior(
            consensus_strength=float(np.mean(consensus)),
            information_gain=previous.information_gain + float(np.mean(info_gain)),
            **updated
        )

        self._history.append(copy.deepcopy(self._posterior))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def calculate_mutual_information(self) -> float:
        """
        Mean pairwise closeness of gravity beliefs across all particle pairs.

        closeness = 1 - |g_i - g_j| / (|g_i| + |g_j| + 0.1); 0 with fewer than two particles.
        """
        if len(self._beliefs) < 2:
            return 0.0

        g = np.array([b.g for b in self._beliefs.values()], dtype=np.float64)
        i, j = np.triu_indices(len(g), k=1)
        closeness = 1.0 - np.abs(g[i] - g[j]) / (np.abs(g[i]) + np.abs(g[j]) + MUTUAL_INFORMATION_EPSILON)
        return float(np.mean(closeness))

    def get_convergence_metrics(self) -> ConvergenceMetrics:
        """
        Convergence of the gravity posterior over the recent history window.

        Fewer than min_history snapshots: not converged, zero rate and stability.
        """
        if len(self._history) < self.config.min_history:
            return ConvergenceMetrics(converged=False, convergence_rate=0.0, stability=0.0)

        recent = list(self._history)[-self.config.convergence_window:]
        variances = [h.gravity.variance for h in recent]
        means = [h.gravity.mean for h in recent]

        first = variances[0]
        convergence_rate = (first - variances[-1]) / first if first > 0 else 0.0

        # Stability = inverse of the spread of recent means
        stability = 1.0 / (1.0 + sample_variance(means))

        converged = (self._posterior.gravity.variance < self.config.variance_threshold
                     and stability > self.config.stability_threshold)

        return ConvergenceMetrics(
            converged=bool(converged),
            convergence_rate=float(convergence_rate),
            stability=float(stability)
        )

    def get_global_posterior(self) -> GlobalPosterior:
        return copy.deepcopy(self._posterior)

    def get_history(self) -> List[GlobalPosterior]:
        return copy.deepcopy(list(self._history))

    def get_beliefs(self) -> Dict[str, Belief]:
        return copy.deepcopy(self._beliefs)

    def restore(self, posterior: GlobalPosterior):
        """Seed the aggregator with a previously captured posterior (beliefs are not restored)"""
        self._posterior = copy.deepcopy(posterior)

    @property
    def particle_count(self) -> int:
        return len(self._beliefs)
