"""
Meta-learning adapter for estimator hyperparameters.

Tracks how fast estimator variance is shrinking and derives a learning
rate, process noise and measurement noise from that signal. The output is
advisory unless the tick driver is configured to push it back into the
estimators (SimulationConfig.apply_meta_learning).
"""

import copy
from collections import deque
from typing import Dict, Optional

import numpy as np

from .data_types import MetaLearningConfig, MetaLearningState, AdaptationRecord
from .constants import (
    META_GROWTH, META_DECAY,
    META_LEARNING_RATE_MAX, META_LEARNING_RATE_MIN,
    META_PERFORMANCE_THRESHOLD,
    META_PROCESS_NOISE_BASE, META_PROCESS_NOISE_SCALE,
    META_MEASUREMENT_NOISE_BASE, META_MEASUREMENT_NOISE_SCALE, META_MEASUREMENT_NOISE_FLOOR,
    META_MIN_EFFICIENCY_HISTORY,
)


class MetaLearningAdapter:
    """
    Gradient-free tuning from variance-reduction performance.

    performance = (previous_variance - current_variance) / previous_variance
    """

    def __init__(self, config: Optional[MetaLearningConfig] = None):
        self.config = config or MetaLearningConfig()
        self._performance: deque = deque(maxlen=self.config.history_capacity)
        self._state = self._initial_state()

    def _initial_state(self) -> MetaLearningState:
        return MetaLearningState(
            learning_rate=self.config.initial_learning_rate,
            process_noise=self.config.initial_process_noise,
            measurement_noise=self.config.initial_measurement_noise,
            adaptation_history=[]
        )

    def adapt(self, current_variance: float, previous_variance: float, time_step: float) -> MetaLearningState:
        """
        Record one performance sample and retune.

        Args:
            current_variance: Estimator variance now
            previous_variance: Estimator variance one tick ago
            time_step: Simulation clock (recorded in the adaptation history)

        Returns:
            Copy of the updated state
        """
        reduction = ((previous_variance - current_variance) / previous_variance
                     if previous_variance > 0 else 0.0)
        self._performance.append(float(reduction))

        avg_performance = float(np.mean(self._performance))

        state = self._state
        if avg_performance > META_PERFORMANCE_THRESHOLD:
            state.learning_rate = min(META_LEARNING_RATE_MAX, state.learning_rate * META_GROWTH)
        elif avg_performance < -META_PERFORMANCE_THRESHOLD:
            state.learning_rate = max(META_LEARNING_RATE_MIN, state.learning_rate * META_DECAY)

        # Higher uncertainty, more process noise; better learning, less measurement noise
        state.process_noise = META_PROCESS_NOISE_BASE + current_variance * META_PROCESS_NOISE_SCALE
        state.measurement_noise = max(META_MEASUREMENT_NOISE_FLOOR,
                                      META_MEASUREMENT_NOISE_BASE - avg_performance * META_MEASUREMENT_NOISE_SCALE)

        state.adaptation_history.append(AdaptationRecord(
            time=float(time_step),
            learning_rate=state.learning_rate,
            performance=avg_performance
        ))
        if len(state.adaptation_history) > self.config.history_capacity:
            state.adaptation_history.pop(0)

        return self.get_state()

    def get_optimal_parameters(self) -> Dict[str, float]:
        return {
            'learning_rate': self._state.learning_rate,
            'process_noise': self._state.process_noise,
            'measurement_noise': self._state.measurement_noise
        }

    def get_learning_efficiency(self) -> float:
        """Mean / std of recorded performance; 0 with too little history or no spread"""
        if len(self._performance) < META_MIN_EFFICIENCY_HISTORY:
            return 0.0

        values = np.asarray(self._performance, dtype=np.float64)
        std = float(np.std(values))
        return float(np.mean(values)) / std if std > 0 else 0.0

    def get_state(self) -> MetaLearningState:
        return copy.deepcopy(self._state)

    def reset(self):
        """Forget performance history, back to the initial hyperparameters"""
        self._performance.clear()
        self._state = self._initial_state()
