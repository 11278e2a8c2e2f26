"""
Test the meta-learning adapter.
"""

import sys
import json
import pytest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from probverse.meta_learning import MetaLearningAdapter
from probverse.data_types import MetaLearningConfig, MetaLearningState


def test_initial_state():
    adapter = MetaLearningAdapter()

    assert adapter.get_optimal_parameters() == {
        'learning_rate': 1.0,
        'process_noise': 0.01,
        'measurement_noise': 0.1
    }
    assert adapter.get_state().adaptation_history == []
    assert adapter.get_learning_efficiency() == 0.0


def test_learning_rate_grows_when_variance_shrinks():
    adapter = MetaLearningAdapter()

    state = adapter.adapt(current_variance=0.9, previous_variance=1.0, time_step=0.016)

    # Performance 0.1 > 0.01
    assert state.learning_rate == pytest.approx(1.01)
    assert state.process_noise == pytest.approx(0.005 + 0.9 * 0.001)
    assert state.measurement_noise == pytest.approx(0.1 - 0.1 * 0.5)
    assert state.adaptation_history[-1].performance == pytest.approx(0.1)
    assert state.adaptation_history[-1].time == 0.016


def test_learning_rate_capped():
    adapter = MetaLearningAdapter()
    for step in range(200):
        adapter.adapt(0.5, 1.0, step * 0.016)

    assert adapter.get_state().learning_rate == 2.0


def test_learning_rate_decays_and_floors():
    adapter = MetaLearningAdapter()

    state = adapter.adapt(1.2, 1.0, 0.0)
    assert state.learning_rate == pytest.approx(0.99)

    for step in range(400):
        adapter.adapt(1.2, 1.0, step * 0.016)
    assert adapter.get_state().learning_rate == 0.1


def test_learning_rate_unchanged_in_dead_band():
    adapter = MetaLearningAdapter()

    state = adapter.adapt(0.995, 1.0, 0.0)  # performance 0.005

    assert state.learning_rate == 1.0


def test_measurement_noise_floor():
    adapter = MetaLearningAdapter()

    state = adapter.adapt(0.0, 1.0, 0.0)  # performance 1.0

    assert state.measurement_noise == 0.01


def test_zero_previous_variance():
    adapter = MetaLearningAdapter()

    state = adapter.adapt(0.5, 0.0, 0.0)

    assert state.adaptation_history[-1].performance == 0.0
    assert state.learning_rate == 1.0


def test_history_bounded():
    adapter = MetaLearningAdapter(MetaLearningConfig(history_capacity=100))
    for step in range(150):
        adapter.adapt(0.9, 1.0, float(step))

    history = adapter.get_state().adaptation_history
    assert len(history) == 100
    assert history[0].time == 50.0
    assert history[-1].time == 149.0


def test_learning_efficiency():
    adapter = MetaLearningAdapter()
    for step in range(9):
        adapter.adapt(0.9 if step % 2 else 0.7, 1.0, float(step))
    # Fewer than 10 performance samples
    assert adapter.get_learning_efficiency() == 0.0

    adapter.adapt(0.9, 1.0, 9.0)
    # Performances alternate 0.3 / 0.1: mean 0.2, std 0.1
    assert adapter.get_learning_efficiency() == pytest.approx(2.0)


def test_learning_efficiency_zero_spread():
    adapter = MetaLearningAdapter()
    for step in range(12):
        adapter.adapt(0.5, 1.0, float(step))

    assert adapter.get_learning_efficiency() == 0.0


def test_state_is_copy_and_reset():
    adapter = MetaLearningAdapter()
    adapter.adapt(0.5, 1.0, 0.0)

    state = adapter.get_state()
    state.learning_rate = 99.0
    state.adaptation_history.clear()
    assert adapter.get_state().learning_rate == pytest.approx(1.01)
    assert len(adapter.get_state().adaptation_history) == 1

    adapter.reset()
    assert adapter.get_optimal_parameters()['learning_rate'] == 1.0
    assert adapter.get_state().adaptation_history == []


def test_state_json_round_trip():
    adapter = MetaLearningAdapter()
    for step in range(5):
        adapter.adapt(0.9 - 0.1 * step, 1.0, step * 0.016)
    state = adapter.get_state()

    restored = MetaLearningState.from_dict(json.loads(json.dumps(state.to_dict())))

    assert restored == state
    assert len(restored.adaptation_history) == 5


def test_reset_clears_performance_and_keeps_config():
    config = MetaLearningConfig(history_capacity=20, initial_learning_rate=0.5)
    adapter = MetaLearningAdapter(config)
    for step in range(12):
        adapter.adapt(0.9 if step % 2 else 0.7, 1.0, float(step))
    assert adapter.get_learning_efficiency() > 0.0

    adapter.reset()

    assert adapter.config is config
    assert adapter.get_learning_efficiency() == 0.0
    assert adapter.get_state().learning_rate == 0.5
    for step in range(30):
        adapter.adapt(0.9, 1.0, float(step))
    assert len(adapter.get_state().adaptation_history) == 20
