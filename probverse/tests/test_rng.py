"""
Test deterministic seeding and initial belief sampling.
"""

import sys
import logging
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from probverse.rng import make_seed, make_generator, sample_initial_beliefs, uniform_noise
from probverse.data_types import PriorsConfig, BeliefPrior, LoggingConfig
from probverse.logger_setup import setup_logging


def test_make_seed_stable():
    assert make_seed(12345, 'p-000', 'initial_beliefs') == make_seed(12345, 'p-000', 'initial_beliefs')
    assert make_seed(12345, 'p-000', 'initial_beliefs') != make_seed(12345, 'p-001', 'initial_beliefs')
    assert 0 <= make_seed('x') < 2 ** 64


def test_generators_reproducible():
    a = make_generator(1, 'observation_noise').random(5)
    b = make_generator(1, 'observation_noise').random(5)
    assert a.tolist() == b.tolist()


def test_initial_beliefs_clamped():
    """A wide spread still lands inside the physical range"""
    priors = PriorsConfig(
        gravity=BeliefPrior(center=19.0, spread=50.0, min=0.0, max=20.0),
        mass=BeliefPrior(center=0.2, spread=50.0, min=0.1, max=10.0),
        friction=BeliefPrior(center=0.0, spread=50.0, min=0.0, max=2.0),
    )
    for i in range(100):
        g, m, mu = sample_initial_beliefs(make_seed(0, f'p-{i:03d}'), priors)
        assert 0.0 <= g <= 20.0
        assert 0.1 <= m <= 10.0
        assert 0.0 <= mu <= 2.0


def test_uniform_noise_width():
    noise = uniform_noise(make_generator(3), 0.01, 1000)
    assert noise.shape == (1000,)
    assert noise.min() >= -0.005 and noise.max() < 0.005


def test_setup_logging_replaces_handlers(tmp_path):
    config = LoggingConfig(level='DEBUG', log_dir=str(tmp_path))

    logger = setup_logging(config, run_id='run-1')
    logger = setup_logging(config, run_id='run-1')

    assert logger.name == 'probverse'
    assert logger.level == logging.DEBUG
    assert not logger.propagate
    assert len(logger.handlers) == 2
    assert (tmp_path / 'run-1' / 'simulation.log').exists()

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
