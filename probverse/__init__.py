"""
Probabilistic Universe Simulation

A deterministic, headless simulation core in which particles do not know the
laws of physics but infer them from noisy observations of their own motion.

Architecture: the tick driver owns the true physics. Estimators, the
hierarchical aggregator, equation discovery and meta-learning are consumers.
"""

__version__ = "0.1.0"
