"""
Extended Kalman Filter over position, velocity and unknown physical constants.

Each particle owns one filter. The belief state is

    x = [px, py, vx, vy, g, m, mu]

and only the kinematic part [px, py, vx, vy] is ever observed. Gravity,
mass and friction are learned indirectly through their influence on the
predicted motion (the Jacobian couples them to the observed components).

Motion model (y up, gravity pulls toward -y):
    px' = px + vx*dt
    py' = py + vy*dt - 0.5*g*dt^2
    vx' = vx - mu*vx*dt
    vy' = vy - g*dt - mu*vy*dt
    g', m', mu' = g, m, mu
"""

import logging
from typing import Optional, Tuple

import numpy as np

from .data_types import StateVector, EstimatorConfig, PriorsConfig
from .constants import STATE_DIM, OBSERVATION_DIM, DEFAULT_DT
from .linalg import guarded_inverse, condition_covariance, selection_matrix

logger = logging.getLogger(__name__)

# State indices
PX, PY, VX, VY, G, M, MU = range(STATE_DIM)
KINEMATIC = (PX, PY, VX, VY)
CONSTANTS = (G, M, MU)

# Observation matrix H: selects [px, py, vx, vy] from the 7-D state
H = selection_matrix(KINEMATIC, STATE_DIM)


class ExtendedKalmanFilter:
    """
    Per-particle belief over kinematics and physical constants.

    predict() advances the belief with the believed constants; update()
    corrects it with an observed position/velocity. Corrections to the
    constants are damped by parameter_learning_rate and clamped to the
    physical ranges in `priors` after every update.
    """

    def __init__(
        self,
        initial_state: StateVector,
        dt: float = DEFAULT_DT,
        config: Optional[EstimatorConfig] = None,
        priors: Optional[PriorsConfig] = None
    ):
        """
        Args:
            initial_state: Starting belief
            dt: Tick length in seconds
            config: Filter hyperparameters (defaults if None)
            priors: Clamp ranges for g, m, mu (defaults if None)
        """
        self.config = config or EstimatorConfig()
        self.priors = priors or PriorsConfig()
        self.dt = float(dt)

        self._x = initial_state.to_array()

        # Initial uncertainty: high for kinematics, per-constant for g, m, mu
        self._P = np.eye(STATE_DIM, dtype=np.float64) * self.config.initial_covariance
        self._P[G, G] = self.config.gravity_variance
        self._P[M, M] = self.config.mass_variance
        self._P[MU, MU] = self.config.friction_variance

        self._Q = self._build_process_noise(self.config.kinematic_process_noise,
                                            self.config.constant_process_noise)
        self._R = float(self.config.measurement_noise)

        # Diagnostics
        self.singular_fallbacks: int = 0
        self.last_innovation: np.ndarray = np.zeros(OBSERVATION_DIM, dtype=np.float64)

    @staticmethod
    def _build_process_noise(kinematic: float, constant: float) -> np.ndarray:
        q = np.zeros((STATE_DIM, STATE_DIM), dtype=np.float64)
        for idx in KINEMATIC:
            q[idx, idx] = kinematic
        for idx in CONSTANTS:
            q[idx, idx] = constant
        return q

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    def motion_model(self, x: np.ndarray) -> np.ndarray:
        """Apply the believed motion model to state x (returns new array)"""
        px, py, vx, vy, g, m, mu = x
        dt = self.dt
        return np.array([
            px + vx * dt,
            py + vy * dt - 0.5 * g * dt * dt,
            vx - mu * vx * dt,
            vy - g * dt - mu * vy * dt,
            g,
            m,
            mu
        ], dtype=np.float64)

    def jacobian(self, x: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Analytic Jacobian F = df/dx of the motion model at x (current state if None).
        """
        if x is None:
            x = self._x
        vx, vy, mu = x[VX], x[VY], x[MU]
        dt = self.dt

        F = np.eye(STATE_DIM, dtype=np.float64)
        F[PX, VX] = dt
        F[PY, VY] = dt
        F[PY, G] = -0.5 * dt * dt
        F[VX, VX] = 1.0 - mu * dt
        F[VX, MU] = -vx * dt
        F[VY, VY] = 1.0 - mu * dt
        F[VY, G] = -dt
        F[VY, MU] = -vy * dt
        return F

    # ------------------------------------------------------------------
    # Filter steps
    # ------------------------------------------------------------------

    def predict(self) -> StateVector:
        """
        Prediction step: advance belief one tick under the believed constants.

        P <- F P F^T + Q, with F evaluated at the pre-prediction state.

        Returns:
            Copy of the predicted state
        """
        F = self.jacobian(self._x)
        self._x = self.motion_model(self._x)
        self._P = condition_covariance(F @ self._P @ F.T + self._Q)
        return StateVector.from_array(self._x)

    def update(self, observed_position: Tuple[float, float], observed_velocity: Tuple[float, float]):
        """
        Correction step with an observation of [px, py, vx, vy].

        Args:
            observed_position: (x, y) observed position
            observed_velocity: (x, y) observed velocity
        """
        z = np.array([observed_position[0], observed_position[1],
                      observed_velocity[0], observed_velocity[1]], dtype=np.float64)

        # Innovation (observation minus predicted observation)
        y = z - H @ self._x
        self.last_innovation = y

        # Innovation covariance S = H P H^T + R I
        S = H @ self._P @ H.T + self._R * np.eye(OBSERVATION_DIM, dtype=np.float64)
        S_inv, det, singular = guarded_inverse(S, epsilon=self.config.singular_epsilon)
        if singular:
            self.singular_fallbacks += 1
            logger.warning(f"Innovation covariance near-singular (det={det:.3e}); "
                           f"using identity in place of its inverse")

        # Kalman gain K = P H^T S^-1
        K = self._P @ H.T @ S_inv
        correction = K @ y

        # Kinematics take the full correction
        for idx in KINEMATIC:
            self._x[idx] += correction[idx]

        # Constants are never observed directly: damp, then clamp
        rate = self.config.parameter_learning_rate
        self._x[G] = self.priors.gravity.clamp(self._x[G] + correction[G] * rate)
        self._x[M] = self.priors.mass.clamp(self._x[M] + correction[M] * rate)
        self._x[MU] = self.priors.friction.clamp(self._x[MU] + correction[MU] * rate)

        # P <- (I - K H) P
        I = np.eye(STATE_DIM, dtype=np.float64)
        self._P = condition_covariance((I - K @ H) @ self._P)

    # ------------------------------------------------------------------
    # Hyperparameters
    # ------------------------------------------------------------------

    def set_noise_parameters(self, process_noise: Optional[float] = None,
                             measurement_noise: Optional[float] = None):
        """
        Replace the kinematic process noise and/or the scalar measurement noise.

        Constant-parameter process noise is left untouched so beliefs about
        g, m, mu still cannot drift under prediction alone.
        """
        if process_noise is not None:
            self._Q = self._build_process_noise(float(process_noise),
                                                self._Q[G, G])
        if measurement_noise is not None:
            self._R = float(measurement_noise)

    @property
    def process_noise(self) -> np.ndarray:
        return self._Q.copy()

    @property
    def measurement_noise(self) -> float:
        return self._R

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    def get_state(self) -> StateVector:
        return StateVector.from_array(self._x)

    def get_variance(self) -> float:
        """Overall uncertainty: trace of covariance divided by state dimension"""
        return float(np.trace(self._P) / STATE_DIM)

    def get_covariance(self) -> np.ndarray:
        return self._P.copy()

    def get_marginal_variances(self) -> np.ndarray:
        return np.diagonal(self._P).copy()
