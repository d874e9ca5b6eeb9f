# metrics/minkowski_metric.py
import numpy as np

from .base_metric import Metric, bardeen_momentum_d
from kerrlight.core.tensors import normalize_null


class MinkowskiMetric(Metric):
    """
    Flat spacetime in spherical coordinates:
    ds² = -dt² + dr² + r² dθ² + r² sin²θ dφ²

    Straight-line photons give closed-form trajectories, which makes this the
    reference geometry for integrator convergence and uniform-slab transfer.
    Only the camera and cutoff entries of the configuration are used.
    """

    def __init__(self, config):
        self.config = config

    def metric_dd(self, X_u):
        r = float(X_u[1])
        s = np.sin(self._regularize_theta(float(X_u[2])))
        return np.diag([-1.0, 1.0, r * r, r * r * s * s])

    def metric_uu(self, X_u):
        r = float(X_u[1])
        s = np.sin(self._regularize_theta(float(X_u[2])))
        return np.diag([-1.0, 1.0, 1.0 / (r * r), 1.0 / (r * r * s * s)])

    def connection_udd(self, X_u):
        r = float(X_u[1])
        theta = self._regularize_theta(float(X_u[2]))
        s, cs = np.sin(theta), np.cos(theta)

        Γ = np.zeros((4, 4, 4))
        Γ[1, 2, 2] = -r
        Γ[1, 3, 3] = -r * s * s
        Γ[2, 1, 2] = Γ[2, 2, 1] = 1.0 / r
        Γ[2, 3, 3] = -s * cs
        Γ[3, 1, 3] = Γ[3, 3, 1] = 1.0 / r
        Γ[3, 2, 3] = Γ[3, 3, 2] = cs / s
        return Γ

    def camera_position(self, t_init=None):
        t = self.config.t_init if t_init is None else t_init
        return np.array([t, self.config.r_cam, np.radians(self.config.inclination), 0.0])

    def initialize_photon(self, alpha, beta, t_init=None):
        X_u = self.camera_position(t_init)
        r, theta = X_u[1], X_u[2]
        k_d = bardeen_momentum_d(r, theta, 0.0, r * r, alpha, beta)
        k_u = normalize_null(self, X_u, self.metric_uu(X_u) @ k_d, future_directed=True)
        return np.concatenate([X_u, k_u])

