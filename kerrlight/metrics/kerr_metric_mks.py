# metrics/kerr_metric_mks.py
import numpy as np
from scipy.optimize import brentq

from .base_metric import _christoffel_from_derivatives
from .kerr_metric import KerrMetric, _kerr_metric_dd_and_derivs, _kerr_metric_uu
from kerrlight.core.tensors import normalize_null


class ModifiedKerrSchildMetric(KerrMetric):
    """
    Kerr metric in modified Kerr-Schild coordinates (t, x1, x2, φ):

        r = exp(x1)
        θ = π x2 + ½ (1 - hslope) sin(2π x2),   x2 ∈ [0, 1]

    The chart is a diagonal reparametrisation of ingoing Kerr-Schild, so the
    metric, its inverse and the connection follow from the KS ones through the
    Jacobian J = diag(1, dr/dx1, dθ/dx2, 1):

        g'_ab = J_a J_b g_ab,   Γ'^a_bc = Γ^a_bc J_b J_c / J_a + δ_abc J'_a / J_a
    """

    CHARTS = ("MKS",)

    def __init__(self, config):
        super().__init__(config)
        self.kerr_schild = True
        self.hslope = float(config.hslope)

    # --- chart maps -------------------------------------------------------
    def theta_of_x2(self, x2):
        return np.pi * x2 + 0.5 * (1.0 - self.hslope) * np.sin(2.0 * np.pi * x2)

    def dtheta_dx2(self, x2):
        return np.pi * (1.0 + (1.0 - self.hslope) * np.cos(2.0 * np.pi * x2))

    def d2theta_dx22(self, x2):
        return -2.0 * np.pi * np.pi * (1.0 - self.hslope) * np.sin(2.0 * np.pi * x2)

    def x2_of_theta(self, theta):
        """Invert θ(x2); θ(x2) is strictly increasing for hslope in (0, 1]."""
        if theta <= 0.0:
            return 0.0
        if theta >= np.pi:
            return 1.0
        return brentq(lambda x2: self.theta_of_x2(x2) - theta, 0.0, 1.0, xtol=1e-15)

    def _jacobian(self, X_u):
        r = np.exp(X_u[1])
        return np.array([1.0, r, self.dtheta_dx2(X_u[2]), 1.0])

    def _r_theta(self, X_u):
        r = float(np.exp(X_u[1]))
        theta = self._regularize_theta(float(self.theta_of_x2(X_u[2])))
        return r, theta

    # --- geometry ---------------------------------------------------------
    def metric_dd(self, X_u):
        r, theta = self._r_theta(X_u)
        g, _ = _kerr_metric_dd_and_derivs(r, theta, self.a, True)
        J = self._jacobian(X_u)
        return g * np.outer(J, J)

    def metric_uu(self, X_u):
        r, theta = self._r_theta(X_u)
        g_uu = _kerr_metric_uu(r, theta, self.a, True)
        J = self._jacobian(X_u)
        return g_uu / np.outer(J, J)

    def connection_udd(self, X_u):
        r, theta = self._r_theta(X_u)
        _, dg = _kerr_metric_dd_and_derivs(r, theta, self.a, True)
        gamma_ks = _christoffel_from_derivatives(_kerr_metric_uu(r, theta, self.a, True), dg)

        J = self._jacobian(X_u)
        gamma = gamma_ks * np.outer(J, J)[None, :, :] / J[:, None, None]
        gamma[1, 1, 1] += 1.0  # d²r/dx1² / (dr/dx1)
        gamma[2, 2, 2] += self.d2theta_dx22(X_u[2]) / J[2]
        return gamma

    # --- helpers used by the integrator and the camera ----------------------
    def radius(self, X_u):
        return float(np.exp(X_u[1]))

    def polar_angle(self, X_u):
        return float(self.theta_of_x2(X_u[2]))

    def coordinate_rates(self, X_u, k_u):
        return float(np.exp(X_u[1]) * k_u[1]), float(self.dtheta_dx2(X_u[2]) * k_u[2])

    def from_kerr_schild(self, X_ks, k_ks):
        """Map a KS position and contravariant vector into this chart."""
        x2 = self.x2_of_theta(X_ks[2])
        X_u = np.array([X_ks[0], np.log(X_ks[1]), x2, X_ks[3]])
        J = self._jacobian(X_u)
        return X_u, np.asarray(k_ks, dtype=float) / J

    def camera_position(self, t_init=None):
        X_ks = super().camera_position(t_init)
        return np.array([X_ks[0], np.log(X_ks[1]), self.x2_of_theta(X_ks[2]), X_ks[3]])

    def initialize_photon(self, alpha, beta, t_init=None):
        X_ks, k_ks = self._camera_momentum_ks_or_bl(alpha, beta, t_init)
        X_u, k_u = self.from_kerr_schild(X_ks, k_ks)
        k_u = normalize_null(self, X_u, k_u, future_directed=True)
        return np.concatenate([X_u, k_u])


def metric_from_config(config):
    """Build the metric matching config.chart."""
    if config.chart == "MKS":
        return ModifiedKerrSchildMetric(config)
    return KerrMetric(config)
