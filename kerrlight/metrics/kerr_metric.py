# metrics/kerr_metric.py
import warnings

import numpy as np
from numba import njit

from .base_metric import Metric, _christoffel_from_derivatives, bardeen_momentum_d
from kerrlight.core.coordinates import BL_to_KS_u
from kerrlight.core.tensors import normalize_null


@njit(cache=True, fastmath=True)
def _kerr_metric_dd_and_derivs(r, theta, a, kerr_schild):
    """
    Kerr metric (M = 1) and its partial derivatives at (r, theta).

    Boyer-Lindquist:
      ds² = -(1 - z) dt² - 2 a z sin²θ dt dφ + Σ/Δ dr² + Σ dθ² + sin²θ A dφ²
    ingoing Kerr-Schild adds  2 z dt dr + (1 + z) dr² - 2 a (1 + z) sin²θ dr dφ
    in place of the BL dr² term, with
      Σ = r² + a² cos²θ,  Δ = r² - 2r + a²,  z = 2r/Σ,  A = r² + a² + a² z sin²θ.

    Returns (g, dg) with dg[s, i, j] = ∂_s g_ij (only s = r, θ are non-zero).
    """
    s = np.sin(theta)
    cs = np.cos(theta)
    s2 = s * s
    sc = s * cs
    a2 = a * a

    sigma = r * r + a2 * cs * cs
    delta = r * r - 2.0 * r + a2
    z = 2.0 * r / sigma

    sig_r = 2.0 * r
    sig_th = -2.0 * a2 * sc
    z_r = 2.0 / sigma - 2.0 * r * sig_r / (sigma * sigma)
    z_th = -2.0 * r * sig_th / (sigma * sigma)

    A = r * r + a2 + a2 * z * s2
    A_r = 2.0 * r + a2 * s2 * z_r
    A_th = a2 * (z_th * s2 + 2.0 * z * sc)

    g = np.zeros((4, 4))
    dg = np.zeros((4, 4, 4))

    # g_tt
    g[0, 0] = -(1.0 - z)
    dg[1, 0, 0] = z_r
    dg[2, 0, 0] = z_th

    # g_tφ
    g[0, 3] = -a * z * s2
    dg[1, 0, 3] = -a * z_r * s2
    dg[2, 0, 3] = -a * (z_th * s2 + 2.0 * z * sc)

    # g_θθ
    g[2, 2] = sigma
    dg[1, 2, 2] = sig_r
    dg[2, 2, 2] = sig_th

    # g_φφ
    g[3, 3] = s2 * A
    dg[1, 3, 3] = s2 * A_r
    dg[2, 3, 3] = 2.0 * sc * A + s2 * A_th

    if kerr_schild:
        g[0, 1] = z
        dg[1, 0, 1] = z_r
        dg[2, 0, 1] = z_th

        g[1, 1] = 1.0 + z
        dg[1, 1, 1] = z_r
        dg[2, 1, 1] = z_th

        g[1, 3] = -a * s2 * (1.0 + z)
        dg[1, 1, 3] = -a * s2 * z_r
        dg[2, 1, 3] = -a * (2.0 * sc * (1.0 + z) + s2 * z_th)
    else:
        g[1, 1] = sigma / delta
        dg[1, 1, 1] = (sig_r * delta - sigma * (2.0 * r - 2.0)) / (delta * delta)
        dg[2, 1, 1] = sig_th / delta

    # symmetric completion
    for i in range(4):
        for j in range(i + 1, 4):
            g[j, i] = g[i, j]
            for d in range(4):
                dg[d, j, i] = dg[d, i, j]

    return g, dg


@njit(cache=True, fastmath=True)
def _kerr_metric_uu(r, theta, a, kerr_schild):
    """Closed-form inverse Kerr metric in BL or ingoing KS coordinates."""
    s = np.sin(theta)
    cs = np.cos(theta)
    s2 = s * s
    a2 = a * a

    sigma = r * r + a2 * cs * cs
    delta = r * r - 2.0 * r + a2

    g = np.zeros((4, 4))
    if kerr_schild:
        z = 2.0 * r / sigma
        g[0, 0] = -(1.0 + z)
        g[0, 1] = z
        g[1, 0] = z
        g[1, 1] = delta / sigma
        g[1, 3] = a / sigma
        g[3, 1] = a / sigma
        g[2, 2] = 1.0 / sigma
        g[3, 3] = 1.0 / (sigma * s2)
    else:
        r2a2 = r * r + a2
        g[0, 0] = -(r2a2 * r2a2 - a2 * delta * s2) / (sigma * delta)
        g[0, 3] = -2.0 * a * r / (sigma * delta)
        g[3, 0] = g[0, 3]
        g[1, 1] = delta / sigma
        g[2, 2] = 1.0 / sigma
        g[3, 3] = (delta - a2 * s2) / (sigma * delta * s2)
    return g


class KerrMetric(Metric):
    """
    Kerr metric for a black hole of unit mass and spin a = config.spin.

    Charts:
    - "BL": Boyer-Lindquist (t, r, θ, φ), singular at the horizon
    - "KS": ingoing Kerr-Schild (t, r, θ, φ), regular across the horizon
    """

    CHARTS = ("BL", "KS")

    def __init__(self, config):
        if config.chart not in self.CHARTS:
            raise ValueError(
                f"Chart '{config.chart}' not handled by {type(self).__name__}. Available: {list(self.CHARTS)}"
            )
        self.config = config
        self.a = float(config.spin)
        self.r_horizon = float(config.r_horizon)
        self.kerr_schild = config.chart == "KS"

    def _r_theta(self, X_u):
        r = float(X_u[1])
        if not self.kerr_schild and r <= self.r_horizon:
            warnings.warn(
                f"Boyer-Lindquist evaluation at r={r:.6f} inside the horizon r_+={self.r_horizon:.6f}; "
                f"clamping to the horizon, results are unphysical.",
                RuntimeWarning,
            )
            r = self.r_horizon * (1.0 + 1e-9)
        return r, self._regularize_theta(float(X_u[2]))

    def metric_dd(self, X_u):
        r, theta = self._r_theta(X_u)
        g, _ = _kerr_metric_dd_and_derivs(r, theta, self.a, self.kerr_schild)
        return g

    def metric_uu(self, X_u):
        r, theta = self._r_theta(X_u)
        return _kerr_metric_uu(r, theta, self.a, self.kerr_schild)

    def connection_udd(self, X_u):
        r, theta = self._r_theta(X_u)
        _, dg = _kerr_metric_dd_and_derivs(r, theta, self.a, self.kerr_schild)
        return _christoffel_from_derivatives(_kerr_metric_uu(r, theta, self.a, self.kerr_schild), dg)

    def camera_position(self, t_init=None):
        """Camera location (t, r_cam, inclination, 0) in this chart."""
        t = self.config.t_init if t_init is None else t_init
        return np.array([t, self.config.r_cam, np.radians(self.config.inclination), 0.0])

    def _camera_momentum_ks_or_bl(self, alpha, beta, t_init):
        # Always built in BL/KS coordinates; charts derived from KS map it afterwards
        X_u = KerrMetric.camera_position(self, t_init)
        r, theta = X_u[1], X_u[2]
        delta = r * r - 2.0 * r + self.a * self.a

        k_d = bardeen_momentum_d(r, theta, self.a, delta, alpha, beta)
        k_u = _kerr_metric_uu(r, theta, self.a, False) @ k_d
        if self.kerr_schild:
            k_u = BL_to_KS_u(X_u, k_u, self.a)
        return X_u, k_u

    def initialize_photon(self, alpha, beta, t_init=None):
        """
        Physical (future-directed) photon momentum at the camera.

        The ray is traced backward from here, so the integrator advances with a
        negative affine step; k itself always points along the photon's motion.

        Returns:
        --------
        ndarray (8,)
            [X_u, k_u] with g(k, k) = 0 and k_t = -1 (up to the renormalisation)
        """
        X_u, k_u = self._camera_momentum_ks_or_bl(alpha, beta, t_init)
        k_u = normalize_null(self, X_u, k_u, future_directed=True)
        return np.concatenate([X_u, k_u])


def r_isco(a):
    """Prograde innermost stable circular orbit radius (Bardeen, Press & Teukolsky 1972)."""
    z1 = 1.0 + (1.0 - a * a) ** (1.0 / 3.0) * ((1.0 + a) ** (1.0 / 3.0) + (1.0 - a) ** (1.0 / 3.0))
    z2 = np.sqrt(3.0 * a * a + z1 * z1)
    return 3.0 + z2 - np.sign(a) * np.sqrt((3.0 - z1) * (3.0 + z1 + 2.0 * z2))
