# metrics/base_metric.py
from abc import ABC, abstractmethod

import numpy as np
from numba import njit

# Polar-axis regularisation: theta is kept in [POLE_EPS, pi - POLE_EPS]
POLE_EPS = 1e-8


@njit(cache=True, fastmath=True)
def _christoffel_from_derivatives(g_uu, dg):
    """
    Γ^μ_{αβ} = ½ g^{μσ} (∂_α g_{σβ} + ∂_β g_{σα} - ∂_σ g_{αβ})

    dg[s, i, j] holds ∂_s g_{ij}. Result is indexed [μ, α, β].
    """
    gamma = np.zeros((4, 4, 4))
    for mu in range(4):
        for alpha in range(4):
            for beta in range(alpha, 4):
                acc = 0.0
                for sigma in range(4):
                    acc += g_uu[mu, sigma] * (
                        dg[alpha, sigma, beta] + dg[beta, sigma, alpha] - dg[sigma, alpha, beta]
                    )
                gamma[mu, alpha, beta] = 0.5 * acc
                gamma[mu, beta, alpha] = 0.5 * acc
    return gamma


@njit(cache=True, fastmath=True)
def _geodesic_rhs(gamma, state):
    """
    d/dλ of [x(4), k(4), v_1(4), ...]:
        dx/dλ = k,  dk/dλ = -Γ k k,  dv/dλ = -Γ k v  (parallel transport)
    """
    n = state.shape[0]
    out = np.zeros(n)
    for mu in range(4):
        out[mu] = state[4 + mu]
    for block in range(1, n // 4):
        off = 4 * block
        for mu in range(4):
            acc = 0.0
            for alpha in range(4):
                k_alpha = state[4 + alpha]
                for beta in range(4):
                    acc += gamma[mu, alpha, beta] * k_alpha * state[off + beta]
            out[off + mu] = -acc
    return out


def bardeen_momentum_d(r, theta, a, delta, alpha, beta):
    """
    Covariant momentum of a photon reaching a distant camera at (r, theta).

    Impact parameters follow Bardeen (1973): alpha along +phi, beta toward the
    projected spin axis. Unit energy at infinity (k_t = -1); the photon moves
    outward (k_r > 0), i.e. this is the physical momentum at reception.
    """
    sin_th = np.sin(theta)
    cos_th = np.cos(theta)

    lam = -alpha * sin_th
    eta = beta * beta + cos_th * cos_th * (alpha * alpha - a * a)

    R = ((r * r + a * a) - a * lam) ** 2 - delta * (eta + (lam - a) ** 2)
    Theta = eta + a * a * cos_th * cos_th - lam * lam * (cos_th / sin_th) ** 2

    return np.array([
        -1.0,
        np.sqrt(abs(R)) / delta,
        np.sign(beta) * np.sqrt(abs(Theta)),
        lam,
    ])


class Metric(ABC):
    """
    Spacetime geometry at a coordinate point.

    Concrete metrics provide the covariant/contravariant metric and the exact
    connection; the numerically differentiated connection and the geodesic
    right-hand side are shared.
    """

    @abstractmethod
    def metric_dd(self, X_u):
        """Covariant metric g_{μν} at X."""

    @abstractmethod
    def metric_uu(self, X_u):
        """Contravariant metric g^{μν} at X."""

    @abstractmethod
    def connection_udd(self, X_u):
        """Exact Γ^μ_{αβ} as a [μ, α, β] array."""

    @abstractmethod
    def initialize_photon(self, alpha, beta, t_init=None):
        """Initial [x, k] state of the ray through image-plane point (alpha, beta)."""

    def connection_num_udd(self, X_u, eps=1e-5):
        """
        Γ^μ_{αβ} from symmetric finite differences of metric_dd.

        Fallback for metrics without a closed-form connection and cross-check
        of the analytic one. Step per coordinate: eps * (1 + |x^s|).
        """
        X_u = np.asarray(X_u, dtype=float)
        dg = np.zeros((4, 4, 4))
        for s in range(4):
            step = eps * (1.0 + abs(X_u[s]))
            X_p = X_u.copy()
            X_m = X_u.copy()
            X_p[s] += step
            X_m[s] -= step
            dg[s] = (self.metric_dd(X_p) - self.metric_dd(X_m)) / (2.0 * step)
        return _christoffel_from_derivatives(self.metric_uu(X_u), dg)

    def geodesic_equations(self, state):
        """Return d/dλ [x, k, (transported vectors...)] (the f_geodesic right-hand side)."""
        state = np.asarray(state, dtype=float)
        gamma = self.connection_udd(state[:4])
        return _geodesic_rhs(gamma, state)

    def radius(self, X_u):
        """Boyer-Lindquist-like radius r at X."""
        return float(X_u[1])

    def polar_angle(self, X_u):
        """Polar angle theta at X."""
        return float(X_u[2])

    def coordinate_rates(self, X_u, k_u):
        """(dr/dλ, dθ/dλ) for the stepsize heuristic."""
        return float(k_u[1]), float(k_u[2])

    def zamo_velocity(self, X_u):
        """Four-velocity of the zero-angular-momentum observer at X (timelike outside the horizon)."""
        g = self.metric_dd(X_u)
        omega = -g[0, 3] / g[3, 3]
        norm = g[0, 0] + 2.0 * omega * g[0, 3] + omega * omega * g[3, 3]
        u_t = 1.0 / np.sqrt(-norm)
        return np.array([u_t, 0.0, 0.0, omega * u_t])

    @staticmethod
    def _regularize_theta(theta):
        return min(max(theta, POLE_EPS), np.pi - POLE_EPS)
