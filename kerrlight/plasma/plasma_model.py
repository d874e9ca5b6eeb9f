"""
Plasma models consumed by the radiative transfer.

The transfer only needs ``sample(X_u) -> PlasmaSample``; everything here is an
analytic stand-in. Simulation snapshots can be plugged in by implementing the
same interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class PlasmaSample:
    """
    Local plasma state at one spacetime point.

    n_e      electron number density [cm^-3]
    theta_e  dimensionless electron temperature k T / (m_e c^2)
    b_field  magnetic field strength [G]
    b_u      magnetic field four-vector (direction, orthogonal to u_u)
    u_u      fluid four-velocity
    in_volume  False outside the region where the model is defined
    """

    n_e: float
    theta_e: float
    b_field: float
    b_u: np.ndarray
    u_u: np.ndarray
    in_volume: bool = True


OUT_OF_VOLUME = PlasmaSample(0.0, 0.0, 0.0, np.zeros(4), np.array([1.0, 0.0, 0.0, 0.0]), False)


class PlasmaModel(ABC):

    @abstractmethod
    def sample(self, X_u):
        """Return the PlasmaSample at X_u (``in_volume=False`` outside the model)."""


def _vertical_field_u(metric, X_u, b_field):
    # Unit vector along -∂_θ (locally "up"); orthogonal to any U with U^θ = 0
    # because g_θμ vanishes off the diagonal in BL, KS and MKS
    g = metric.metric_dd(X_u)
    return np.array([0.0, 0.0, -b_field / np.sqrt(g[2, 2]), 0.0])


class UniformSlab(PlasmaModel):
    """
    Constant density, temperature and field inside r < r_max, with a static
    fluid (the zero-angular-momentum observer, which is at rest in flat space).
    """

    def __init__(self, metric, n_e, theta_e, b_field, r_max=np.inf, r_min=0.0):
        self.metric = metric
        self.n_e = float(n_e)
        self.theta_e = float(theta_e)
        self.b_field = float(b_field)
        self.r_max = float(r_max)
        self.r_min = float(r_min)

    def sample(self, X_u):
        r = self.metric.radius(X_u)
        if not self.r_min <= r < self.r_max:
            return OUT_OF_VOLUME
        u_u = self.metric.zamo_velocity(X_u)
        if not np.all(np.isfinite(u_u)):
            return OUT_OF_VOLUME
        b_u = _vertical_field_u(self.metric, X_u, self.b_field)
        return PlasmaSample(self.n_e, self.theta_e, self.b_field, b_u, u_u, True)


class KeplerianDisk(PlasmaModel):
    """
    Geometrically thick, RIAF-like analytic flow:

        n_e     = n_e0 r^-1.1 exp(-cos²θ / (2 h²))
        Theta_e = theta_e0 r^-0.84
        B       = b0 r^-1

    The fluid rotates with the Keplerian angular velocity Ω = 1 / (ρ^1.5 + a)
    of the cylindrical radius ρ = r sinθ; where that orbit is not timelike the
    zero-angular-momentum observer is used instead. The field is vertical.
    """

    def __init__(self, metric, n_e0=1.0e6, theta_e0=50.0, b0=30.0, h=0.5, r_max=50.0):
        self.metric = metric
        self.a = float(getattr(metric, "a", 0.0))
        self.n_e0 = float(n_e0)
        self.theta_e0 = float(theta_e0)
        self.b0 = float(b0)
        self.h = float(h)
        self.r_max = float(r_max)
        self.r_min = 1.05 * metric.config.r_horizon

    def four_velocity(self, X_u):
        g = self.metric.metric_dd(X_u)
        rho = self.metric.radius(X_u) * np.sin(self.metric.polar_angle(X_u))
        omega = 1.0 / (rho ** 1.5 + self.a)
        norm = g[0, 0] + 2.0 * omega * g[0, 3] + omega * omega * g[3, 3]
        if norm >= 0.0:
            return self.metric.zamo_velocity(X_u)
        u_t = 1.0 / np.sqrt(-norm)
        return np.array([u_t, 0.0, 0.0, omega * u_t])

    def sample(self, X_u):
        r = self.metric.radius(X_u)
        if not self.r_min < r < self.r_max:
            return OUT_OF_VOLUME

        cos_th = np.cos(self.metric.polar_angle(X_u))
        n_e = self.n_e0 * r ** -1.1 * np.exp(-cos_th * cos_th / (2.0 * self.h * self.h))
        theta_e = self.theta_e0 * r ** -0.84
        b_field = self.b0 / r

        u_u = self.four_velocity(X_u)
        if not np.all(np.isfinite(u_u)):
            return OUT_OF_VOLUME
        b_u = _vertical_field_u(self.metric, X_u, b_field)
        return PlasmaSample(n_e, theta_e, b_field, b_u, u_u, True)
