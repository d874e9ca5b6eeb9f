"""
Immutable spacetime configuration.

A single SpacetimeConfig is built before any ray is traced and is shared,
read-only, by every metric, integrator and transfer call. It replaces the
process-wide constants (mass, spin, unit scales) of older ray tracers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from kerrlight.core.constants import G, c, one_kpc, one_Msun


@dataclass(frozen=True)
class SpacetimeConfig:
    """
    Parameters:
    -----------
    mass : float
        Black hole mass in grams (sets the length unit GM/c^2)
    spin : float
        Dimensionless spin a/M, must satisfy |a| < 1
    chart : str
        Coordinate chart: "BL" (Boyer-Lindquist), "KS" (Kerr-Schild)
        or "MKS" (modified Kerr-Schild, x1 = ln r)
    hslope : float
        Polar concentration of the MKS chart (1 gives theta = pi x2)
    r_cam : float
        Camera radius in units of GM/c^2
    inclination : float
        Camera inclination in degrees, measured from the spin axis
    t_init : float
        Coordinate time attached to the camera
    distance : float
        Distance from the observer to the source in cm (sets the flux scale;
        defaults to Sgr A*)
    r_inner : float, optional
        Inner cutoff radius; defaults to 1.05 times the horizon radius
    r_outer : float, optional
        Escape radius; defaults to 1.1 times the camera radius
    """

    mass: float = 4.0e6 * one_Msun
    spin: float = 0.9375
    chart: str = "KS"
    hslope: float = 1.0
    r_cam: float = 1.0e4
    inclination: float = 60.0
    t_init: float = 0.0
    distance: float = 8.178 * one_kpc
    r_inner: Optional[float] = None
    r_outer: Optional[float] = None

    CHARTS = ("BL", "KS", "MKS")

    def __post_init__(self):
        if not np.isfinite(self.mass) or self.mass <= 0:
            raise ValueError(f"mass must be a positive finite number, got {self.mass}")
        if not abs(self.spin) < 1.0:
            raise ValueError(f"spin must satisfy |a| < 1, got {self.spin}")
        if self.chart not in self.CHARTS:
            raise ValueError(f"Chart '{self.chart}' not supported. Available: {list(self.CHARTS)}")
        if not 0.0 < self.hslope <= 1.0:
            raise ValueError(f"hslope must lie in (0, 1], got {self.hslope}")
        if not 0.0 < self.inclination < 180.0:
            raise ValueError("inclination must lie strictly between 0 and 180 degrees")
        if not np.isfinite(self.distance) or self.distance <= 0:
            raise ValueError(f"distance must be a positive finite number, got {self.distance}")

        # Fill derived cutoffs (frozen dataclass -> object.__setattr__)
        if self.r_inner is None:
            object.__setattr__(self, "r_inner", 1.05 * self.r_horizon)
        if self.r_outer is None:
            object.__setattr__(self, "r_outer", 1.1 * self.r_cam)

        if self.r_inner <= 0:
            raise ValueError("r_inner must be positive")
        if self.chart == "BL" and self.r_inner <= self.r_horizon:
            raise ValueError("Boyer-Lindquist chart is singular at the horizon: r_inner must exceed r_horizon")
        if self.r_cam <= self.r_inner:
            raise ValueError("camera must sit outside the inner cutoff")
        if self.r_outer <= self.r_cam:
            raise ValueError("r_outer must exceed the camera radius")

    @property
    def r_horizon(self) -> float:
        """Outer event horizon r_+ = 1 + sqrt(1 - a^2)."""
        return 1.0 + np.sqrt(1.0 - self.spin**2)

    @property
    def L_unit(self) -> float:
        """Length unit GM/c^2 in cm."""
        return G * self.mass / c**2

    @property
    def T_unit(self) -> float:
        """Time unit GM/c^3 in s."""
        return self.L_unit / c

    def with_updates(self, **changes) -> "SpacetimeConfig":
        """Return a copy with some fields replaced (derived cutoffs recomputed unless given)."""
        fields = {
            "mass": self.mass,
            "spin": self.spin,
            "chart": self.chart,
            "hslope": self.hslope,
            "r_cam": self.r_cam,
            "inclination": self.inclination,
            "t_init": self.t_init,
            "distance": self.distance,
        }
        fields.update(changes)
        return SpacetimeConfig(**fields)
