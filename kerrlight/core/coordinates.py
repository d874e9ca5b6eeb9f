"""
Helpers for coordinate transformations.

Boyer-Lindquist (BL) and ingoing Kerr-Schild (KS) charts share r and theta;
they differ by the r-dependent shifts of t and phi:

    dt_KS  = dt_BL  + 2r / Delta dr
    dphi_KS = dphi_BL + a / Delta dr

with Delta = r^2 - 2r + a^2 (units GM/c^2).
"""

import numpy as np


def boyer_lindquist_to_cartesian(r, theta, phi, a):
    """
    Kerr-Schild-like Cartesian embedding of BL coordinates.

    Uses the oblate radius sqrt(r^2 + a^2) in the equatorial plane, so that the
    surfaces of constant r are confocal ellipsoids.
    """
    rho = np.sqrt(r**2 + a**2) * np.sin(theta)
    return rho * np.cos(phi), rho * np.sin(phi), r * np.cos(theta)


def _horizons(a):
    root = np.sqrt(1.0 - a * a)
    return 1.0 + root, 1.0 - root


def BL_to_KS_u(X_u, V_u, a):
    """
    Transform a contravariant vector from BL to KS coordinates.

    Parameters:
    -----------
    X_u : array (4,)
        Position (only r = X_u[1] is used; identical in both charts)
    V_u : array (4,)
        Contravariant BL components
    a : float
        Black hole spin

    Returns:
    --------
    ndarray (4,)
        Contravariant KS components
    """
    r = X_u[1]
    delta = r * r - 2.0 * r + a * a
    KS_u = np.array(V_u, dtype=float)
    KS_u[0] = V_u[0] + 2.0 * r / delta * V_u[1]
    KS_u[3] = V_u[3] + a / delta * V_u[1]
    return KS_u


def KS_to_BL_u(X_u, V_u, a):
    """Transform a contravariant vector from KS to BL coordinates (inverse of BL_to_KS_u)."""
    r = X_u[1]
    delta = r * r - 2.0 * r + a * a
    BL_u = np.array(V_u, dtype=float)
    BL_u[0] = V_u[0] - 2.0 * r / delta * V_u[1]
    BL_u[3] = V_u[3] - a / delta * V_u[1]
    return BL_u


def _t_phi_shifts(r, a):
    # Closed-form antiderivatives of 2r/Delta and a/Delta, valid for r > r_+
    r_p, r_m = _horizons(a)
    dr = r_p - r_m
    if dr == 0.0:
        raise ValueError("BL <-> KS position transform requires |a| < 1")
    dt = (2.0 * r_p * np.log(abs(r - r_p)) - 2.0 * r_m * np.log(abs(r - r_m))) / dr
    dphi = a / dr * np.log(abs((r - r_p) / (r - r_m)))
    return dt, dphi


def BL_to_KS_x(X_u, a):
    """Transform a BL position to KS coordinates (t and phi shift, r and theta unchanged)."""
    dt, dphi = _t_phi_shifts(X_u[1], a)
    return np.array([X_u[0] + dt, X_u[1], X_u[2], X_u[3] + dphi], dtype=float)


def KS_to_BL_x(X_u, a):
    """Transform a KS position to BL coordinates."""
    dt, dphi = _t_phi_shifts(X_u[1], a)
    return np.array([X_u[0] - dt, X_u[1], X_u[2], X_u[3] - dphi], dtype=float)
