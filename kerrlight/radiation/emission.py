"""
Emission and absorption coefficients (CGS).

Every function is a pure function of local plasma-frame quantities:
frequency nu [Hz], electron density n_e [cm^-3], dimensionless temperature
Theta_e = k T / (m_e c^2), field strength B [G] and pitch angle theta [rad].
Emission coefficients are in erg s^-1 cm^-3 Hz^-1 sr^-1, absorption
coefficients in cm^-1.

References:
-----------
- Leung, Gammie & Noble (2011): thermal synchrotron fit
- Mahadevan, Narayan & Yi (1996): angle-averaged thermal synchrotron
- Pandya, Zhang, Chandra & Gammie (2016): kappa-distribution fits
- Dexter (2016): polarized thermal synchrotron and Faraday coefficients
- Dexter & Agol (2009): hotspot and thin-disk toy emissivities
"""

import numpy as np
from scipy.special import gamma, hyp2f1, kve

from kerrlight.core.constants import c, e_charge, h, k_B, m_e, m_e_c2
from kerrlight.core.coordinates import boyer_lindquist_to_cartesian

# Below this temperature synchrotron emission is set to zero (fits invalid, K2 underflows)
THETA_E_MIN = 1e-2


def _bessel_k2(x):
    # K2 without underflow: kve(2, x) = K2(x) e^x
    return kve(2, x) * np.exp(-x)


def planck_function(nu, theta_e):
    """Planck function B_nu(T) for T = Theta_e m_e c^2 / k_B."""
    if theta_e <= 0.0:
        return 0.0
    T = theta_e * m_e_c2 / k_B
    x = h * nu / (k_B * T)
    return 2.0 * h * nu**3 / c**2 / np.expm1(x)


def absorption_coeff_TH(j_nu, nu, theta_e):
    """Thermal absorption from Kirchhoff's law, a_nu = j_nu / B_nu(T)."""
    b_nu = planck_function(nu, theta_e)
    if b_nu <= 0.0:
        return 0.0
    return j_nu / b_nu


def emission_coeff_THSYNCH(B, theta, theta_e, nu, n_e):
    """Thermal synchrotron emission at pitch angle theta (Leung et al. 2011)."""
    sin_th = abs(np.sin(theta))
    if theta_e < THETA_E_MIN or B <= 0.0 or n_e <= 0.0 or sin_th < 1e-12:
        return 0.0

    nu_c = e_charge * B / (2.0 * np.pi * m_e * c)
    nu_s = 2.0 / 9.0 * nu_c * theta_e**2 * sin_th
    X = nu / nu_s
    x13 = X ** (1.0 / 3.0)

    # exp(-X^1/3) / K2(1/Theta) with K2 written through kve to avoid underflow
    ratio = np.exp(1.0 / theta_e - x13) / kve(2, 1.0 / theta_e)
    return (
        n_e * np.sqrt(2.0) * np.pi * e_charge**2 * nu_s / (3.0 * c)
        * (np.sqrt(X) + 2.0 ** (11.0 / 12.0) * X ** (1.0 / 6.0)) ** 2
        * ratio
    )


def emission_coeff_THSYNCHAV(B, theta_e, nu, n_e):
    """Angle-averaged thermal synchrotron emission (Mahadevan et al. 1996)."""
    if theta_e < THETA_E_MIN or B <= 0.0 or n_e <= 0.0:
        return 0.0

    nu_0 = e_charge * B / (2.0 * np.pi * m_e * c)
    x_M = 2.0 * nu / (3.0 * nu_0 * theta_e**2)
    I_M = (
        4.0505 / x_M ** (1.0 / 6.0)
        * (1.0 + 0.40 / x_M**0.25 + 0.5316 / np.sqrt(x_M))
        * np.exp(-1.8899 * x_M ** (1.0 / 3.0))
    )
    return n_e * e_charge**2 * nu / (np.sqrt(3.0) * c * _bessel_k2(1.0 / theta_e)) * I_M


def _kappa_width(kappa, theta_e):
    # Energy-matched width: the kappa and thermal distributions share <gamma>
    return (kappa - 3.0) / kappa * theta_e


def emission_coeff_kappa_FIT(nu, n_e, theta_e, B, theta, kappa=3.5):
    """Kappa-distribution synchrotron emission (Pandya et al. 2016)."""
    sin_th = abs(np.sin(theta))
    if n_e <= 0.0 or B <= 0.0 or theta_e <= 0.0 or sin_th < 1e-12:
        return 0.0

    w = _kappa_width(kappa, theta_e)
    nu_c = e_charge * B / (2.0 * np.pi * m_e * c)
    X_k = nu / (nu_c * (w * kappa) ** 2 * sin_th)

    prefactor = n_e * e_charge**2 * nu_c * sin_th / c
    N_low = 4.0 * np.pi * gamma(kappa - 4.0 / 3.0) / (3.0 ** (7.0 / 3.0) * gamma(kappa - 2.0))
    N_high = (
        0.25 * 3.0 ** ((kappa - 1.0) / 2.0) * (kappa - 2.0) * (kappa - 1.0)
        * gamma(kappa / 4.0 - 1.0 / 3.0) * gamma(kappa / 4.0 + 4.0 / 3.0)
    )
    x = 3.0 * kappa ** -1.5
    return (
        prefactor * N_low * X_k ** (1.0 / 3.0)
        * (1.0 + X_k ** (x * (3.0 * kappa - 4.0) / 6.0) * (N_low / N_high) ** x) ** (-1.0 / x)
    )


def absorption_coeff_kappa_FIT(nu, n_e, theta_e, B, theta, kappa=3.5):
    """Kappa-distribution synchrotron absorption (Pandya et al. 2016)."""
    sin_th = abs(np.sin(theta))
    if n_e <= 0.0 or B <= 0.0 or theta_e <= 0.0 or sin_th < 1e-12:
        return 0.0

    w = _kappa_width(kappa, theta_e)
    nu_c = e_charge * B / (2.0 * np.pi * m_e * c)
    X_k = nu / (nu_c * (w * kappa) ** 2 * sin_th)

    prefactor = n_e * e_charge / (B * sin_th)
    hyp = hyp2f1(kappa - 1.0 / 3.0, kappa + 1.0, kappa + 2.0 / 3.0, -kappa * w)
    N_low = (
        3.0 ** (1.0 / 6.0) * (10.0 / 41.0) * (2.0 * np.pi) ** 2 / (w * kappa) ** (16.0 / 3.0 - kappa)
        * (kappa - 2.0) * (kappa - 1.0) * kappa / (3.0 * kappa - 1.0) * gamma(5.0 / 3.0) * hyp
    )
    N_high = (
        2.0 * np.pi ** 2.5 / 3.0 * (kappa - 2.0) * (kappa - 1.0) * kappa / (w * kappa) ** 5
        * (2.0 * gamma(2.0 + kappa / 2.0) / (2.0 + kappa) - 1.0)
    )
    x = 1.0 / (-7.0 / 4.0 + 8.0 * kappa / 5.0)
    return (
        prefactor * N_low * X_k ** (-2.0 / 3.0)
        * (1.0 + X_k ** (x * (-2.0 / 3.0 + (1.0 + kappa) / 2.0)) * (N_low / N_high) ** x) ** (-1.0 / x)
    )


def emission_coeff_FFTHERMAL(nu, n_e, T, gaunt=1.0):
    """Thermal bremsstrahlung of a pure hydrogen plasma (n_i = n_e, Z = 1), T in K."""
    if n_e <= 0.0 or T <= 0.0:
        return 0.0
    return 5.44e-39 * n_e * n_e / np.sqrt(T) * np.exp(-h * nu / (k_B * T)) * gaunt


def emissivity_hotspot(t, r, theta, phi, a, r_spot=6.0, R_spot=0.5, phi0=0.0):
    """
    Orbiting Gaussian hotspot (Dexter & Agol 2009).

    The spot centre moves on the equatorial Keplerian orbit r_spot with
    Ω = 1 / (r_spot^1.5 + a); the emissivity is exp(-d² / (2 R_spot²)) with d the
    Cartesian distance to the centre at coordinate time t.
    """
    omega = 1.0 / (r_spot**1.5 + a)
    phi_spot = phi0 + omega * t
    x_s, y_s, z_s = boyer_lindquist_to_cartesian(r_spot, 0.5 * np.pi, phi_spot, a)
    x, y, z = boyer_lindquist_to_cartesian(r, theta, phi, a)
    d2 = (x - x_s) ** 2 + (y - y_s) ** 2 + (z - z_s) ** 2
    return float(np.exp(-0.5 * d2 / R_spot**2))


def emissivity_thindisk(r, theta, r_in, r_out=20.0, q=2.0, h_disk=0.02):
    """
    Thin-disk line emission (Dexter & Agol 2009): r^-q between r_in and r_out,
    confined to a Gaussian layer of angular half-width h_disk around the
    equator.
    """
    if r < r_in or r > r_out:
        return 0.0
    cos_th = np.cos(theta)
    return float(r**-q * np.exp(-0.5 * cos_th * cos_th / h_disk**2))


def _faraday_rotation_factor(X):
    # Correction to rho_Q for mildly relativistic electrons (Shcherbakov 2008 fit)
    return (
        2.011 * np.exp(-X**1.035 / 4.7)
        - np.cos(0.5 * X) * np.exp(-X**1.2 / 2.73)
        - 0.011 * np.exp(-X / 47.2)
    )


def thermal_polarized_coefficients(nu, n_e, theta_e, B, theta):
    """
    Polarized thermal synchrotron coefficients in the frame where the field
    lies in the e_(2)-e_(3) plane (Q > 0 along e_(1), U = 0).

    Returns:
    --------
    j : ndarray (4,)
        (j_I, j_Q, j_U, j_V)
    alpha : ndarray (4,)
        Kirchhoff absorptivities (alpha_I, alpha_Q, alpha_U, alpha_V)
    rho : ndarray (3,)
        Faraday conversion / rotation (rho_Q, rho_U, rho_V)
    """
    j = np.zeros(4)
    alpha = np.zeros(4)
    rho = np.zeros(3)
    if theta_e < THETA_E_MIN or B <= 0.0 or n_e <= 0.0:
        return j, alpha, rho

    sin_th = np.sin(theta)
    cos_th = np.cos(theta)
    x_inv = 1.0 / theta_e
    k2 = kve(2, x_inv)

    omega = 2.0 * np.pi * nu
    omega_0 = e_charge * B / (m_e * c)
    omega_p2 = 4.0 * np.pi * n_e * e_charge**2 / m_e

    # Faraday rotation survives along the field; everything else needs sin(theta) > 0
    rho[2] = omega / c * omega_p2 * omega_0 / omega**3 * kve(0, x_inv) / k2 * cos_th
    if abs(sin_th) < 1e-12:
        return j, alpha, rho

    X_e = theta_e * np.sqrt(np.sqrt(2.0) * abs(sin_th) * 1.0e3 * omega_0 / omega)
    rho[2] *= 1.0 - 0.11 * np.log(1.0 + 0.035 * X_e)
    rho[0] = (
        0.5 * omega / c * omega_p2 * omega_0**2 / omega**4
        * _faraday_rotation_factor(X_e) * (kve(1, x_inv) / k2 + 6.0 * theta_e) * sin_th**2
    )

    nu_c = 3.0 * e_charge * B * abs(sin_th) * theta_e**2 / (4.0 * np.pi * m_e * c)
    x = nu / nu_c
    x13 = x ** (1.0 / 3.0)
    x23 = x13 * x13
    damping = np.exp(-1.8899 * x13)

    I_Q = 2.5651 * (1.0 + 0.932 / x13 + 0.4998 / x23) * damping
    I_V = (1.8138 / x + 3.423 / x23 + 0.02955 / np.sqrt(x) + 2.0377 / x13) * damping

    j[0] = emission_coeff_THSYNCH(B, theta, theta_e, nu, n_e)
    j[1] = n_e * e_charge**2 * nu / (2.0 * np.sqrt(3.0) * c * theta_e**2) * I_Q
    j[3] = 2.0 * n_e * e_charge**2 * nu * cos_th / (3.0 * np.sqrt(3.0) * c * theta_e**3 * sin_th) * I_V

    b_nu = planck_function(nu, theta_e)
    if b_nu > 0.0:
        alpha[:] = j / b_nu
    return j, alpha, rho
