"""
Emission models: named bundles of coefficient functions.

A model turns the local plasma state into coefficients at the plasma-frame
frequency. ``coefficients`` gives the scalar pair (j_nu, a_nu);
``polarized_coefficients`` gives (j, alpha, rho) Stokes arrays expressed in the
plasma tetrad whose e_(2) follows the projected magnetic field.
"""

from abc import ABC, abstractmethod

import numpy as np

from kerrlight.core.constants import k_B, m_e_c2
from kerrlight.metrics.kerr_metric import r_isco
from . import emission


class EmissionModel(ABC):

    @abstractmethod
    def coefficients(self, nu, sample, pitch, X_u):
        """
        Parameters:
        -----------
        nu : float
            Plasma-frame frequency [Hz]
        sample : PlasmaSample
            Local plasma state
        pitch : float
            Angle between the photon and the field in the plasma frame
        X_u : ndarray (4,)
            Position (used by the geometric toy models)

        Returns:
        --------
        (j_nu, a_nu) : tuple of float
            Emission [erg s^-1 cm^-3 Hz^-1 sr^-1] and absorption [cm^-1]
        """

    def polarized_coefficients(self, nu, sample, pitch, X_u):
        """Unpolarized default: only the I components are populated."""
        j_nu, a_nu = self.coefficients(nu, sample, pitch, X_u)
        return np.array([j_nu, 0.0, 0.0, 0.0]), np.array([a_nu, 0.0, 0.0, 0.0]), np.zeros(3)


class ThermalSynchrotron(EmissionModel):
    """Thermal synchrotron at the local pitch angle; polarized via the Dexter (2016) fits."""

    def __init__(self, absorption=True):
        self.absorption = absorption

    def coefficients(self, nu, sample, pitch, X_u):
        j_nu = emission.emission_coeff_THSYNCH(sample.b_field, pitch, sample.theta_e, nu, sample.n_e)
        a_nu = emission.absorption_coeff_TH(j_nu, nu, sample.theta_e) if self.absorption else 0.0
        return j_nu, a_nu

    def polarized_coefficients(self, nu, sample, pitch, X_u):
        j, alpha, rho = emission.thermal_polarized_coefficients(
            nu, sample.n_e, sample.theta_e, sample.b_field, pitch
        )
        if not self.absorption:
            alpha[:] = 0.0
        return j, alpha, rho


class ThermalSynchrotronAveraged(EmissionModel):
    """Angle-averaged thermal synchrotron (isotropic, unpolarized)."""

    def __init__(self, absorption=True):
        self.absorption = absorption

    def coefficients(self, nu, sample, pitch, X_u):
        j_nu = emission.emission_coeff_THSYNCHAV(sample.b_field, sample.theta_e, nu, sample.n_e)
        a_nu = emission.absorption_coeff_TH(j_nu, nu, sample.theta_e) if self.absorption else 0.0
        return j_nu, a_nu


class KappaSynchrotron(EmissionModel):

    def __init__(self, kappa=3.5, absorption=True):
        if not kappa > 3.0:
            raise ValueError(f"kappa must exceed 3 for a finite mean energy, got {kappa}")
        self.kappa = float(kappa)
        self.absorption = absorption

    def coefficients(self, nu, sample, pitch, X_u):
        args = (nu, sample.n_e, sample.theta_e, sample.b_field, pitch, self.kappa)
        j_nu = emission.emission_coeff_kappa_FIT(*args)
        a_nu = emission.absorption_coeff_kappa_FIT(*args) if self.absorption else 0.0
        return j_nu, a_nu


class ThermalFreeFree(EmissionModel):

    def coefficients(self, nu, sample, pitch, X_u):
        T = sample.theta_e * m_e_c2 / k_B
        j_nu = emission.emission_coeff_FFTHERMAL(nu, sample.n_e, T)
        return j_nu, emission.absorption_coeff_TH(j_nu, nu, sample.theta_e)


class HotspotEmission(EmissionModel):
    """
    Optically thin orbiting hotspot. The plasma model only supplies the fluid
    velocity (and the volume); the emissivity is purely geometric.
    """

    def __init__(self, metric, r_spot=6.0, R_spot=0.5, phi0=0.0, amplitude=1.0):
        self.metric = metric
        self.a = float(getattr(metric, "a", 0.0))
        self.r_spot = float(r_spot)
        self.R_spot = float(R_spot)
        self.phi0 = float(phi0)
        self.amplitude = float(amplitude)

    def coefficients(self, nu, sample, pitch, X_u):
        r = self.metric.radius(X_u)
        theta = self.metric.polar_angle(X_u)
        j_nu = emission.emissivity_hotspot(
            X_u[0], r, theta, X_u[3], self.a, self.r_spot, self.R_spot, self.phi0
        )
        return self.amplitude * j_nu, 0.0


class ThinDiskEmission(EmissionModel):
    """Optically thin r^-q line emission from a thin equatorial layer starting at the ISCO."""

    def __init__(self, metric, r_in=None, r_out=20.0, q=2.0, h_disk=0.02, amplitude=1.0):
        self.metric = metric
        self.r_in = float(r_isco(getattr(metric, "a", 0.0))) if r_in is None else float(r_in)
        self.r_out = float(r_out)
        self.q = float(q)
        self.h_disk = float(h_disk)
        self.amplitude = float(amplitude)

    def coefficients(self, nu, sample, pitch, X_u):
        r = self.metric.radius(X_u)
        theta = self.metric.polar_angle(X_u)
        j_nu = emission.emissivity_thindisk(r, theta, self.r_in, self.r_out, self.q, self.h_disk)
        return self.amplitude * j_nu, 0.0


EMISSION_MODELS = {
    "thermal": ThermalSynchrotron,
    "thermal_av": ThermalSynchrotronAveraged,
    "kappa": KappaSynchrotron,
    "freefree": ThermalFreeFree,
    "hotspot": HotspotEmission,
    "thindisk": ThinDiskEmission,
}
