import importlib

import numpy as np
import pytest

from kerrlight.core.config import SpacetimeConfig
from kerrlight.integration.integrator import integrate_geodesic
from kerrlight.metrics.kerr_metric import KerrMetric
from kerrlight.metrics.minkowski_metric import MinkowskiMetric
from kerrlight.plasma.plasma_model import OUT_OF_VOLUME, KeplerianDisk, PlasmaModel, PlasmaSample, UniformSlab
from kerrlight.radiation.emission import emission_coeff_THSYNCHAV, absorption_coeff_TH, thermal_polarized_coefficients
from kerrlight.radiation.emission_models import (
    EmissionModel,
    ThermalSynchrotron,
    ThermalSynchrotronAveraged,
)
from kerrlight.radiation.transfer import (
    backward_transfer,
    mueller_matrix,
    radiative_transfer,
    radiative_transfer_polarized,
    rotate_stokes,
    stokes_propagate,
)

NU = 230.0e9
N_E = 1.0e6
THETA_E = 10.0
B = 10.0
R_SLAB = 50.0


def _flat():
    return MinkowskiMetric(SpacetimeConfig(spin=0.0, r_cam=100.0))


def _in_slab_length(path, r_max=R_SLAB, r_min=0.0):
    r = path.positions[:, 1]
    dls = path.dlambdas
    mask = (r >= r_min) & (r < r_max) & (dls > 0.0)
    return dls[mask].sum()


def test_uniform_slab_closed_form():
    """Static uniform slab in flat space: I = S (1 - exp(-alpha L))."""
    metric = _flat()
    plasma = UniformSlab(metric, N_E, THETA_E, B, r_max=R_SLAB)
    emission = ThermalSynchrotronAveraged()
    path, _ = integrate_geodesic(0.0, 0.0, metric)

    length = _in_slab_length(path) * metric.config.L_unit
    j = emission_coeff_THSYNCHAV(B, THETA_E, NU, N_E)
    a = absorption_coeff_TH(j, NU, THETA_E)
    expected = j / a * -np.expm1(-a * length)

    intensity = radiative_transfer(path, NU, metric, plasma, emission)
    assert expected > 0.0
    assert np.isclose(intensity, expected, rtol=1e-7)


def test_optically_thin_slab_is_emission_times_length():
    metric = _flat()
    plasma = UniformSlab(metric, N_E, THETA_E, B, r_max=R_SLAB)
    path, _ = integrate_geodesic(0.0, 0.0, metric)
    length = _in_slab_length(path) * metric.config.L_unit
    j = emission_coeff_THSYNCHAV(B, THETA_E, NU, N_E)

    intensity = radiative_transfer(path, NU, metric, plasma, ThermalSynchrotronAveraged(absorption=False))
    assert np.isclose(intensity, j * length, rtol=1e-10)


def test_polarized_matches_scalar_for_unpolarized_emission():
    metric = _flat()
    plasma = UniformSlab(metric, N_E, THETA_E, B, r_max=R_SLAB)
    emission = ThermalSynchrotronAveraged()
    path, _ = integrate_geodesic(0.0, 0.0, metric, polarized=True)

    scalar = radiative_transfer(path, NU, metric, plasma, emission)
    stokes = radiative_transfer_polarized(path, NU, metric, plasma, emission)
    assert np.isclose(stokes[0], scalar, rtol=1e-12)
    assert np.all(stokes[1:] == 0.0)


def test_polarized_slab_closed_form():
    """
    Field perpendicular to the ray: U and V stay zero, and I + Q, I - Q each
    follow the scalar solution with absorption alpha_I +/- alpha_Q.
    """
    metric = _flat()
    plasma = UniformSlab(metric, N_E, THETA_E, B, r_max=R_SLAB)
    emission = ThermalSynchrotron()
    path, _ = integrate_geodesic(0.0, 0.0, metric, polarized=True)

    length = _in_slab_length(path) * metric.config.L_unit
    j, alpha, _ = thermal_polarized_coefficients(NU, N_E, THETA_E, B, 0.5 * np.pi)
    plus = (j[0] + j[1]) / (alpha[0] + alpha[1]) * -np.expm1(-(alpha[0] + alpha[1]) * length)
    minus = (j[0] - j[1]) / (alpha[0] - alpha[1]) * -np.expm1(-(alpha[0] - alpha[1]) * length)

    I, Q, U, V = radiative_transfer_polarized(path, NU, metric, plasma, emission)
    assert np.isclose(I + Q, plus, rtol=1e-7)
    assert np.isclose(I - Q, minus, rtol=1e-7)
    assert Q > 0.0
    assert abs(U) < 1e-8 * I
    assert abs(V) < 1e-8 * I

    # dichroism makes the polarized I differ from the scalar one
    scalar = radiative_transfer(path, NU, metric, plasma, emission)
    assert np.isclose(scalar, j[0] / alpha[0] * -np.expm1(-alpha[0] * length), rtol=1e-7)


def test_polarized_transfer_requires_basis():
    metric = _flat()
    plasma = UniformSlab(metric, N_E, THETA_E, B, r_max=R_SLAB)
    path, _ = integrate_geodesic(0.0, 0.0, metric)
    with pytest.raises(ValueError):
        radiative_transfer_polarized(path, NU, metric, plasma, ThermalSynchrotron())


class _Shells(PlasmaModel):
    """Emitting shell at 30 <= r < 40, absorbing shell at 50 <= r < 60 (flags in n_e)."""

    def __init__(self, metric):
        self.metric = metric

    def sample(self, X_u):
        r = self.metric.radius(X_u)
        U = np.array([1.0, 0.0, 0.0, 0.0])
        if 30.0 <= r < 40.0:
            return PlasmaSample(1.0, 1.0, 0.0, np.zeros(4), U)
        if 50.0 <= r < 60.0:
            return PlasmaSample(2.0, 1.0, 0.0, np.zeros(4), U)
        return OUT_OF_VOLUME


class _ShellEmission(EmissionModel):
    def __init__(self, j0, a0):
        self.j0 = j0
        self.a0 = a0

    def coefficients(self, nu, sample, pitch, X_u):
        if sample.n_e == 1.0:
            return self.j0, 0.0
        return 0.0, self.a0


def test_emission_behind_absorber_is_attenuated():
    """The camera sees the far emitter through the near absorber, not the reverse."""
    metric = _flat()
    L = metric.config.L_unit
    path, _ = integrate_geodesic(0.0, 0.0, metric)
    emit_len = _in_slab_length(path, 40.0, 30.0) * L
    abs_len = _in_slab_length(path, 60.0, 50.0) * L

    j0 = 1.0e-20
    a0 = 0.1 / L
    intensity = radiative_transfer(path, NU, metric, _Shells(metric), _ShellEmission(j0, a0))
    assert np.isclose(intensity, j0 * emit_len * np.exp(-a0 * abs_len), rtol=1e-9)
    assert intensity < 0.5 * j0 * emit_len


class _NanEmission(EmissionModel):
    def coefficients(self, nu, sample, pitch, X_u):
        return np.nan, 1.0e-20


def test_non_finite_transfer_gives_zero_sentinel():
    metric = _flat()
    plasma = UniformSlab(metric, N_E, THETA_E, B, r_max=R_SLAB)
    path, _ = integrate_geodesic(0.0, 0.0, metric, polarized=True)
    with pytest.warns(RuntimeWarning):
        assert radiative_transfer(path, NU, metric, plasma, _NanEmission()) == 0.0
    with pytest.warns(RuntimeWarning):
        assert np.all(radiative_transfer_polarized(path, NU, metric, plasma, _NanEmission()) == 0.0)


def test_backward_transfer_returns_steps():
    metric = _flat()
    plasma = UniformSlab(metric, N_E, THETA_E, B, r_max=R_SLAB)
    emission = ThermalSynchrotronAveraged()
    intensity, steps = backward_transfer(0.0, 0.0, NU, metric, plasma, emission)
    path, _ = integrate_geodesic(0.0, 0.0, metric)
    assert steps == path.steps
    assert np.isclose(intensity, radiative_transfer(path, NU, metric, plasma, emission))

    stokes, _ = backward_transfer(0.0, 0.0, NU, metric, plasma, emission, polarized=True)
    assert stokes.shape == (4,)
    assert np.isclose(stokes[0], intensity)


def test_ray_missing_the_flow_is_dark():
    metric = KerrMetric(SpacetimeConfig(spin=0.9375, chart="KS", r_cam=1.0e3))
    plasma = KeplerianDisk(metric, r_max=50.0)
    intensity, steps = backward_transfer(80.0, 0.0, NU, metric, plasma, ThermalSynchrotron())
    assert intensity == 0.0
    assert steps > 0


def test_kerr_disk_image_pixel_is_positive_and_polarized():
    metric = KerrMetric(SpacetimeConfig(spin=0.9375, chart="KS", r_cam=1.0e3))
    plasma = KeplerianDisk(metric)
    stokes, _ = backward_transfer(6.0, 2.0, NU, metric, plasma, ThermalSynchrotron(), polarized=True)
    assert np.all(np.isfinite(stokes))
    assert stokes[0] > 0.0
    assert np.hypot(stokes[1], stokes[2]) > 0.0


def test_mueller_propagator_limits():
    S = np.array([1.0, 0.2, -0.1, 0.05])
    j = np.zeros(4)
    # pure absorption
    out = stokes_propagate(S, j, np.array([0.5, 0.0, 0.0, 0.0]), np.zeros(3), 2.0)
    assert np.allclose(out, S * np.exp(-1.0))
    # Faraday rotation by rho_V rotates Q into U and conserves linear polarization
    out = stokes_propagate(S, j, np.zeros(4), np.array([0.0, 0.0, 0.3]), 1.0)
    assert np.isclose(out[0], S[0]) and np.isclose(out[3], S[3])
    assert np.isclose(np.hypot(out[1], out[2]), np.hypot(S[1], S[2]))
    # no coupling at all: pure emission
    out = stokes_propagate(S, np.array([1.0, 0.5, 0.0, 0.0]), np.zeros(4), np.zeros(3), 0.1)
    assert np.allclose(out, S + 0.1 * np.array([1.0, 0.5, 0.0, 0.0]))

    K = mueller_matrix([1.0, 0.1, 0.2, 0.3], [0.4, 0.5, 0.6])
    assert np.allclose(np.diag(K), 1.0)


def test_rotate_stokes():
    S = np.array([1.0, 0.3, 0.0, 0.1])
    assert np.allclose(rotate_stokes(S, 0.5 * np.pi), [1.0, -0.3, 0.0, 0.1])
    assert np.allclose(rotate_stokes(rotate_stokes(S, 0.7), -0.7), S)


class _RadialFieldSlab(UniformSlab):
    """Uniform slab whose field points along the radial ray, leaving no transverse direction."""

    def sample(self, X_u):
        sample = super().sample(X_u)
        if not sample.in_volume:
            return sample
        g = self.metric.metric_dd(X_u)
        b_u = np.array([0.0, self.b_field / np.sqrt(g[1, 1]), 0.0, 0.0])
        return PlasmaSample(sample.n_e, sample.theta_e, sample.b_field, b_u, sample.u_u)


class _LinearEmission(EmissionModel):
    J_I = 1.0e-20

    def coefficients(self, nu, sample, pitch, X_u):
        return self.J_I, 0.0

    def polarized_coefficients(self, nu, sample, pitch, X_u):
        return np.array([self.J_I, 0.5 * self.J_I, 0.0, 0.0]), np.zeros(4), np.zeros(3)


def test_degenerate_plasma_tetrad_warns_and_falls_back():
    metric = _flat()
    plasma = _RadialFieldSlab(metric, N_E, THETA_E, B, r_max=R_SLAB)
    path, _ = integrate_geodesic(0.0, 0.0, metric, polarized=True)
    length = _in_slab_length(path) * metric.config.L_unit

    with pytest.warns(RuntimeWarning, match="degenerate"):
        I, Q, U, V = radiative_transfer_polarized(path, NU, metric, plasma, _LinearEmission())

    assert np.isclose(I, _LinearEmission.J_I * length, rtol=1e-10)
    assert np.isclose(np.hypot(Q, U), 0.5 * I, rtol=1e-10)
    assert V == 0.0


def test_check_tetrads_is_forwarded(monkeypatch):
    transfer = importlib.import_module("kerrlight.radiation.transfer")
    calls = []

    def _check(metric, X_u, tetrad_u, *args, **kwargs):
        calls.append(X_u)
        return True

    monkeypatch.setattr(transfer, "check_tetrad_identities", _check)
    metric = _flat()
    plasma = UniformSlab(metric, N_E, THETA_E, B, r_max=R_SLAB)
    emission = ThermalSynchrotron()

    unchecked, _ = backward_transfer(0.0, 0.0, NU, metric, plasma, emission, polarized=True)
    assert calls == []

    checked, _ = backward_transfer(0.0, 0.0, NU, metric, plasma, emission, polarized=True, check_tetrads=True)
    assert len(calls) > 0
    assert np.allclose(checked, unchecked, rtol=1e-12, atol=0.0)
