import numpy as np
import pytest

from kerrlight.core.config import SpacetimeConfig
from kerrlight.core.tensors import normalize_null
from kerrlight.integration.integrator import (
    RK2,
    RK4,
    GeodesicError,
    Integrator,
    Verlet,
    integrate_geodesic,
    stepsize,
)
from kerrlight.metrics.kerr_metric import KerrMetric
from kerrlight.metrics.minkowski_metric import MinkowskiMetric
from kerrlight.photon.camera import initialize_ray
from kerrlight.photon.lightpath import RayOutcome
from kerrlight.photon.photon import Photon


def _flat():
    return MinkowskiMetric(SpacetimeConfig(spin=0.0, r_cam=100.0))


def _to_cartesian(X, k):
    r, th, ph = X[1], X[2], X[3]
    pos = np.array([r * np.sin(th) * np.cos(ph), r * np.sin(th) * np.sin(ph), r * np.cos(th)])
    jac = np.array([
        [np.sin(th) * np.cos(ph), r * np.cos(th) * np.cos(ph), -r * np.sin(th) * np.sin(ph)],
        [np.sin(th) * np.sin(ph), r * np.cos(th) * np.sin(ph), r * np.sin(th) * np.cos(ph)],
        [np.cos(th), -r * np.sin(th), 0.0],
    ])
    return pos, jac @ k[1:4]


def _straight_line_error(kernel, h, total=10.0):
    metric = _flat()
    X0 = np.array([0.0, 10.0, 1.0, 0.3])
    k0 = normalize_null(metric, X0, np.array([0.0, -0.6, 0.03, 0.05]))
    state = np.concatenate([X0, k0])

    for _ in range(int(round(total / h))):
        state = kernel.step(metric.geodesic_equations, state, h)

    p0, v0 = _to_cartesian(X0, k0)
    p1, _ = _to_cartesian(state[:4], state[4:8])
    return np.linalg.norm(p1 - (p0 + v0 * total))


@pytest.mark.parametrize("kernel,min_ratio", [(RK4(), 8.0), (RK2(), 3.0), (Verlet(), 3.0)])
def test_step_kernels_converge_at_their_order(kernel, min_ratio):
    err_coarse = _straight_line_error(kernel, 0.2)
    err_fine = _straight_line_error(kernel, 0.1)
    assert err_fine < err_coarse
    assert err_coarse / err_fine > min_ratio


def test_schwarzschild_circular_photon_orbit():
    """Photon on the r = 3M light ring stays there over a quarter turn."""
    metric = KerrMetric(SpacetimeConfig(spin=0.0, chart="BL"))
    X = np.array([0.0, 3.0, 0.5 * np.pi, 0.0])
    k = np.array([1.0, 0.0, 0.0, 1.0 / (3.0 * np.sqrt(3.0))])
    state = np.concatenate([X, k])
    photon = Photon.from_state(state)
    assert photon.null_condition_relative_error(metric) < 1e-12

    h = 0.01
    kernel = RK4()
    n_steps = int((0.5 * np.pi) / (k[3] * h))
    for _ in range(n_steps):
        state = kernel.step(metric.geodesic_equations, state, h)

    assert abs(state[1] - 3.0) < 1e-6
    assert np.isclose(state[3], n_steps * h * k[3], rtol=1e-6)
    assert Photon.from_state(state).null_condition_relative_error(metric) < 1e-8


def test_stepsize_is_finite_and_positive():
    metric = KerrMetric(SpacetimeConfig(spin=0.9375, chart="KS"))
    for X, k in (
        (np.array([0.0, 1e3, 1.0, 0.0]), np.array([1.0, 1.0, 0.0, 0.0])),
        (np.array([0.0, 2.0, 1e-8, 0.0]), np.array([1.0, -0.5, 0.3, 0.0])),
        (np.array([0.0, 5.0, 1.0, 0.0]), np.zeros(4)),
    ):
        dl = stepsize(metric, X, k)
        assert np.isfinite(dl) and dl > 0.0
    # steps grow with radius for a radial ray
    assert stepsize(metric, np.array([0.0, 100.0, 1.0, 0.0]), np.array([1.0, 1.0, 0.0, 0.0])) > stepsize(
        metric, np.array([0.0, 10.0, 1.0, 0.0]), np.array([1.0, 1.0, 0.0, 0.0])
    )


def test_unknown_integrator_rejected():
    with pytest.raises(ValueError, match="not supported"):
        Integrator(_flat(), integrator="euler")


def _kerr(r_cam=1.0e3):
    return KerrMetric(SpacetimeConfig(spin=0.9375, chart="KS", r_cam=r_cam))


def test_central_ray_is_absorbed():
    metric = _kerr()
    path, photon = integrate_geodesic(0.0, 0.0, metric)
    assert path.outcome is RayOutcome.ABSORBED
    assert metric.radius(photon.x) <= metric.config.r_inner
    assert path.steps == len(path) - 1


def test_wide_ray_escapes():
    metric = _kerr()
    path, photon = integrate_geodesic(30.0, 5.0, metric)
    assert path.outcome is RayOutcome.ESCAPED
    assert metric.radius(photon.x) >= metric.config.r_outer
    # passed through the strong-field region on the way
    assert path.positions[:, 1].min() < 40.0


def test_step_limit():
    metric = _kerr()
    path, _ = integrate_geodesic(0.0, 0.0, metric, max_steps=5)
    assert path.outcome is RayOutcome.STEP_LIMIT
    assert path.steps == 5
    assert len(path) == 6


def test_lightpath_records_steps():
    metric = _kerr()
    path, _ = integrate_geodesic(5.0, 2.0, metric)
    dls = path.dlambdas
    assert dls[-1] == 0.0
    assert np.all(dls[:-1] > 0.0)
    # first entry is the camera
    assert np.isclose(metric.radius(path.positions[0]), metric.config.r_cam)
    # backward tracing: coordinate time decreases away from the camera
    assert path.positions[-1, 0] < path.positions[0, 0]


@pytest.mark.parametrize("name", ["rk4", "rk2", "verlet"])
def test_null_condition_preserved(name):
    metric = _kerr()
    photon = initialize_ray(metric, 15.0, 3.0)
    path = Integrator(metric, integrator=name, step_scale=0.01).integrate_geodesic(photon)
    assert path.outcome in (RayOutcome.ABSORBED, RayOutcome.ESCAPED)
    assert photon.null_condition_relative_error(metric) < 5e-3


def test_renormalization_keeps_ray_null():
    metric = _kerr()
    photon = initialize_ray(metric, 6.0, 3.0)
    Integrator(metric, integrator="rk2", renormalize_every=1).integrate_geodesic(photon)
    assert photon.null_condition_relative_error(metric) < 1e-12


def test_polarization_basis_is_transported():
    metric = _kerr()
    path, photon = integrate_geodesic(12.0, -3.0, metric, polarized=True)
    assert photon.polarized
    pol = path.polarization
    assert pol.shape == (len(path), 2, 4)

    # parallel transport keeps (f_x, f_y) orthonormal and transverse to k
    X, k = photon.x, photon.k
    g = metric.metric_dd(X)
    f_x, f_y = photon.f_x, photon.f_y
    assert np.isclose(f_x @ g @ f_x, 1.0, atol=1e-4)
    assert np.isclose(f_y @ g @ f_y, 1.0, atol=1e-4)
    assert abs(f_x @ g @ f_y) < 1e-4
    assert abs(f_x @ g @ k) < 1e-4 * np.max(np.abs(k))


class _BrokenMetric(MinkowskiMetric):
    def connection_udd(self, X_u):
        return np.full((4, 4, 4), np.nan)


def test_non_finite_step_raises_geodesic_error():
    metric = _BrokenMetric(SpacetimeConfig(spin=0.0, r_cam=100.0))
    with pytest.raises(GeodesicError):
        integrate_geodesic(1.0, 1.0, metric, max_halvings=2)


def _ergoregion_states(metric, path):
    # g_tt > 0: both roots of the null condition are future-directed there
    return [s for s in path.states if metric.metric_dd(s[:4])[0, 0] > 0.0]


def test_renormalization_keeps_ergoregion_root():
    metric = _kerr()
    path, _ = integrate_geodesic(2.0, 1.0, metric)
    inside = _ergoregion_states(metric, path)
    assert len(inside) > 0

    for state in inside:
        X, k = state[:4], state[4:8]
        renorm = normalize_null(metric, X, k, reference=k[0])
        assert np.isclose(renorm[0], k[0], rtol=1e-2)
        assert np.array_equal(renorm[1:], k[1:])


def test_renormalized_ray_through_ergoregion_matches_plain_ray():
    metric = _kerr()
    plain, _ = integrate_geodesic(2.0, 1.0, metric)
    renorm, _ = integrate_geodesic(2.0, 1.0, metric, renormalize_every=1)

    assert plain.outcome is RayOutcome.ABSORBED
    assert renorm.outcome is RayOutcome.ABSORBED
    assert len(_ergoregion_states(metric, renorm)) > 0
    assert abs(len(renorm) - len(plain)) <= 0.01 * len(plain) + 2

    end_plain, end_renorm = plain.states[-1], renorm.states[-1]
    assert metric.config.r_horizon < end_renorm[1] <= metric.config.r_inner
    assert np.isclose(end_renorm[1], end_plain[1], atol=1e-2)
    assert np.isclose(end_renorm[3], end_plain[3], atol=5e-2)
