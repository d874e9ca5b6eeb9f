import numpy as np

from kerrlight.core.tensors import normalize_null
from kerrlight.photon.lightpath import Lightpath, RayOutcome

# Rays are traced from the camera back toward the source: the wave-vector is
# the physical (future-directed) photon momentum and the affine parameter
# decreases along the integration.
BACKWARD = -1.0

SMALL = 1e-40
DL_MIN = 1e-12
DL_MAX = 1e12


class GeodesicError(ArithmeticError):
    """A geodesic step stayed non-finite after local step refinement."""


###############################################################
#  VARIOUS INTEGRATORS
###############################################################
# All kernels share step(rhs, state, dl) -> new_state, where rhs(state)
# returns d(state)/dλ. The first four components are positions whose
# derivative is state[4:8]; everything after is velocity-like.

class RK4:
    def step(self, rhs, state, dl):
        k1 = rhs(state)
        k2 = rhs(state + 0.5 * dl * k1)
        k3 = rhs(state + 0.5 * dl * k2)
        k4 = rhs(state + dl * k3)
        return state + (dl / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


class RK2:
    """Midpoint Runge-Kutta."""

    def step(self, rhs, state, dl):
        k1 = rhs(state)
        return state + dl * rhs(state + 0.5 * dl * k1)


class Verlet:
    """
    Velocity Verlet with a predicted velocity for the second force evaluation
    (the geodesic acceleration depends on k as well as on x).
    """

    def step(self, rhs, state, dl):
        f0 = rhs(state)

        new_state = state.copy()
        new_state[:4] = state[:4] + dl * state[4:8] + 0.5 * dl * dl * f0[4:8]

        predicted = new_state.copy()
        predicted[4:] = state[4:] + dl * f0[4:]
        f1 = rhs(predicted)

        new_state[4:] = state[4:] + 0.5 * dl * (f0[4:] + f1[4:])
        return new_state


def f_geodesic(metric, state):
    """Right-hand side of the geodesic (and parallel-transport) equations."""
    return metric.geodesic_equations(state)


def stepsize(metric, X_u, k_u, step_scale=0.03):
    """
    Adaptive affine step magnitude (always finite and positive).

    Harmonic combination of the affine lengths that change r by a fraction
    step_scale, θ by step_scale times the distance to the nearest pole, and φ by
    step_scale radians. Steps shrink near the hole and the axis and grow ∝ r far
    away.
    """
    r = metric.radius(X_u)
    theta = metric.polar_angle(X_u)
    dr, dtheta = metric.coordinate_rates(X_u, k_u)

    dlx1 = step_scale * r / (abs(dr) + SMALL)
    dlx2 = step_scale * min(theta, np.pi - theta) / (abs(dtheta) + SMALL)
    dlx3 = step_scale / (abs(k_u[3]) + SMALL)

    idl = 1.0 / (abs(dlx1) + SMALL) + 1.0 / (abs(dlx2) + SMALL) + 1.0 / (abs(dlx3) + SMALL)
    dl = 1.0 / idl
    if not np.isfinite(dl):
        return DL_MIN
    return float(np.clip(dl, DL_MIN, DL_MAX))


###############################################################
#  INTEGRATOR WITH TERMINATION TRICHOTOMY
###############################################################
class Integrator:

    INTEGRATORS = {"rk4": RK4, "rk2": RK2, "verlet": Verlet}

    def __init__(
        self,
        metric,
        integrator="rk4",
        step_scale=0.03,
        max_steps=10000,
        renormalize_every=0,
        max_halvings=8,
    ):
        self.metric = metric
        self.step_scale = float(step_scale)
        self.max_steps = int(max_steps)
        self.renormalize_every = int(renormalize_every)
        self.max_halvings = int(max_halvings)

        if integrator.lower() not in self.INTEGRATORS:
            raise ValueError(f"Integrator '{integrator}' not supported. Available: {list(self.INTEGRATORS.keys())}")
        if self.step_scale <= 0:
            raise ValueError("step_scale must be > 0")
        if self.max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        if self.renormalize_every < 0:
            raise ValueError("renormalize_every must be >= 0")

        self.integrator_name = integrator.lower()
        self.integrator = self.INTEGRATORS[self.integrator_name]()

    def _rhs(self, state):
        return f_geodesic(self.metric, state)

    def _advance(self, state, dl):
        for _ in range(self.max_halvings + 1):
            new_state = self.integrator.step(self._rhs, state, BACKWARD * dl)
            if np.all(np.isfinite(new_state)):
                return new_state, dl
            dl *= 0.5
        raise GeodesicError(
            f"non-finite geodesic step at X={state[:4]} after {self.max_halvings} step halvings"
        )

    def integrate_geodesic(self, photon):
        """
        Trace ``photon`` backward until it is absorbed, escapes, or runs out of steps.

        The photon's state is advanced in place; every visited state is
        recorded in the returned Lightpath together with the step length.

        Returns:
        --------
        Lightpath
            with ``outcome`` set to one RayOutcome
        """
        config = self.metric.config
        state = np.array(photon.state, dtype=float)
        path = Lightpath()
        steps = 0

        while True:
            r = self.metric.radius(state[:4])
            if r <= config.r_inner:
                outcome = RayOutcome.ABSORBED
                break
            if r >= config.r_outer:
                outcome = RayOutcome.ESCAPED
                break
            if steps >= self.max_steps:
                outcome = RayOutcome.STEP_LIMIT
                break

            dl = stepsize(self.metric, state[:4], state[4:8], self.step_scale)
            new_state, dl = self._advance(state, dl)
            path.append(state, dl)
            state = new_state
            steps += 1

            # Optional projection back onto the null cone to control drift
            if self.renormalize_every and steps % self.renormalize_every == 0:
                state[4:8] = normalize_null(self.metric, state[:4], state[4:8], reference=state[4])

        path.append(state, 0.0)
        path.outcome = outcome
        photon.state = state
        return path


def integrate_geodesic(alpha, beta, metric, integrator="rk4", polarized=False, t_init=None, **kwargs):
    """
    Initialise the ray through image-plane point (alpha, beta) and trace it.

    Returns:
    --------
    (Lightpath, Photon)
        the recorded path and the photon in its final state
    """
    from kerrlight.photon.camera import initialize_ray

    photon = initialize_ray(metric, alpha, beta, polarized=polarized, t_init=t_init)
    path = Integrator(metric, integrator=integrator, **kwargs).integrate_geodesic(photon)
    return path, photon
