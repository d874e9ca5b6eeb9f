"""
Orthonormal plasma-frame tetrads.

Rows of ``tetrad_u`` are the frame vectors e_(a)^μ:

    e_(0)  the reference four-velocity U (timelike)
    e_(1)  completes a right-handed spatial triad
    e_(2)  the reference ("north") direction, transverse to the photon
    e_(3)  the photon propagation direction as seen by U

so that the polarization of a photon with wave-vector k is decomposed on
e_(1), e_(2). ``tetrad_d`` holds the dual co-frame e^(a)_μ = η_ab g_μν e_(b)^ν.

The identity checks are diagnostics: a violation means an ill-conditioned
frame (e.g. a reference direction nearly parallel to k), reported through a
RuntimeWarning, never silently ignored.
"""

import warnings

import numpy as np

ETA = np.diag([-1.0, 1.0, 1.0, 1.0])

# Identities are checked to this absolute tolerance
TETRAD_TOLERANCE = 1e-8

# Squared norm (relative to the input) below which a projected direction is degenerate
DEGENERACY_TOLERANCE = 1e-12


class TetradDegenerateError(ArithmeticError):
    """The reference direction has no component transverse to the photon."""


def determ(matrix):
    """Determinant of a square matrix."""
    return float(np.linalg.det(np.asarray(matrix, dtype=float)))


def _project_out(g, v, e, e_norm):
    # v - (v.e)/(e.e) e, with e.e = e_norm (+1 or -1 for unit vectors)
    return v - (v @ g @ e) / e_norm * e


def _unit(g, v):
    return v / np.sqrt(abs(v @ g @ v))


def _orthonormal_frame(g, U_u, k_u, ref_u):
    e0 = _unit(g, np.asarray(U_u, dtype=float))

    e3 = _project_out(g, np.asarray(k_u, dtype=float), e0, -1.0)
    e3_norm = e3 @ g @ e3
    if not e3_norm > 0.0:
        raise TetradDegenerateError("photon wave-vector has no spatial part in the reference frame")
    e3 = e3 / np.sqrt(e3_norm)

    ref = _project_out(g, np.asarray(ref_u, dtype=float), e0, -1.0)
    scale = abs(ref @ g @ ref)
    e2 = _project_out(g, ref, e3, 1.0)
    e2_norm = e2 @ g @ e2
    if scale == 0.0 or e2_norm <= DEGENERACY_TOLERANCE * scale:
        raise TetradDegenerateError("reference direction is (nearly) parallel to the photon direction")
    e2 = e2 / np.sqrt(e2_norm)

    # Remaining direction: the coordinate basis vector with the largest
    # component orthogonal to e0, e2, e3
    best, best_norm = None, 0.0
    for mu in range(4):
        trial = np.zeros(4)
        trial[mu] = 1.0
        trial = _project_out(g, trial, e0, -1.0)
        trial = _project_out(g, trial, e2, 1.0)
        trial = _project_out(g, trial, e3, 1.0)
        norm = trial @ g @ trial
        if norm > best_norm:
            best, best_norm = trial, norm
    e1 = best / np.sqrt(best_norm)

    tetrad_u = np.array([e0, e1, e2, e3])
    if determ(tetrad_u) < 0.0:
        tetrad_u[1] *= -1.0
    return tetrad_u


def create_observer_tetrad(metric, X_u, k_u, U_u, b_u):
    """
    Tetrad of the observer U with e_(3) along k and e_(2) along the part of
    b_u transverse to k (e.g. the magnetic field, or the projected spin axis
    at the camera). Raises TetradDegenerateError if b_u is parallel to k.
    """
    g = metric.metric_dd(X_u)
    return _orthonormal_frame(g, U_u, k_u, b_u)


def create_tetrad(metric, X_u, k_u, U_u):
    """
    Tetrad of the observer U with e_(3) along k and a default transverse basis.

    The reference direction is -∂_θ (local "north"); when the photon travels
    along it, the other coordinate directions are tried in turn.
    """
    g = metric.metric_dd(X_u)
    for mu, sign in ((2, -1.0), (3, 1.0), (1, 1.0)):
        ref = np.zeros(4)
        ref[mu] = sign
        try:
            return _orthonormal_frame(g, U_u, k_u, ref)
        except TetradDegenerateError:
            continue
    raise TetradDegenerateError("no coordinate direction is transverse to the photon")


def create_tetrad_d(metric, X_u, tetrad_u):
    """Dual co-frame e^(a)_μ = η_ab g_μν e_(b)^ν."""
    g = metric.metric_dd(X_u)
    return ETA @ (np.asarray(tetrad_u) @ g)


def tetrad_identity_eta(metric, X_u, tetrad_u, a, b):
    """g_μν e_(a)^μ e_(b)^ν; should equal η_ab."""
    g = metric.metric_dd(X_u)
    return float(tetrad_u[a] @ g @ tetrad_u[b])


def tetrad_identity_g(tetrad_u, mu, nu):
    """Σ_ab η^ab e_(a)^μ e_(b)^ν; should equal g^μν (completeness)."""
    return float(tetrad_u[:, mu] @ ETA @ tetrad_u[:, nu])


def tetrad_identity_sum_latin(tetrad_u, tetrad_d, mu, nu):
    """Σ_a e_(a)^μ e^(a)_ν; should equal δ^μ_ν."""
    return float(np.dot(tetrad_u[:, mu], tetrad_d[:, nu]))


def tetrad_identity_sum_greek(tetrad_u, tetrad_d, a, b):
    """Σ_μ e^(a)_μ e_(b)^μ; should equal δ^a_b."""
    return float(np.dot(tetrad_d[a], tetrad_u[b]))


def check_tetrad_compact(metric, X_u, tetrad_u):
    """
    Largest deviation over all four identity families.

    The completeness relation is compared with g^μν relative to its scale,
    the other identities in absolute terms.
    """
    tetrad_u = np.asarray(tetrad_u, dtype=float)
    tetrad_d = create_tetrad_d(metric, X_u, tetrad_u)
    g_uu = metric.metric_uu(X_u)
    g_scale = max(1.0, float(np.max(np.abs(g_uu))))

    deviation = 0.0
    for i in range(4):
        for j in range(4):
            delta = 1.0 if i == j else 0.0
            deviation = max(
                deviation,
                abs(tetrad_identity_eta(metric, X_u, tetrad_u, i, j) - ETA[i, j]),
                abs(tetrad_identity_g(tetrad_u, i, j) - g_uu[i, j]) / g_scale,
                abs(tetrad_identity_sum_latin(tetrad_u, tetrad_d, i, j) - delta),
                abs(tetrad_identity_sum_greek(tetrad_u, tetrad_d, i, j) - delta),
            )
    return deviation


def check_tetrad_identities(metric, X_u, tetrad_u, tolerance=TETRAD_TOLERANCE):
    """
    Check every tetrad identity; warn about each violated family.

    Returns:
    --------
    bool
        True when all identities hold within ``tolerance``
    """
    tetrad_u = np.asarray(tetrad_u, dtype=float)
    tetrad_d = create_tetrad_d(metric, X_u, tetrad_u)
    g_uu = metric.metric_uu(X_u)
    g_scale = max(1.0, float(np.max(np.abs(g_uu))))

    errors = {"eta": 0.0, "g": 0.0, "sum_latin": 0.0, "sum_greek": 0.0}
    for i in range(4):
        for j in range(4):
            delta = 1.0 if i == j else 0.0
            errors["eta"] = max(errors["eta"], abs(tetrad_identity_eta(metric, X_u, tetrad_u, i, j) - ETA[i, j]))
            errors["g"] = max(errors["g"], abs(tetrad_identity_g(tetrad_u, i, j) - g_uu[i, j]) / g_scale)
            errors["sum_latin"] = max(
                errors["sum_latin"], abs(tetrad_identity_sum_latin(tetrad_u, tetrad_d, i, j) - delta)
            )
            errors["sum_greek"] = max(
                errors["sum_greek"], abs(tetrad_identity_sum_greek(tetrad_u, tetrad_d, i, j) - delta)
            )

    ok = True
    for name, err in errors.items():
        if err > tolerance:
            ok = False
            warnings.warn(
                f"Tetrad identity '{name}' violated at X={np.asarray(X_u)}: deviation {err:.3e} > {tolerance:.1e}",
                RuntimeWarning,
            )
    return ok
