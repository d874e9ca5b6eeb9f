"""
Tensor algebra on 4-vectors at a spacetime point.

All functions are pure: they take the metric object, the point X_u and the
vectors, and return new arrays. Index position is encoded in the suffix:
``_u`` for contravariant (upper) and ``_d`` for covariant (lower) components.
"""

import numpy as np


def lower_index(metric, X_u, V_u):
    """Return V_d = g_dd(X) V_u."""
    return metric.metric_dd(X_u) @ np.asarray(V_u, dtype=float)


def raise_index(metric, X_u, V_d):
    """Return V_u = g_uu(X) V_d."""
    return metric.metric_uu(X_u) @ np.asarray(V_d, dtype=float)


def lower_two_indices(metric, X_u, N_uu):
    """Lower both indices of a rank (2, 0) tensor: N_dd = g N_uu g^T."""
    g_dd = metric.metric_dd(X_u)
    return g_dd @ np.asarray(N_uu, dtype=float) @ g_dd.T


def inner_product(A_u, B_d):
    """Natural pairing A^mu B_mu (one vector already lowered, so no metric is needed)."""
    return float(np.dot(A_u, B_d))


def dot(metric, X_u, A_u, B_u):
    """Metric contraction g_mu nu A^mu B^nu of two contravariant vectors."""
    return float(np.asarray(A_u) @ metric.metric_dd(X_u) @ np.asarray(B_u))


def four_velocity_norm(metric, X_u, U_u):
    """Return g_dd[a][b] U^a U^b (-1 for a unit timelike vector, 0 for a null one)."""
    return dot(metric, X_u, U_u, U_u)


def normalize_null(metric, X_u, U_u, future_directed=True, reference=None):
    """
    Adjust the time component U^0 so that U becomes null.

    Spatial components are kept fixed and U^0 is obtained from
        g00 U0^2 + 2 g0i U0 Ui + gij Ui Uj = 0.

    Outside the ergoregion the two roots describe the same spatial direction
    travelled forward and backward in time. ``future_directed=True`` keeps the
    larger root (U^0 > 0 wherever constant-t slices are spacelike), i.e. the
    physical photon momentum; ``False`` keeps the smaller, past-pointing root.

    Where g00 > 0 both roots can be future-directed, so a photon that is
    already on its geodesic must be renormalised with ``reference`` set to its
    current U^0: the root closest to it is kept and ``future_directed`` is
    ignored.

    Returns:
    --------
    ndarray (4,)
        Null vector (copy)
    """
    g = metric.metric_dd(X_u)
    U = np.array(U_u, dtype=float)
    ui = U[1:4]

    A = g[0, 0]
    B = 2.0 * (g[0, 1:4] @ ui)
    C = ui @ (g[1:4, 1:4] @ ui)

    if abs(A) < 1e-300:
        # g00 = 0 (ergosurface in BL): the condition is linear in U0
        U[0] = -C / B
        return U

    disc = B * B - 4.0 * A * C
    # Round-off can push a vanishing discriminant slightly negative
    sqrt_disc = np.sqrt(max(disc, 0.0))
    root_a = (-B + sqrt_disc) / (2.0 * A)
    root_b = (-B - sqrt_disc) / (2.0 * A)

    if reference is not None:
        U[0] = root_a if abs(root_a - reference) <= abs(root_b - reference) else root_b
    else:
        U[0] = max(root_a, root_b) if future_directed else min(root_a, root_b)
    return U


def freq_in_plasma_frame(Uplasma_u, k_d):
    """
    Photon frequency measured by the plasma, -k_mu U^mu.

    With k normalised to unit energy at infinity (k_t = -1), the result is the
    ratio nu_plasma / nu_observer. It is non-negative for a future-directed k
    and a future-directed timelike U.
    """
    return -float(np.dot(Uplasma_u, k_d))


def pitch_angle(metric, X_u, k_u, B_u, Uplasma_u):
    """
    Angle between the photon direction and the magnetic field in the plasma frame.

    cos(theta) = (k . b) / (|k . U| |b|) with b orthogonal to U. The cosine is
    clamped to [-1, 1]; a vanishing field returns pi/2.
    """
    g = metric.metric_dd(X_u)
    k_d = g @ np.asarray(k_u, dtype=float)

    b2 = float(np.asarray(B_u) @ g @ np.asarray(B_u))
    kU = float(np.dot(k_d, Uplasma_u))
    kB = float(np.dot(k_d, B_u))

    if b2 <= 0.0 or kU == 0.0:
        return 0.5 * np.pi

    mu = kB / (abs(kU) * np.sqrt(b2))
    return float(np.arccos(np.clip(mu, -1.0, 1.0)))
