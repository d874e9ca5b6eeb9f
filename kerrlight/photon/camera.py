# photon/camera.py
import numpy as np

from .photon import Photon
from kerrlight.tetrad.tetrad import create_observer_tetrad


def camera_polarization_basis(metric, state):
    """
    Image-plane polarization basis (f_x, f_y) at the camera.

    Built from the tetrad of the camera's zero-angular-momentum observer with
    e_(3) along the photon and e_(2) toward the projected spin axis (-∂_θ):
    f_y = e_(2) points along +beta and f_x = e_(1) along +alpha.
    """
    X_u, k_u = state[:4], state[4:8]
    north = np.array([0.0, 0.0, -1.0, 0.0])
    tetrad_u = create_observer_tetrad(metric, X_u, k_u, metric.zamo_velocity(X_u), north)
    return tetrad_u[1], tetrad_u[2]


def initialize_ray(metric, alpha, beta, polarized=False, t_init=None):
    """Photon at the camera for image-plane point (alpha, beta)."""
    state = metric.initialize_photon(alpha, beta, t_init)
    if not polarized:
        return Photon(state[:4], state[4:8])
    f_x, f_y = camera_polarization_basis(metric, state)
    return Photon(state[:4], state[4:8], f_x, f_y)


class Camera:
    """
    Square image plane of ``n_pixels`` x ``n_pixels`` pixels spanning
    ``fov`` (in units of GM/c^2) in both impact parameters.

    Pixel (j, i) (row, column) is centred on
        alpha = (i + 0.5) / n * fov - fov / 2
        beta  = (j + 0.5) / n * fov - fov / 2
    """

    def __init__(self, n_pixels, fov, n_pixels_y=None):
        self.nx = int(n_pixels)
        self.ny = int(n_pixels_y) if n_pixels_y is not None else self.nx
        self.fov = float(fov)
        if self.nx < 1 or self.ny < 1:
            raise ValueError("camera needs at least one pixel per axis")
        if self.fov <= 0:
            raise ValueError("field of view must be > 0")

    @property
    def shape(self):
        return (self.ny, self.nx)

    @property
    def pixel_size(self):
        return self.fov / self.nx

    def alphas(self):
        return (np.arange(self.nx) + 0.5) / self.nx * self.fov - 0.5 * self.fov

    def betas(self):
        fov_y = self.fov * self.ny / self.nx
        return (np.arange(self.ny) + 0.5) / self.ny * fov_y - 0.5 * fov_y

    def impact_parameters(self):
        """Iterate over ((row, col), alpha, beta) for every pixel."""
        alphas = self.alphas()
        betas = self.betas()
        for j, beta in enumerate(betas):
            for i, alpha in enumerate(alphas):
                yield (j, i), float(alpha), float(beta)

    @property
    def extent(self):
        """Image extent (alpha_min, alpha_max, beta_min, beta_max) for plotting."""
        fov_y = self.fov * self.ny / self.nx
        return (-0.5 * self.fov, 0.5 * self.fov, -0.5 * fov_y, 0.5 * fov_y)
