"""
HDF5 persistence of rendered images.

Layout:
    /image   (ny, nx) intensity or (4, ny, nx) Stokes I, Q, U, V  [erg s^-1 cm^-2 Hz^-1 sr^-1]
    /steps   (ny, nx) integration step counts (optional)
    attrs    frequency, camera (n_pixels, fov), spacetime configuration, source distance, flux
"""

import os

import numpy as np
import h5py

from kerrlight.core.constants import one_Msun

STOKES = ("I", "Q", "U", "V")


def generate_image_filename(config, frequency, n_pixels, polarized=False, output_dir="_data"):
    """
    Descriptive filename encoding the main run parameters, e.g.
    ``_data/image_KS_a0.94_i60_nu2.3e+11_n64_stokes.h5``.
    """
    kind = "stokes" if polarized else "intensity"
    name = (
        f"image_{config.chart}_a{config.spin:.2f}_i{config.inclination:g}"
        f"_nu{frequency:.1e}_n{n_pixels}_{kind}.h5"
    )
    return os.path.join(output_dir, name)


def image_flux(image, camera, config, distance=None):
    """
    Total flux density in Jy, F = sum(I) dΩ, for a source at ``distance`` (cm;
    defaults to ``config.distance``). Each pixel subtends (pixel_size L_unit / distance)^2.
    """
    intensity = image[0] if image.ndim == 3 else image
    if distance is None:
        distance = config.distance
    d_omega = (camera.pixel_size * config.L_unit / distance) ** 2
    return float(np.sum(intensity) * d_omega * 1e23)


def save_image_hdf5(filename, image, camera, frequency, config, steps=None, **attrs):
    """
    Write an image and its run metadata.

    Parameters:
    -----------
    filename : str
        Output path (parent directories are created)
    image : ndarray
        (ny, nx) or (4, ny, nx)
    camera : Camera
    frequency : float
        Observed frequency [Hz]
    config : SpacetimeConfig
    steps : ndarray, optional
        Per-pixel step counts
    **attrs
        Extra scalar attributes stored at the file root
    """
    image = np.asarray(image, dtype=float)
    if image.shape[-2:] != camera.shape:
        raise ValueError(f"image shape {image.shape} does not match camera {camera.shape}")

    parent = os.path.dirname(filename)
    if parent:
        os.makedirs(parent, exist_ok=True)

    with h5py.File(filename, "w") as f:
        f.create_dataset("image", data=image)
        if steps is not None:
            f.create_dataset("steps", data=np.asarray(steps))
        f.attrs["polarized"] = image.ndim == 3
        f.attrs["frequency"] = float(frequency)
        f.attrs["n_pixels_x"] = camera.nx
        f.attrs["n_pixels_y"] = camera.ny
        f.attrs["fov"] = camera.fov
        f.attrs["mass_msun"] = config.mass / one_Msun
        f.attrs["spin"] = config.spin
        f.attrs["chart"] = config.chart
        f.attrs["hslope"] = config.hslope
        f.attrs["r_cam"] = config.r_cam
        f.attrs["inclination"] = config.inclination
        f.attrs["t_init"] = config.t_init
        f.attrs["distance"] = config.distance
        f.attrs["flux_jy"] = image_flux(image, camera, config)
        for key, value in attrs.items():
            f.attrs[key] = value


def load_image_hdf5(filename):
    """
    Read an image written by save_image_hdf5.

    Returns:
    --------
    dict
        ``image`` (ndarray), ``steps`` (ndarray or None) and every root attribute
    """
    with h5py.File(filename, "r") as f:
        data = {"image": f["image"][()], "steps": f["steps"][()] if "steps" in f else None}
        for key, value in f.attrs.items():
            data[key] = value.decode() if isinstance(value, bytes) else value
    data["polarized"] = bool(data["polarized"])
    return data
