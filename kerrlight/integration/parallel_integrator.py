"""
Image rendering: one backward-traced ray per camera pixel.

Rays are independent; each pixel's result is written only to its own slot
of the output arrays. The parallel mode uses a worker pool initialised once
with the shared, read-only context (metric, plasma model, emission model), so
per-task payloads are just the pixel index and impact parameters.
"""

import time
from multiprocessing import Pool, cpu_count

import numpy as np

from kerrlight.radiation.transfer import backward_transfer

RENDER_MODES = ("sequential", "parallel")

# Global worker state (initialised once per worker process)
_worker_context = None


def _init_render_worker(context):
    global _worker_context
    _worker_context = context


def _render_pixel(task):
    pixel, alpha, beta = task
    ctx = _worker_context
    result, steps = backward_transfer(
        alpha,
        beta,
        ctx["frequency"],
        ctx["metric"],
        ctx["plasma"],
        ctx["emission"],
        polarized=ctx["polarized"],
        check_tetrads=ctx["check_tetrads"],
        **ctx["integrator_kwargs"],
    )
    return pixel, result, steps


def _render_chunk(tasks):
    return [_render_pixel(task) for task in tasks]


def render_image(
    camera,
    frequency,
    metric,
    plasma,
    emission,
    polarized=False,
    check_tetrads=False,
    mode="sequential",
    n_workers=None,
    chunk_size=16,
    verbose=True,
    **integrator_kwargs,
):
    """
    Render the image seen by ``camera`` at observed frequency ``frequency``.

    Parameters:
    -----------
    camera : Camera
        Pixel grid of impact parameters
    frequency : float
        Observed frequency [Hz]
    metric, plasma, emission
        Spacetime, plasma model and emission model (shared read-only)
    polarized : bool
        Trace the polarization basis and return all four Stokes parameters
    check_tetrads : bool
        Verify the plasma tetrad identities along polarized rays
    mode : str
        "sequential" or "parallel" (multiprocessing pool)
    n_workers : int, optional
        Pool size; defaults to cpu_count() - 1
    chunk_size : int
        Pixels per pool task
    verbose : bool
        Print progress information
    **integrator_kwargs
        Forwarded to the Integrator (integrator, step_scale, max_steps, ...)

    Returns:
    --------
    image : ndarray
        (ny, nx) intensities, or (4, ny, nx) Stokes I, Q, U, V when polarized
    steps : ndarray
        (ny, nx) integration step counts
    """
    if mode not in RENDER_MODES:
        raise ValueError(f"Render mode '{mode}' not supported. Available: {list(RENDER_MODES)}")

    ny, nx = camera.shape
    image = np.zeros((4, ny, nx)) if polarized else np.zeros((ny, nx))
    steps = np.zeros((ny, nx), dtype=int)

    context = {
        "frequency": float(frequency),
        "metric": metric,
        "plasma": plasma,
        "emission": emission,
        "polarized": polarized,
        "check_tetrads": check_tetrads,
        "integrator_kwargs": integrator_kwargs,
    }
    tasks = list(camera.impact_parameters())

    t_start = time.time()
    if mode == "sequential":
        if verbose:
            print(f"   Rendering {ny}x{nx} pixels sequentially at nu = {frequency:.3e} Hz...")
        _init_render_worker(context)
        results = (_render_pixel(task) for task in tasks)
    else:
        n_workers = n_workers if n_workers is not None else max(1, cpu_count() - 1)
        if verbose:
            print(f"   Rendering {ny}x{nx} pixels with {n_workers} workers at nu = {frequency:.3e} Hz...")
        chunks = [tasks[i:i + chunk_size] for i in range(0, len(tasks), chunk_size)]
        with Pool(processes=n_workers, initializer=_init_render_worker, initargs=(context,)) as pool:
            results = [item for chunk in pool.map(_render_chunk, chunks) for item in chunk]

    for (j, i), result, n_steps in results:
        if polarized:
            image[:, j, i] = result
        else:
            image[j, i] = result
        steps[j, i] = n_steps

    if verbose:
        elapsed = time.time() - t_start
        print(f"   Done in {elapsed:.2f}s ({elapsed / max(len(tasks), 1) * 1e3:.2f} ms/pixel)")
    return image, steps
