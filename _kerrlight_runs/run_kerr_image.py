"""Render a Kerr black hole image of an analytic accretion flow.

Traces one ray per pixel backward from the camera, integrates the (polarized)
transfer equation along it and writes the image to HDF5 plus a quick-look
PNG. Example:

    python _kerrlight_runs/run_kerr_image.py --spin 0.9375 --inclination 60 \
        --n-pixels 64 --fov 40 --frequency 230e9 --model thermal --polarized
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass

from kerrlight.core.config import SpacetimeConfig
from kerrlight.core.constants import one_kpc, one_Msun
from kerrlight.integration.parallel_integrator import render_image
from kerrlight.io.image_io import generate_image_filename, image_flux, save_image_hdf5
from kerrlight.io.visualization import plot_stokes_image
from kerrlight.metrics.kerr_metric_mks import metric_from_config
from kerrlight.photon.camera import Camera
from kerrlight.plasma.plasma_model import KeplerianDisk
from kerrlight.radiation.emission_models import EMISSION_MODELS


@dataclass(frozen=True)
class RunConfig:
    mass: float
    spin: float
    chart: str
    hslope: float
    r_cam: float
    inclination: float
    distance: float
    n_pixels: int
    fov: float
    frequency: float
    model: str
    polarized: bool
    check_tetrads: bool
    n_e0: float
    theta_e0: float
    b0: float
    integrator: str
    step_scale: float
    max_steps: int
    mode: str
    n_workers: int | None
    output_dir: str
    plot: bool


def _parse_args() -> RunConfig:
    p = argparse.ArgumentParser(description="Render a Kerr black hole image of an analytic accretion flow")

    p.add_argument("--mass-msun", type=float, default=4.0e6, help="Black hole mass in Msun")
    p.add_argument("--spin", type=float, default=0.9375)
    p.add_argument("--chart", type=str, default="KS", choices=list(SpacetimeConfig.CHARTS))
    p.add_argument("--hslope", type=float, default=0.3, help="MKS polar concentration (chart=MKS only)")
    p.add_argument("--r-cam", type=float, default=1.0e4, help="Camera radius in GM/c^2")
    p.add_argument("--inclination", type=float, default=60.0, help="Camera inclination in degrees")
    p.add_argument("--distance-kpc", type=float, default=8.178, help="Source distance in kpc")

    p.add_argument("--n-pixels", type=int, default=32)
    p.add_argument("--fov", type=float, default=40.0, help="Field of view in GM/c^2")
    p.add_argument("--frequency", type=float, default=230.0e9, help="Observed frequency in Hz")

    p.add_argument("--model", type=str, default="thermal", choices=list(EMISSION_MODELS))
    p.add_argument("--polarized", action="store_true", help="Compute all four Stokes parameters")
    p.add_argument("--check-tetrads", action="store_true", help="Verify plasma tetrad identities (polarized only)")
    p.add_argument("--n-e0", type=float, default=1.0e6, help="Density normalisation [cm^-3]")
    p.add_argument("--theta-e0", type=float, default=50.0, help="Temperature normalisation")
    p.add_argument("--b0", type=float, default=30.0, help="Field normalisation [G]")

    p.add_argument("--integrator", type=str, default="rk4", choices=["rk4", "rk2", "verlet"])
    p.add_argument("--step-scale", type=float, default=0.03)
    p.add_argument("--max-steps", type=int, default=10000)
    p.add_argument("--mode", type=str, default="sequential", choices=["sequential", "parallel"])
    p.add_argument("--n-workers", type=int, default=None)

    p.add_argument(
        "--output-dir",
        type=str,
        default=os.path.join("_data", "output"),
        help="Directory to write image HDF5 outputs",
    )
    p.add_argument("--no-plot", action="store_true", help="Skip the quick-look PNG")

    args = p.parse_args()

    return RunConfig(
        mass=args.mass_msun * one_Msun,
        spin=args.spin,
        chart=args.chart,
        hslope=args.hslope if args.chart == "MKS" else 1.0,
        r_cam=args.r_cam,
        inclination=args.inclination,
        distance=args.distance_kpc * one_kpc,
        n_pixels=args.n_pixels,
        fov=args.fov,
        frequency=args.frequency,
        model=args.model,
        polarized=bool(args.polarized),
        check_tetrads=bool(args.check_tetrads),
        n_e0=args.n_e0,
        theta_e0=args.theta_e0,
        b0=args.b0,
        integrator=args.integrator,
        step_scale=args.step_scale,
        max_steps=args.max_steps,
        mode=args.mode,
        n_workers=args.n_workers,
        output_dir=args.output_dir,
        plot=not args.no_plot,
    )


def _build_emission(name, metric):
    model = EMISSION_MODELS[name]
    if name in ("hotspot", "thindisk"):
        return model(metric)
    return model()


def main():
    cfg = _parse_args()

    spacetime = SpacetimeConfig(
        mass=cfg.mass,
        spin=cfg.spin,
        chart=cfg.chart,
        hslope=cfg.hslope,
        r_cam=cfg.r_cam,
        inclination=cfg.inclination,
        distance=cfg.distance,
    )
    metric = metric_from_config(spacetime)
    plasma = KeplerianDisk(metric, n_e0=cfg.n_e0, theta_e0=cfg.theta_e0, b0=cfg.b0)
    emission = _build_emission(cfg.model, metric)
    camera = Camera(cfg.n_pixels, cfg.fov)

    print("=== kerrlight image ===")
    print(f"M = {cfg.mass / one_Msun:.3e} Msun, a = {cfg.spin}, chart = {cfg.chart}, i = {cfg.inclination} deg")
    print(f"{cfg.n_pixels}x{cfg.n_pixels} pixels, fov = {cfg.fov} GM/c^2, nu = {cfg.frequency:.3e} Hz")
    print(f"model = {cfg.model}, polarized = {cfg.polarized}")

    image, steps = render_image(
        camera,
        cfg.frequency,
        metric,
        plasma,
        emission,
        polarized=cfg.polarized,
        check_tetrads=cfg.check_tetrads,
        mode=cfg.mode,
        n_workers=cfg.n_workers,
        integrator=cfg.integrator,
        step_scale=cfg.step_scale,
        max_steps=cfg.max_steps,
    )

    filename = generate_image_filename(
        spacetime, cfg.frequency, cfg.n_pixels, polarized=cfg.polarized, output_dir=cfg.output_dir
    )
    save_image_hdf5(filename, image, camera, cfg.frequency, spacetime, steps=steps, model=cfg.model)

    print("=== Outputs ===")
    print("Image ->", filename)
    print(f"Flux at {cfg.distance / one_kpc:g} kpc: {image_flux(image, camera, spacetime):.4e} Jy")
    print(f"Steps per ray (mean / max): {steps.mean():.1f} / {steps.max()}")

    if cfg.plot:
        png = os.path.splitext(filename)[0] + ".png"
        plot_stokes_image(image, camera, title=os.path.basename(filename), save_file=png)


if __name__ == "__main__":
    main()
