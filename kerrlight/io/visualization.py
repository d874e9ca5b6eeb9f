import os

import numpy as np
import matplotlib.pyplot as plt

from .image_io import STOKES


def _get_save_path(filename):
    """Bare filenames go to _visualizations/; paths with a directory are used as-is."""
    if filename is None:
        return None
    if os.path.isabs(filename) or os.path.dirname(filename):
        return filename
    viz_dir = "_visualizations"
    os.makedirs(viz_dir, exist_ok=True)
    return os.path.join(viz_dir, filename)


def plot_stokes_image(image, camera, title=None, save_file=None, show=False):
    """
    Quick-look panels of an intensity or Stokes image.

    Total intensity uses the "afmhot" map; Q, U, V use a symmetric diverging
    scale. Axes are the impact parameters alpha, beta in GM/c^2.

    Returns:
    --------
    matplotlib.figure.Figure
    """
    image = np.asarray(image)
    panels = image if image.ndim == 3 else image[np.newaxis]

    fig, axes = plt.subplots(1, len(panels), figsize=(4.5 * len(panels), 4), squeeze=False)
    for ax, data, name in zip(axes[0], panels, STOKES):
        if name == "I":
            im = ax.imshow(data, origin="lower", extent=camera.extent, cmap="afmhot")
        else:
            vmax = float(np.max(np.abs(data))) or 1.0
            im = ax.imshow(data, origin="lower", extent=camera.extent, cmap="RdBu_r", vmin=-vmax, vmax=vmax)
        ax.set_title(name)
        ax.set_xlabel(r"$\alpha$ [$GM/c^2$]")
        ax.set_ylabel(r"$\beta$ [$GM/c^2$]")
        plt.colorbar(im, ax=ax)

    if title:
        fig.suptitle(title)
    plt.tight_layout()

    save_path = _get_save_path(save_file)
    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches="tight")
        print(f"   Saved {save_path}")
    if show:
        plt.show()
    return fig
