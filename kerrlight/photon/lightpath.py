# photon/lightpath.py
from enum import Enum

import numpy as np
import h5py


class RayOutcome(Enum):
    """How a backward-traced ray ended. None of these is an error."""

    ABSORBED = "absorbed"        # crossed the inner cutoff
    ESCAPED = "escaped"          # left through the outer radius
    STEP_LIMIT = "step_limit"    # maximum step count reached


class Lightpath:
    """
    Append-only record of a ray, from the camera (index 0) to where the
    backward integration stopped.

    Each entry holds the photon state [x, k] and the affine length dλ of the
    step taken from it (0 for the final entry). When the polarization basis is
    transported, the pair (f_x, f_y) is recorded alongside.
    """

    def __init__(self):
        self._states = []
        self._dlambdas = []
        self._polarization = []
        self.outcome = None

    def append(self, state, dlambda):
        state = np.asarray(state, dtype=float)
        self._states.append(state[:8].copy())
        self._dlambdas.append(float(dlambda))
        if state.size == 16:
            self._polarization.append(state[8:16].reshape(2, 4).copy())

    def __len__(self):
        return len(self._states)

    @property
    def steps(self):
        """Number of integration steps taken (entries minus the initial one)."""
        return max(len(self._states) - 1, 0)

    @property
    def states(self):
        """(N, 8) array of [x, k]."""
        return np.array(self._states).reshape(-1, 8)

    @property
    def positions(self):
        return self.states[:, :4]

    @property
    def wave_vectors(self):
        return self.states[:, 4:8]

    @property
    def dlambdas(self):
        return np.array(self._dlambdas)

    @property
    def polarization(self):
        """(N, 2, 4) array of transported (f_x, f_y), or None."""
        if not self._polarization:
            return None
        return np.array(self._polarization)

    def save_to_hdf5(self, filename, **attrs):
        with h5py.File(filename, "w") as f:
            f.create_dataset("states", data=self.states)
            f.create_dataset("dlambda", data=self.dlambdas)
            if self._polarization:
                f.create_dataset("polarization", data=self.polarization)
            f.attrs["steps"] = self.steps
            f.attrs["outcome"] = self.outcome.value if self.outcome is not None else ""
            for key, value in attrs.items():
                f.attrs[key] = value

    @classmethod
    def load_from_hdf5(cls, filename):
        path = cls()
        with h5py.File(filename, "r") as f:
            states = f["states"][()]
            dls = f["dlambda"][()]
            pol = f["polarization"][()] if "polarization" in f else None
            outcome = f.attrs.get("outcome", "")
        for i in range(len(states)):
            state = states[i] if pol is None else np.concatenate([states[i], pol[i].ravel()])
            path.append(state, dls[i])
        if outcome:
            path.outcome = RayOutcome(outcome)
        return path
