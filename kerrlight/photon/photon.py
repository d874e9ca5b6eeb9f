# photon/photon.py
import numpy as np


class Photon:
    """
    Instantaneous state of a ray: position, wave-vector and (optionally) the
    two polarization basis vectors transported along it.

    The flat ``state`` array is what the step kernels advance:
    [x(4), k(4)] or [x(4), k(4), f_x(4), f_y(4)].
    """

    def __init__(self, position, wave_vector, f_x=None, f_y=None):
        parts = [np.asarray(position, dtype=float), np.asarray(wave_vector, dtype=float)]
        if (f_x is None) != (f_y is None):
            raise ValueError("polarization basis needs both f_x and f_y")
        if f_x is not None:
            parts += [np.asarray(f_x, dtype=float), np.asarray(f_y, dtype=float)]
        self.state = np.concatenate(parts)

    @classmethod
    def from_state(cls, state):
        state = np.asarray(state, dtype=float)
        if state.size == 8:
            return cls(state[:4], state[4:8])
        if state.size == 16:
            return cls(state[:4], state[4:8], state[8:12], state[12:16])
        raise ValueError(f"photon state must have 8 or 16 components, got {state.size}")

    @property
    def x(self):
        return self.state[:4]

    @property
    def k(self):
        return self.state[4:8]

    @property
    def polarized(self):
        return self.state.size == 16

    @property
    def f_x(self):
        return self.state[8:12] if self.polarized else None

    @property
    def f_y(self):
        return self.state[12:16] if self.polarized else None

    def null_condition_relative_error(self, metric):
        """
        Relative error in the null condition:
        |g_μν k^μ k^ν| / Σ_μν |g_μν k^μ k^ν|
        """
        g = metric.metric_dd(self.x)
        terms = g * np.outer(self.k, self.k)
        normalization = np.sum(np.abs(terms))
        norm = abs(np.sum(terms))
        return norm / normalization if normalization > 0 else norm
