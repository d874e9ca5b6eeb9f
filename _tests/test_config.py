import numpy as np
import pytest

from kerrlight.core.config import SpacetimeConfig
from kerrlight.core.constants import G, c, one_Msun


def test_default_cutoffs_are_derived_from_horizon_and_camera():
    cfg = SpacetimeConfig(spin=0.5, r_cam=500.0)
    assert np.isclose(cfg.r_horizon, 1.0 + np.sqrt(0.75))
    assert np.isclose(cfg.r_inner, 1.05 * cfg.r_horizon)
    assert np.isclose(cfg.r_outer, 1.1 * 500.0)


def test_length_and_time_units():
    cfg = SpacetimeConfig(mass=10.0 * one_Msun)
    assert np.isclose(cfg.L_unit, G * 10.0 * one_Msun / c**2)
    assert np.isclose(cfg.T_unit, cfg.L_unit / c)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"spin": 1.0},
        {"spin": -1.2},
        {"mass": -1.0},
        {"chart": "Cartesian"},
        {"hslope": 0.0},
        {"inclination": 0.0},
        {"chart": "BL", "spin": 0.0, "r_inner": 1.9},
        {"r_cam": 1.0, "r_inner": 2.0},
        {"r_cam": 100.0, "r_outer": 50.0},
        {"distance": 0.0},
    ],
)
def test_invalid_configuration_is_rejected(kwargs):
    with pytest.raises(ValueError):
        SpacetimeConfig(**kwargs)


def test_with_updates_recomputes_derived_cutoffs():
    cfg = SpacetimeConfig(spin=0.0, r_cam=100.0)
    updated = cfg.with_updates(spin=0.9, r_cam=1000.0)
    assert updated.spin == 0.9
    assert np.isclose(updated.r_inner, 1.05 * (1.0 + np.sqrt(1.0 - 0.81)))
    assert np.isclose(updated.r_outer, 1100.0)
    # original untouched
    assert cfg.r_cam == 100.0


def test_config_is_immutable():
    cfg = SpacetimeConfig()
    with pytest.raises(Exception):
        cfg.spin = 0.1
