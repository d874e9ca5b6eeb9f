from .emission import (
    absorption_coeff_kappa_FIT,
    absorption_coeff_TH,
    emission_coeff_FFTHERMAL,
    emission_coeff_kappa_FIT,
    emission_coeff_THSYNCH,
    emission_coeff_THSYNCHAV,
    emissivity_hotspot,
    emissivity_thindisk,
    planck_function,
    thermal_polarized_coefficients,
)
from .emission_models import (
    EMISSION_MODELS,
    EmissionModel,
    HotspotEmission,
    KappaSynchrotron,
    ThermalFreeFree,
    ThermalSynchrotron,
    ThermalSynchrotronAveraged,
    ThinDiskEmission,
)
from .transfer import backward_transfer, radiative_transfer, radiative_transfer_polarized
