import numpy as np

### File containing necessary constants for the ray tracing engine
### Geometry is in units of GM/c^2 (M = 1); radiation physics is in CGS

c = 2.99792458e10  # Celerity of light in cm/s
G = 6.674e-8  # Newton's gravitational constant in cm^3 g^-1 s^-2
h = 6.62606957e-27  # Planck constant in erg s
k_B = 1.3806488e-16  # Boltzmann constant in erg/K
e_charge = 4.80320425e-10  # Electron charge in esu
m_e = 9.1093829e-28  # Electron mass in g
m_p = 1.6726219e-24  # Proton mass in g
one_Msun = 1.989e33  # Solar mass in g
one_pc = 3.085677581e18  # Parsec in cm
one_kpc = 1e3 * one_pc  # Kiloparsec in cm

# Electron rest-mass energy in erg, used to convert Theta_e <-> T
m_e_c2 = m_e * c**2
