"""kerrlight: polarized general-relativistic ray tracing around Kerr black holes."""

__version__ = "0.1.0"
