"""Resource health checker: probes infrastructure and tracks per-resource status."""

__version__ = "0.1.0"
