"""vitals — aggregated health endpoint for a running service."""

__version__ = "0.1.0"
