"""Startup-time errors for the health subsystem."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Raised when probes are registered or configured inconsistently.

    Fatal to startup: the service must not serve queries afterwards.
    """


class DuplicateProbeError(ConfigurationError):
    """Raised when a probe name is registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Probe '{name}' is already registered")
        self.name = name
