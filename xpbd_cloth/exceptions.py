"""Custom exception types for the XPBD cloth solver."""

from __future__ import annotations


class XPBDError(Exception):
    """Base class for domain-specific errors."""


class ConfigurationError(XPBDError):
    """Raised when a solver or cloth configuration value is out of range."""


class InvalidMeshError(XPBDError):
    """Raised when particle or triangle arrays cannot describe a mesh."""


class SolverStateError(XPBDError):
    """Raised when the solver is driven before it has been initialized."""

    def __init__(self, operation: str, message: str | None = None) -> None:
        if message is None:
            message = f"Cannot call {operation}() before init_sim()."
        super().__init__(message)
        self.operation = operation


__all__ = [
    "XPBDError",
    "ConfigurationError",
    "InvalidMeshError",
    "SolverStateError",
]
