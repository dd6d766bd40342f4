"""
Configuration dataclasses for the XPBD cloth solver and the cloth scene.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import warp as wp

from .exceptions import ConfigurationError


@dataclass
class SolverConfig:
    """Parameters of the XPBD solver.

    Attributes:
        iterations: Number of Gauss-Seidel relaxation passes per step (Ns).
        stretch_compliance: Compliance (inverse stiffness) of every stretch constraint.
        bend_compliance: Compliance of every bend constraint.
        damping: Global velocity damping applied on commit (0 = none).
        stretch_damping: Damping coefficient of stretch constraints.
        bend_damping: Damping coefficient of bend constraints.
        gravity: Gravitational acceleration vector.
        inverse_mass: Initial inverse mass of every free particle.
        floor: Lower bound of the vertical coordinate after each step.
        ceiling: Upper bound of the vertical coordinate after each step.
        max_dt: Largest frame time step a host context forwards to the solver.
        device: Warp device to use. The relaxation pass is sequential, so
            the CPU is the default.
    """

    iterations: int = 20
    stretch_compliance: float = 1e-9
    bend_compliance: float = 10.0
    damping: float = 0.0
    stretch_damping: float = 0.9
    bend_damping: float = 0.05
    gravity: Tuple[float, float, float] = (0.0, -9.8, 0.0)
    inverse_mass: float = 1.0
    floor: float = 0.0001 - 1.0
    ceiling: float = 1.0
    max_dt: float = 0.017
    device: Optional[str] = None

    def __post_init__(self):
        """Validate values and resolve the warp device."""
        try:
            self.gravity = tuple(float(g) for g in self.gravity)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"gravity must be a sequence of 3 numbers, got {self.gravity!r}"
            ) from exc
        if len(self.gravity) != 3:
            raise ConfigurationError(
                f"gravity must have 3 components, got {len(self.gravity)}"
            )
        if self.iterations < 1:
            raise ConfigurationError(f"iterations must be >= 1, got {self.iterations}")
        for name in ("stretch_compliance", "bend_compliance",
                     "stretch_damping", "bend_damping"):
            if getattr(self, name) < 0.0:
                raise ConfigurationError(f"{name} must be >= 0, got {getattr(self, name)}")
        if not 0.0 <= self.damping <= 1.0:
            raise ConfigurationError(f"damping must lie in [0, 1], got {self.damping}")
        if self.inverse_mass <= 0.0:
            raise ConfigurationError(
                f"inverse_mass must be > 0, got {self.inverse_mass}"
            )
        if self.floor > self.ceiling:
            raise ConfigurationError(
                f"floor ({self.floor}) lies above ceiling ({self.ceiling})"
            )
        if self.max_dt <= 0.0:
            raise ConfigurationError(f"max_dt must be > 0, got {self.max_dt}")

        if self.device is None:
            wp.init()
            self.device = "cpu"

    @property
    def wp_device(self):
        """Get the warp device object."""
        return wp.get_device(self.device)


@dataclass
class ClothConfig:
    """Resolution and extent of a rectangular cloth in the XZ plane.

    Attributes:
        rx: Number of particles along x.
        rz: Number of particles along z.
        width: Extent along x.
        height: Extent along z.
        y: Height of the cloth plane.
        origin: (x, z) center of the cloth.
    """

    rx: int = 15
    rz: int = 30
    width: float = 0.6
    height: float = 1.2
    y: float = 0.0
    origin: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        if self.rx < 2 or self.rz < 2:
            raise ConfigurationError(
                f"cloth needs at least 2x2 particles, got {self.rx}x{self.rz}"
            )
        if self.width <= 0.0 or self.height <= 0.0:
            raise ConfigurationError(
                f"cloth extent must be positive, got {self.width}x{self.height}"
            )

    @property
    def num_particles(self) -> int:
        """Total number of particles in the cloth."""
        return self.rx * self.rz

    @property
    def num_triangles(self) -> int:
        return 2 * (self.rx - 1) * (self.rz - 1)
