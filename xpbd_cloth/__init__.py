"""
XPBD Cloth Package

Extended Position-Based Dynamics for triangle-mesh cloth using NVIDIA Warp:
stretch, bend and attach constraints relaxed with compliance-weighted
Gauss-Seidel projection.
"""

from .config import SolverConfig, ClothConfig
from .exceptions import (
    XPBDError,
    ConfigurationError,
    InvalidMeshError,
    SolverStateError,
)
from .topology import Topology, extract_topology
from .constraints import ATTACH, STRETCH, BEND, ConstraintSet, build_constraints, dihedral_angle
from .geometry import make_cloth_grid, corner_pins, region_pins, table_pins, pins_near, PinPredicate
from .mesh import ClothMesh
from .solver import XPBDSolver
from .simulation import ClothSimulation
from .logging_config import setup_logging
from .visualization import plot_cloth, animate_cloth, plot_trajectories

__all__ = [
    "SolverConfig",
    "ClothConfig",
    "XPBDError",
    "ConfigurationError",
    "InvalidMeshError",
    "SolverStateError",
    "Topology",
    "extract_topology",
    "ATTACH",
    "STRETCH",
    "BEND",
    "ConstraintSet",
    "build_constraints",
    "dihedral_angle",
    "make_cloth_grid",
    "corner_pins",
    "region_pins",
    "table_pins",
    "pins_near",
    "PinPredicate",
    "ClothMesh",
    "XPBDSolver",
    "ClothSimulation",
    "setup_logging",
    "plot_cloth",
    "animate_cloth",
    "plot_trajectories",
]
