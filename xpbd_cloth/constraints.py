"""
Constraint arena and construction policy.

Constraints are stored by value in parallel arrays, one record per
constraint, addressed by the stable index returned when it is added. The
insertion order is the fixed Gauss-Seidel evaluation order.
"""

import logging
from typing import Optional

import numpy as np
import warp as wp

from . import kernels
from .config import SolverConfig
from .topology import Topology

logger = logging.getLogger("xpbd_cloth")

ATTACH = int(kernels.ATTACH)
STRETCH = int(kernels.STRETCH)
BEND = int(kernels.BEND)

KIND_NAMES = {ATTACH: "attach", STRETCH: "stretch", BEND: "bend"}


def dihedral_angle(p1, p2, p3, p4) -> Optional[float]:
    """Angle between the normals of triangles (p1, p2, p3) and (p1, p2, p4).

    Returns:
        The angle in radians, or None when either triangle is degenerate.
    """
    p1 = np.asarray(p1, dtype=np.float64)
    e = np.asarray(p2, dtype=np.float64) - p1
    n1 = np.cross(e, np.asarray(p3, dtype=np.float64) - p1)
    n2 = np.cross(e, np.asarray(p4, dtype=np.float64) - p1)
    l1 = np.linalg.norm(n1)
    l2 = np.linalg.norm(n2)
    if l1 < 1e-12 or l2 < 1e-12:
        return None
    d = np.clip(np.dot(n1 / l1, n2 / l2), -1.0, 1.0)
    return float(np.arccos(d))


class ConstraintSet:
    """Arena of Attach, Stretch and Bend constraints.

    Records are appended on the host and uploaded to warp arrays on first
    use; adding a record afterwards invalidates the upload. Multipliers live
    on the device and are reset with ``reset_multipliers``.
    """

    def __init__(self, device=None):
        self._device = wp.get_device(device) if device is not None else wp.get_device("cpu")
        self._kinds = []
        self._indices = []
        self._rest = []
        self._targets = []
        self._compliance = []
        self._damping = []
        self._arrays = None

    def __len__(self) -> int:
        return len(self._kinds)

    def _append(self, kind, indices, rest=0.0, target=(0.0, 0.0, 0.0),
                compliance=0.0, damping=0.0) -> int:
        idx = list(indices) + [0] * (4 - len(indices))
        self._kinds.append(kind)
        self._indices.append(idx)
        self._rest.append(float(rest))
        self._targets.append(tuple(float(t) for t in target))
        self._compliance.append(float(compliance))
        self._damping.append(float(damping))
        self._arrays = None
        return len(self._kinds) - 1

    def add_attach(self, i: int, target) -> int:
        """Pin particle ``i`` to the world position ``target``."""
        return self._append(ATTACH, [i], target=target)

    def add_stretch(self, i: int, j: int, rest_length: float,
                    compliance: float = 0.0, damping: float = 0.0) -> int:
        """Keep particles ``i`` and ``j`` at distance ``rest_length``."""
        return self._append(STRETCH, [i, j], rest=rest_length,
                            compliance=compliance, damping=damping)

    def add_bend(self, i1: int, i2: int, i3: int, i4: int, rest_angle: float,
                 compliance: float = 0.0, damping: float = 0.0) -> int:
        """Keep the dihedral angle across edge (i1, i2) at ``rest_angle``."""
        return self._append(BEND, [i1, i2, i3, i4], rest=rest_angle,
                            compliance=compliance, damping=damping)

    def count(self, kind: int) -> int:
        return sum(1 for k in self._kinds if k == kind)

    def summary(self) -> dict:
        return {name: self.count(kind) for kind, name in KIND_NAMES.items()}

    @property
    def kinds(self) -> np.ndarray:
        return np.array(self._kinds, dtype=np.int32)

    @property
    def indices(self) -> np.ndarray:
        return np.array(self._indices, dtype=np.int32).reshape(-1, 4)

    @property
    def rest_values(self) -> np.ndarray:
        return np.array(self._rest, dtype=np.float32)

    @property
    def lambdas(self) -> np.ndarray:
        """Accumulated multipliers of the current step as a numpy array."""
        return self._upload()["lambdas"].numpy().copy()

    def _upload(self) -> dict:
        if self._arrays is not None:
            return self._arrays
        device = self._device
        n = len(self._kinds)
        self._arrays = {
            "kinds": wp.array(np.array(self._kinds, dtype=np.int32), dtype=wp.int32, device=device),
            "indices": wp.array(self.indices, dtype=wp.int32, device=device),
            "rest": wp.array(np.array(self._rest, dtype=np.float32), dtype=wp.float32, device=device),
            "targets": wp.array(
                np.array(self._targets, dtype=np.float32).reshape(-1, 3),
                dtype=wp.vec3,
                device=device,
            ),
            "compliance": wp.array(
                np.array(self._compliance, dtype=np.float32), dtype=wp.float32, device=device
            ),
            "damping": wp.array(
                np.array(self._damping, dtype=np.float32), dtype=wp.float32, device=device
            ),
            "lambdas": wp.zeros(n, dtype=wp.float32, device=device),
        }
        return self._arrays

    def reset_multipliers(self):
        """Set every accumulated multiplier back to zero."""
        arrays = self._upload()
        if len(self) == 0:
            return
        wp.launch(
            kernels.reset_float,
            dim=len(self),
            inputs=[arrays["lambdas"]],
            device=self._device,
        )

    def project(self, positions: wp.array, previous_positions: wp.array,
                inverse_masses: wp.array, dt: float, iterations: int = 1):
        """Run Gauss-Seidel passes over every constraint in insertion order.

        Args:
            positions: Positions being relaxed (vec3 array, modified in place).
            previous_positions: Positions at the start of the step.
            inverse_masses: Inverse mass per particle.
            dt: Time step.
            iterations: Number of passes.
        """
        arrays = self._upload()
        wp.launch(
            kernels.solve_constraints,
            dim=1,
            inputs=[
                positions,
                previous_positions,
                inverse_masses,
                arrays["kinds"],
                arrays["indices"],
                arrays["rest"],
                arrays["targets"],
                arrays["compliance"],
                arrays["damping"],
                arrays["lambdas"],
                float(dt),
                int(iterations),
            ],
            device=self._device,
        )


def build_constraints(positions: np.ndarray, topology: Topology, pinned: np.ndarray,
                      inverse_masses: np.ndarray, config: SolverConfig) -> ConstraintSet:
    """Create the constraint set of a cloth from its rest configuration.

    Attach constraints come first (one per pinned particle, whose inverse
    mass is forced to zero), then one stretch constraint per edge, then one
    bend constraint per edge shared by two triangles. Edges and quads whose
    particles are all pinned get no constraint.

    Args:
        positions: Rest positions, shape (n, 3).
        topology: Edge topology of the mesh.
        pinned: Indices of pinned particles.
        inverse_masses: Inverse masses, shape (n,). Modified in place.
        config: Solver configuration (compliances and damping).

    Returns:
        The constraint set, in evaluation order.
    """
    constraints = ConstraintSet(device=config.device)

    for i in pinned:
        constraints.add_attach(int(i), positions[i])
        inverse_masses[i] = 0.0

    for i, j in topology.edges:
        if inverse_masses[i] == 0.0 and inverse_masses[j] == 0.0:
            continue
        rest_length = float(np.linalg.norm(positions[i] - positions[j]))
        constraints.add_stretch(
            i, j, rest_length, config.stretch_compliance, config.stretch_damping
        )

    degenerate = 0
    for i1, i2, i3, i4 in topology.bend_quads():
        if all(inverse_masses[k] == 0.0 for k in (i1, i2, i3, i4)):
            continue
        rest_angle = dihedral_angle(positions[i1], positions[i2], positions[i3], positions[i4])
        if rest_angle is None:
            degenerate += 1
            continue
        constraints.add_bend(
            i1, i2, i3, i4, rest_angle, config.bend_compliance, config.bend_damping
        )

    if degenerate:
        logger.debug(f"Skipped {degenerate} bend constraints over degenerate triangles.")

    return constraints
