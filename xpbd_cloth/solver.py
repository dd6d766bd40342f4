"""
Extended Position-Based Dynamics solver for triangle-mesh cloth.
"""

import logging
from typing import Optional

import numpy as np
import warp as wp

from . import kernels
from .config import SolverConfig
from .constraints import ConstraintSet, build_constraints
from .exceptions import InvalidMeshError, SolverStateError
from .mesh import ClothMesh
from .topology import Topology, extract_topology

logger = logging.getLogger("xpbd_cloth")


def resolve_pins(pins, positions: np.ndarray) -> np.ndarray:
    """Turn a pin selection into an array of particle indices.

    Args:
        pins: None, a boolean mask of length n, an iterable of indices, or a
            callable taking the (n, 3) positions and returning a mask or
            indices.
        positions: Particle positions.

    Returns:
        Unique pinned indices, in selection order.
    """
    n = len(positions)
    if pins is None:
        return np.zeros(0, dtype=np.int64)
    if callable(pins):
        pins = pins(positions)

    selection = np.asarray(pins)
    if selection.dtype == bool:
        if selection.shape != (n,):
            raise InvalidMeshError(
                f"pin mask must have shape ({n},), got {selection.shape}"
            )
        return np.flatnonzero(selection)

    indices = selection.astype(np.int64).ravel()
    if len(indices) and (indices.min() < 0 or indices.max() >= n):
        raise InvalidMeshError(f"pin index out of range for {n} particles")
    return np.array(list(dict.fromkeys(indices.tolist())), dtype=np.int64)


class XPBDSolver:
    """XPBD time integrator over a particle mesh.

    Every ``step`` predicts positions from velocities and external forces,
    relaxes all constraints with ``config.iterations`` Gauss-Seidel passes,
    clamps the height into [floor, ceiling], then derives velocities from the
    displacement.

    Attributes:
        config: Solver configuration.
        pos: Committed particle positions (warp vec3 array).
        pos_pred: Predicted positions relaxed within a step.
        vel: Particle velocities.
        forces: External force per particle.
        inv_mass: Inverse mass per particle, 0 for pinned particles.
        topology: Edge topology extracted at initialization.
        constraints: Constraint arena, in evaluation order.
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config if config is not None else SolverConfig()
        self._device = self.config.wp_device
        self._initialized = False
        self._step = 0
        self._sim_t = 0.0
        self._num_particles = 0

        self.pos = None
        self.pos_pred = None
        self.vel = None
        self.forces = None
        self.inv_mass = None
        self.topology: Optional[Topology] = None
        self.constraints: Optional[ConstraintSet] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def step_count(self) -> int:
        return self._step

    @property
    def sim_time(self) -> float:
        return self._sim_t

    @property
    def num_particles(self) -> int:
        return self._num_particles

    def init_sim(self, positions, triangles, pins=None):
        """Replace the particle state and build constraints from a rest mesh.

        Args:
            positions: Rest positions, shape (n, 3).
            triangles: Triangle indices, shape (m, 3).
            pins: Particles to pin at their rest position; see ``resolve_pins``.
        """
        config = self.config
        device = self._device

        x = np.asarray(positions, dtype=np.float32)
        if x.ndim != 2 or x.shape[1] != 3 or len(x) == 0:
            raise InvalidMeshError(f"positions must have shape (n, 3), got {x.shape}")
        n = len(x)

        topology = extract_topology(triangles, n)

        w = np.full(n, config.inverse_mass, dtype=np.float32)
        gravity = np.array(config.gravity, dtype=np.float32)
        # Force is mass-scaled before pinning; predict() scales it by w again.
        f = (1.0 / w)[:, None] * gravity[None, :]

        pinned = resolve_pins(pins, x)
        constraints = build_constraints(x, topology, pinned, w, config)

        self.pos = wp.array(x, dtype=wp.vec3, device=device)
        self.pos_pred = wp.array(x, dtype=wp.vec3, device=device)
        self.vel = wp.zeros(n, dtype=wp.vec3, device=device)
        self.forces = wp.array(f.astype(np.float32), dtype=wp.vec3, device=device)
        self.inv_mass = wp.array(w, dtype=wp.float32, device=device)
        self.topology = topology
        self.constraints = constraints
        self._num_particles = n
        self._step = 0
        self._sim_t = 0.0
        self._initialized = True

        counts = constraints.summary()
        logger.info(
            f"Initialized XPBD solver: {n} particles, {topology.num_edges} edges, "
            f"{counts['attach']} attach, {counts['stretch']} stretch, {counts['bend']} bend constraints."
        )

    def init_from_mesh(self, mesh: ClothMesh, pins=None):
        self.init_sim(mesh.positions, mesh.triangles, pins)

    def _require_init(self, operation: str):
        if not self._initialized:
            raise SolverStateError(operation)

    def step(self, dt: float):
        """Advance the simulation by ``dt``.

        ``dt`` is used as given; callers are expected to keep it small
        (around 1/60 s or less).
        """
        self._require_init("step")
        config = self.config
        device = self._device
        n = self._num_particles
        dt = float(dt)

        wp.launch(
            kernels.predict,
            dim=n,
            inputs=[self.pos, self.pos_pred, self.vel, self.forces, self.inv_mass, dt],
            device=device,
        )

        self.constraints.reset_multipliers()
        self.constraints.project(
            self.pos_pred, self.pos, self.inv_mass, dt, iterations=config.iterations
        )

        wp.launch(
            kernels.clamp_height,
            dim=n,
            inputs=[self.pos_pred, float(config.floor), float(config.ceiling)],
            device=device,
        )

        wp.launch(
            kernels.commit,
            dim=n,
            inputs=[self.pos, self.pos_pred, self.vel, float(config.damping), dt],
            device=device,
        )

        self._step += 1
        self._sim_t += dt
        logger.debug(f"Step {self._step} done, t={self._sim_t:.4f}")

    def update_mesh(self, mesh: ClothMesh):
        """Copy the current positions into ``mesh`` and refresh its normals."""
        self._require_init("update_mesh")
        mesh.set_positions(self.get_positions())
        mesh.recompute_vertex_normals()

    def get_positions(self) -> np.ndarray:
        """Get current positions as numpy array."""
        self._require_init("get_positions")
        return self.pos.numpy().copy()

    def get_predicted_positions(self) -> np.ndarray:
        self._require_init("get_predicted_positions")
        return self.pos_pred.numpy().copy()

    def get_velocities(self) -> np.ndarray:
        self._require_init("get_velocities")
        return self.vel.numpy().copy()

    def get_forces(self) -> np.ndarray:
        self._require_init("get_forces")
        return self.forces.numpy().copy()

    def get_inverse_masses(self) -> np.ndarray:
        self._require_init("get_inverse_masses")
        return self.inv_mass.numpy().copy()

    def get_pinned_mask(self) -> np.ndarray:
        """Boolean mask of particles with zero inverse mass."""
        return self.get_inverse_masses() == 0.0

    def is_finite(self) -> bool:
        """False once a NaN or Inf has reached the positions.

        There is no automatic recovery; call ``init_sim`` again.
        """
        return bool(np.isfinite(self.get_positions()).all())
