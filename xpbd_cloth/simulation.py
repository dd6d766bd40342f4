"""
Simulation context tying a cloth mesh to its XPBD solver.
"""

import logging
from typing import Optional

import numpy as np

from .config import ClothConfig, SolverConfig
from .geometry import PinPredicate, make_cloth_grid, table_pins
from .mesh import ClothMesh
from .solver import XPBDSolver

logger = logging.getLogger("xpbd_cloth")


class ClothSimulation:
    """Owns the render mesh and the solver of one cloth scene.

    The host application drives it frame by frame with ``advance`` or in
    bulk with ``run``; ``reset`` rebuilds the cloth and reinitializes the
    solver.

    Attributes:
        cloth_config: Cloth resolution and extent.
        solver_config: Solver configuration.
        mesh: Render-side mesh, updated after every frame.
        solver: The XPBD solver.
    """

    def __init__(
        self,
        cloth_config: Optional[ClothConfig] = None,
        solver_config: Optional[SolverConfig] = None,
        pins=table_pins,
    ):
        """Initialize the simulation.

        Args:
            cloth_config: Cloth configuration. Defaults to ``ClothConfig()``.
            solver_config: Solver configuration. Defaults to ``SolverConfig()``.
            pins: Pin selection. A ``PinPredicate`` (such as ``pins_near``)
                is evaluated on the rest positions. Any other callable is a
                layout taking the cloth config and returning indices or a
                mask. Indices or a mask are handed over as is.
        """
        self.cloth_config = cloth_config if cloth_config is not None else ClothConfig()
        self.solver_config = solver_config if solver_config is not None else SolverConfig()
        self._pins = pins
        self.solver = XPBDSolver(self.solver_config)
        self.mesh = None
        self.reset()

    def _pin_selection(self):
        if callable(self._pins) and not isinstance(self._pins, PinPredicate):
            return self._pins(self.cloth_config)
        return self._pins

    def reset(self):
        """Rebuild the cloth at rest and reinitialize the solver."""
        positions, triangles = make_cloth_grid(self.cloth_config)
        self.mesh = ClothMesh(positions, triangles)
        self.solver.init_from_mesh(self.mesh, self._pin_selection())

    def advance(self, frame_dt: float) -> float:
        """Step the solver by one frame and refresh the mesh.

        The frame time is clamped to ``solver_config.max_dt``.

        Returns:
            The time step actually taken.
        """
        dt = min(float(frame_dt), self.solver_config.max_dt)
        self.solver.step(dt)
        self.solver.update_mesh(self.mesh)
        return dt

    def run(self, steps: int, dt: float = 0.016, record: bool = True) -> Optional[np.ndarray]:
        """Run the simulation for multiple frames.

        Args:
            steps: Number of frames.
            dt: Frame time, clamped like in ``advance``.
            record: Whether to record the trajectory.

        Returns:
            If record=True, an array of shape (steps, num_particles, 3).
            Otherwise None.
        """
        trajectory = [] if record else None

        for _ in range(steps):
            self.advance(dt)
            if record:
                trajectory.append(self.mesh.positions.copy())

        if not self.solver.is_finite():
            logger.warning(
                f"Non-finite positions after {self.solver.step_count} steps; reset to recover."
            )

        if record:
            return np.array(trajectory)
        return None
