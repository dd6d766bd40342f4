"""
Cloth geometry creation functions.

These functions create the rest positions, triangle indices and pin
selections that the solver is initialized from.
"""

from typing import Callable, Tuple

import numpy as np

from .config import ClothConfig


def grid_index(config: ClothConfig, x_i: int, z_i: int) -> int:
    """Particle index of grid node (x_i, z_i)."""
    return x_i * config.rz + z_i


def make_cloth_grid(config: ClothConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Create a rectangular cloth in the XZ plane.

    The cloth is centered on ``config.origin`` at height ``config.y``. Nodes
    are ordered x-major, and every grid cell is split into two triangles
    along the same diagonal.

    Args:
        config: Cloth configuration.

    Returns:
        Tuple of:
            - positions: Array of shape (rx * rz, 3).
            - triangles: Array of shape (2 * (rx - 1) * (rz - 1), 3).
    """
    rx, rz = config.rx, config.rz
    x_step = config.width / (rx - 1)
    z_step = config.height / (rz - 1)
    start_x = config.origin[0] - 0.5 * config.width
    start_z = config.origin[1] - 0.5 * config.height

    positions = np.zeros((rx * rz, 3), dtype=np.float32)
    triangles = []
    for x_i in range(rx):
        for z_i in range(rz):
            idx = grid_index(config, x_i, z_i)
            positions[idx] = (start_x + x_step * x_i, config.y, start_z + z_step * z_i)

            if x_i > 0 and z_i > 0:
                triangles.append((idx - 1 - rz, idx - rz, idx - 1))
                triangles.append((idx - rz, idx, idx - 1))

    return positions, np.array(triangles, dtype=np.int32)


def corner_pins(config: ClothConfig) -> np.ndarray:
    """Indices of the four corners of the cloth."""
    rx, rz = config.rx, config.rz
    return np.array(
        [
            grid_index(config, 0, 0),
            grid_index(config, 0, rz - 1),
            grid_index(config, rx - 1, 0),
            grid_index(config, rx - 1, rz - 1),
        ],
        dtype=np.int32,
    )


def region_pins(config: ClothConfig, x_range: Tuple[int, int],
                z_range: Tuple[int, int]) -> np.ndarray:
    """Indices of a rectangular block of grid nodes, like a table under the cloth.

    Args:
        config: Cloth configuration.
        x_range: Half-open range of x node indices.
        z_range: Half-open range of z node indices.
    """
    x0, x1 = max(0, x_range[0]), min(config.rx, x_range[1])
    z0, z1 = max(0, z_range[0]), min(config.rz, z_range[1])
    return np.array(
        [grid_index(config, x_i, z_i) for x_i in range(x0, x1) for z_i in range(z0, z1)],
        dtype=np.int32,
    )


def table_pins(config: ClothConfig) -> np.ndarray:
    """Central support patch spanning about 60% of x and 50% of z."""
    x0 = int(0.2 * config.rx)
    z0 = int(0.25 * config.rz)
    return region_pins(config, (x0, config.rx - x0), (z0, config.rz - z0))


class PinPredicate:
    """Pin selection evaluated on the rest positions the solver is initialized with.

    Instances are called with an (n, 3) position array and return a boolean
    mask. ``ClothSimulation`` hands them to the solver unchanged, while other
    callables are treated as layouts taking the cloth config.
    """

    def __init__(self, select: Callable[[np.ndarray], np.ndarray]):
        self.select = select

    def __call__(self, positions: np.ndarray) -> np.ndarray:
        return self.select(np.asarray(positions))


def pins_near(center, radius: float) -> PinPredicate:
    """Pin predicate selecting every particle within ``radius`` of ``center``."""
    center = np.asarray(center, dtype=np.float32)

    def select(positions: np.ndarray) -> np.ndarray:
        return np.linalg.norm(positions - center, axis=1) <= radius

    return PinPredicate(select)
