"""
Render-side triangle mesh that the solver writes its positions into.
"""

from typing import Tuple

import numpy as np

from .exceptions import InvalidMeshError
from .topology import validate_triangles


class ClothMesh:
    """Vertex positions, triangle indices and per-vertex normals.

    Attributes:
        positions: Array of shape (n, 3).
        triangles: Array of shape (m, 3).
        normals: Unit per-vertex normals, shape (n, 3).
    """

    def __init__(self, positions, triangles):
        positions = np.asarray(positions, dtype=np.float32)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise InvalidMeshError(
                f"positions must have shape (n, 3), got {positions.shape}"
            )
        self.positions = positions.copy()
        self.triangles = validate_triangles(triangles, len(positions)).astype(np.int32)
        self.normals = np.zeros_like(self.positions)
        self.recompute_vertex_normals()

    def set_positions(self, positions):
        positions = np.asarray(positions, dtype=np.float32)
        if positions.shape != self.positions.shape:
            raise InvalidMeshError(
                f"expected positions of shape {self.positions.shape}, got {positions.shape}"
            )
        self.positions[...] = positions

    def recompute_vertex_normals(self):
        """Area-weighted vertex normals from the current positions.

        Each vertex accumulates the unnormalized normals of its triangles; the
        sum is then normalized. Vertices without a usable normal get zero.
        """
        normals = np.zeros_like(self.positions)
        if len(self.triangles):
            p = self.positions
            t = self.triangles
            face_normals = np.cross(p[t[:, 1]] - p[t[:, 0]], p[t[:, 2]] - p[t[:, 0]])
            for k in range(3):
                np.add.at(normals, t[:, k], face_normals)

        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        self.normals = np.divide(
            normals, lengths, out=np.zeros_like(normals), where=lengths > 1e-12
        )
        return self.normals

    def compute_bounding_sphere(self) -> Tuple[np.ndarray, float]:
        """Center of the vertex bounding box and the radius enclosing all vertices."""
        lo = self.positions.min(axis=0)
        hi = self.positions.max(axis=0)
        center = 0.5 * (lo + hi)
        radius = float(np.linalg.norm(self.positions - center, axis=1).max())
        return center, radius
