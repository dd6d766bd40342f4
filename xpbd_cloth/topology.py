"""
Edge and triangle-adjacency extraction from a triangle index list.

Every triangle contributes its three undirected edges. For each edge the
vertex opposite to it in the triangle (the apex) is recorded, so an edge with
one apex lies on the boundary and an edge with two apexes is shared by two
triangles and can carry a bend constraint.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .exceptions import InvalidMeshError

logger = logging.getLogger("xpbd_cloth")

Edge = Tuple[int, int]


@dataclass
class Topology:
    """Undirected edges of a triangle mesh and their opposite vertices.

    Attributes:
        edges: Deduplicated edges as sorted ``(i, j)`` pairs, in sorted order.
        opposite: Map from edge to the apexes of its adjacent triangles, in
            triangle order.
    """

    edges: List[Edge] = field(default_factory=list)
    opposite: Dict[Edge, List[int]] = field(default_factory=dict)

    def boundary_edges(self) -> List[Edge]:
        return [e for e in self.edges if len(self.opposite[e]) == 1]

    def interior_edges(self) -> List[Edge]:
        return [e for e in self.edges if len(self.opposite[e]) == 2]

    def non_manifold_edges(self) -> List[Edge]:
        return [e for e in self.edges if len(self.opposite[e]) > 2]

    def bend_quads(self) -> List[Tuple[int, int, int, int]]:
        """Return ``(i1, i2, i3, i4)`` for every edge shared by two or more triangles.

        ``(i1, i2)`` is the shared edge and ``i3``, ``i4`` are the first two
        apexes recorded for it. Edges with more than two adjacent triangles
        contribute only their first two.
        """
        quads = []
        for edge in self.edges:
            apexes = self.opposite[edge]
            if len(apexes) < 2:
                continue
            quads.append((edge[0], edge[1], apexes[0], apexes[1]))
        return quads

    @property
    def num_edges(self) -> int:
        return len(self.edges)


def validate_triangles(triangles, num_particles: Optional[int] = None) -> np.ndarray:
    """Convert ``triangles`` to an ``(n, 3)`` int array and check its indices.

    Raises:
        InvalidMeshError: If the array has the wrong shape or references a
            particle outside ``[0, num_particles)``.
    """
    tris = np.asarray(triangles, dtype=np.int64)
    if tris.size == 0:
        return tris.reshape(0, 3)
    if tris.ndim != 2 or tris.shape[1] != 3:
        raise InvalidMeshError(
            f"triangles must have shape (n, 3), got {tris.shape}"
        )
    if tris.min() < 0:
        raise InvalidMeshError("triangle indices must be non-negative")
    if num_particles is not None and tris.max() >= num_particles:
        raise InvalidMeshError(
            f"triangle index {int(tris.max())} out of range for {num_particles} particles"
        )
    return tris


def extract_topology(triangles, num_particles: Optional[int] = None) -> Topology:
    """Build the edge set and per-edge apex lists of a triangle mesh.

    Args:
        triangles: Sequence of index triples.
        num_particles: If given, indices are checked against it.

    Returns:
        The mesh topology.
    """
    tris = validate_triangles(triangles, num_particles)

    opposite: Dict[Edge, List[int]] = {}
    skipped = 0
    for tri in tris:
        a, b, c = (int(v) for v in tri)
        if a == b or b == c or a == c:
            skipped += 1
            continue
        for k in range(3):
            i, j, apex = (a, b, c)[k], (a, b, c)[(k + 1) % 3], (a, b, c)[(k + 2) % 3]
            edge = (i, j) if i < j else (j, i)
            opposite.setdefault(edge, []).append(apex)

    if skipped:
        logger.debug(f"Skipped {skipped} degenerate triangles with repeated vertices.")

    topology = Topology(edges=sorted(opposite), opposite=opposite)

    non_manifold = topology.non_manifold_edges()
    if non_manifold:
        logger.warning(
            f"{len(non_manifold)} non-manifold edges found; "
            "bending uses their first two adjacent triangles."
        )
    return topology
