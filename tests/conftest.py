"""Pytest configuration, test categorization and shared fixtures.

Tests live in a flat `tests/` layout and are categorized into `unit` and
`e2e` via markers so CI can run targeted subsets.
"""

from __future__ import annotations

import os
import pathlib
import sys

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from xpbd_cloth import ClothConfig, SolverConfig, make_cloth_grid  # noqa: E402


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Auto-apply test category markers based on filename conventions."""
    for item in items:
        path = pathlib.Path(str(item.fspath))
        name = path.name.lower()

        if "e2e" in name or "end_to_end" in name:
            item.add_marker(pytest.mark.e2e)
            continue

        item.add_marker(pytest.mark.unit)


@pytest.fixture
def solver_config() -> SolverConfig:
    return SolverConfig(device="cpu")


@pytest.fixture
def small_cloth():
    """A 6x6 cloth of 1x1 extent at height 0: (config, positions, triangles)."""
    config = ClothConfig(rx=6, rz=6, width=1.0, height=1.0)
    positions, triangles = make_cloth_grid(config)
    return config, positions, triangles


@pytest.fixture
def flat_quad():
    """Two triangles sharing edge (0, 1), apexes 2 and 3 on opposite sides."""
    positions = np.array(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.5, 0.0, 1.0],
            [0.5, 0.0, -1.0],
        ],
        dtype=np.float32,
    )
    triangles = np.array([[0, 1, 2], [1, 0, 3]], dtype=np.int32)
    return positions, triangles
