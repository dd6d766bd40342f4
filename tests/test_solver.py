import numpy as np
import pytest

from xpbd_cloth import (
    ATTACH,
    ClothConfig,
    ClothMesh,
    InvalidMeshError,
    SolverConfig,
    SolverStateError,
    XPBDSolver,
    corner_pins,
    make_cloth_grid,
    pins_near,
)

FLOOR = 0.0001 - 1.0
CEILING = 1.0


def single_triangle():
    positions = np.array(
        [[0.0, 0.5, 0.0], [1.0, 0.5, 0.0], [0.0, 0.5, 1.0]], dtype=np.float32
    )
    return positions, np.array([[0, 1, 2]], dtype=np.int32)


def test_step_before_init_raises(solver_config):
    solver = XPBDSolver(solver_config)
    assert not solver.initialized
    with pytest.raises(SolverStateError, match="step"):
        solver.step(0.016)


def test_init_sim_builds_state_and_resets_clock(solver_config, small_cloth):
    config, positions, triangles = small_cloth
    solver = XPBDSolver(solver_config)
    solver.init_sim(positions, triangles, corner_pins(config))

    for _ in range(3):
        solver.step(0.016)
    assert solver.step_count == 3
    assert solver.sim_time == pytest.approx(0.048)

    solver.init_sim(positions, triangles, corner_pins(config))
    assert solver.step_count == 0
    assert solver.sim_time == 0.0
    assert solver.num_particles == config.num_particles
    np.testing.assert_array_equal(solver.get_positions(), positions)
    np.testing.assert_array_equal(solver.get_velocities(), 0.0)


def test_reinit_replaces_particle_arrays(solver_config, small_cloth):
    _, positions, triangles = small_cloth
    solver = XPBDSolver(solver_config)
    solver.init_sim(positions, triangles)

    tri_positions, tri = single_triangle()
    solver.init_sim(tri_positions, tri)

    assert solver.num_particles == 3
    for array in (
        solver.get_positions(),
        solver.get_predicted_positions(),
        solver.get_velocities(),
        solver.get_forces(),
    ):
        assert array.shape == (3, 3)
    assert solver.get_inverse_masses().shape == (3,)


def test_pin_selection_forms(solver_config, small_cloth):
    config, positions, triangles = small_cloth
    solver = XPBDSolver(solver_config)

    mask = np.zeros(len(positions), dtype=bool)
    mask[[0, 5]] = True
    solver.init_sim(positions, triangles, mask)
    assert np.flatnonzero(solver.get_pinned_mask()).tolist() == [0, 5]

    solver.init_sim(positions, triangles, [7, 3, 7])
    assert solver.constraints.count(ATTACH) == 2
    assert list(solver.constraints.indices[:2, 0]) == [7, 3]

    solver.init_sim(positions, triangles, pins_near(positions[0], 1e-3))
    assert np.flatnonzero(solver.get_pinned_mask()).tolist() == [0]

    with pytest.raises(InvalidMeshError):
        solver.init_sim(positions, triangles, [len(positions)])
    with pytest.raises(InvalidMeshError):
        solver.init_sim(positions, triangles, mask[:-1])


def test_bad_positions_raise(solver_config):
    solver = XPBDSolver(solver_config)
    with pytest.raises(InvalidMeshError):
        solver.init_sim(np.zeros((4, 2)), [[0, 1, 2]])
    with pytest.raises(InvalidMeshError):
        solver.init_sim(np.zeros((3, 3)), [[0, 1, 3]])


def test_floor_and_ceiling_hold_after_every_step(small_cloth):
    config, positions, triangles = small_cloth
    positions = positions.copy()
    positions[:, 1] = np.linspace(-0.5, 1.5, len(positions))

    solver = XPBDSolver(SolverConfig(device="cpu", gravity=(0.0, -30.0, 0.0)))
    solver.init_sim(positions, triangles)

    for _ in range(60):
        solver.step(0.016)
        heights = solver.get_positions()[:, 1]
        assert heights.min() >= np.float32(FLOOR)
        assert heights.max() <= np.float32(CEILING)


def test_free_cloth_comes_to_rest_on_floor(solver_config, small_cloth):
    _, positions, triangles = small_cloth
    solver = XPBDSolver(solver_config)
    solver.init_sim(positions, triangles)

    for _ in range(120):
        solver.step(0.016)

    np.testing.assert_allclose(solver.get_positions()[:, 1], FLOOR, atol=1e-4)


def test_pinned_particles_do_not_move(solver_config, small_cloth):
    config, positions, triangles = small_cloth
    pins = corner_pins(config)
    solver = XPBDSolver(solver_config)
    solver.init_sim(positions, triangles, pins)

    for _ in range(50):
        solver.step(0.016)

    np.testing.assert_array_equal(solver.get_positions()[pins], positions[pins])
    np.testing.assert_array_equal(solver.get_velocities()[pins], 0.0)
    assert np.all(solver.get_inverse_masses()[pins] == 0.0)


def test_pinned_particle_without_force_stays_put():
    positions, triangles = single_triangle()
    solver = XPBDSolver(SolverConfig(device="cpu", gravity=(0.0, 0.0, 0.0)))
    solver.init_sim(positions, triangles, [0])

    for _ in range(25):
        solver.step(0.01)

    np.testing.assert_array_equal(solver.get_positions()[0], positions[0])


@pytest.mark.parametrize("inverse_mass", [0.5, 1.0, 2.0])
def test_gravity_is_scaled_by_mass_then_by_inverse_mass(inverse_mass):
    # Forces are stored as m * g and prediction multiplies by w again,
    # so free fall does not depend on the particle mass.
    positions, triangles = single_triangle()
    solver = XPBDSolver(
        SolverConfig(device="cpu", inverse_mass=inverse_mass, gravity=(0.0, -9.8, 0.0))
    )
    solver.init_sim(positions, triangles)

    np.testing.assert_allclose(solver.get_forces()[:, 1], -9.8 / inverse_mass, rtol=1e-6)

    solver.step(0.01)
    np.testing.assert_allclose(solver.get_velocities()[:, 1], -0.098, rtol=1e-4)
    np.testing.assert_allclose(
        solver.get_positions()[:, 1], 0.5 - 0.098 * 0.01, atol=1e-6
    )


def test_global_damping_scales_committed_velocity():
    positions, triangles = single_triangle()
    velocities = []
    for damping in (0.0, 0.5):
        solver = XPBDSolver(SolverConfig(device="cpu", damping=damping))
        solver.init_sim(positions, triangles)
        solver.step(0.01)
        velocities.append(solver.get_velocities()[:, 1])

    np.testing.assert_allclose(velocities[1], 0.5 * velocities[0], rtol=1e-5)


def test_update_mesh_copies_positions_and_normals(solver_config, small_cloth):
    config, positions, triangles = small_cloth
    mesh = ClothMesh(positions, triangles)
    solver = XPBDSolver(solver_config)
    solver.init_from_mesh(mesh, corner_pins(config))

    for _ in range(10):
        solver.step(0.016)
    solver.update_mesh(mesh)

    np.testing.assert_array_equal(mesh.positions, solver.get_positions())
    np.testing.assert_allclose(np.linalg.norm(mesh.normals, axis=1), 1.0, atol=1e-5)


def test_update_mesh_requires_init(solver_config, small_cloth):
    _, positions, triangles = small_cloth
    with pytest.raises(SolverStateError):
        XPBDSolver(solver_config).update_mesh(ClothMesh(positions, triangles))


def test_nan_positions_are_reported(solver_config):
    positions, triangles = single_triangle()
    solver = XPBDSolver(solver_config)
    solver.init_sim(positions, triangles)
    assert solver.is_finite()

    solver.step(float("nan"))
    assert not solver.is_finite()
