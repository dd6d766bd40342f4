import numpy as np
import pytest

from main import main
from xpbd_cloth import (
    ClothConfig,
    ClothSimulation,
    SolverConfig,
    XPBDSolver,
    corner_pins,
    make_cloth_grid,
    pins_near,
)


def test_pinned_corner_cloth_stays_bounded_for_500_steps():
    cloth = ClothConfig(rx=12, rz=12, width=1.0, height=1.0, y=0.5)
    positions, triangles = make_cloth_grid(cloth)
    solver = XPBDSolver(SolverConfig(device="cpu"))
    solver.init_sim(positions, triangles, corner_pins(cloth))

    for _ in range(500):
        solver.step(0.016)

    final = solver.get_positions()
    assert np.isfinite(final).all()
    assert np.abs(final).max() < 100.0

    # The middle of the cloth sags under gravity while the corners hold.
    center = (cloth.rx // 2) * cloth.rz + cloth.rz // 2
    assert final[center, 1] < 0.5
    np.testing.assert_array_equal(final[corner_pins(cloth)], positions[corner_pins(cloth)])


def test_stiff_cloth_keeps_edge_lengths_close_to_rest():
    cloth = ClothConfig(rx=8, rz=8, width=0.7, height=0.7)
    positions, triangles = make_cloth_grid(cloth)
    solver = XPBDSolver(SolverConfig(device="cpu", stretch_compliance=0.0))
    solver.init_sim(positions, triangles, corner_pins(cloth))

    for _ in range(100):
        solver.step(0.016)

    final = solver.get_positions()
    edges = np.array(solver.topology.edges)
    rest = np.linalg.norm(positions[edges[:, 0]] - positions[edges[:, 1]], axis=1)
    current = np.linalg.norm(final[edges[:, 0]] - final[edges[:, 1]], axis=1)
    assert np.max(np.abs(current - rest) / rest) < 0.2


def test_simulation_context_clamps_frame_time():
    sim = ClothSimulation(
        ClothConfig(rx=5, rz=5), SolverConfig(device="cpu", max_dt=0.017)
    )

    assert sim.advance(0.1) == pytest.approx(0.017)
    assert sim.advance(0.005) == pytest.approx(0.005)
    assert sim.solver.step_count == 2
    assert sim.solver.sim_time == pytest.approx(0.022)
    np.testing.assert_array_equal(sim.mesh.positions, sim.solver.get_positions())


def test_simulation_run_records_trajectory_and_resets():
    cloth = ClothConfig(rx=6, rz=6)
    sim = ClothSimulation(cloth, SolverConfig(device="cpu"), pins=corner_pins)

    trajectory = sim.run(20, dt=0.016)
    assert trajectory.shape == (20, cloth.num_particles, 3)
    assert trajectory[-1, :, 1].min() < 0.0

    sim.reset()
    assert sim.solver.step_count == 0
    assert np.all(sim.mesh.positions[:, 1] == 0.0)
    assert sim.run(3, record=False) is None


def test_cli_run_saves_trajectory(tmp_path):
    out = tmp_path / "trajectory.npy"
    trajectory = main(
        [
            "run",
            "--rx", "5",
            "--rz", "6",
            "--steps", "4",
            "--pins", "corners",
            "--save", str(out),
        ]
    )

    assert out.exists()
    saved = np.load(out)
    assert saved.shape == (4, 30, 3)
    np.testing.assert_array_equal(saved, trajectory)


def test_cli_without_command_exits():
    with pytest.raises(SystemExit):
        main([])


def test_cli_reports_bad_configuration():
    with pytest.raises(SystemExit) as excinfo:
        main(["run", "--iterations", "0", "--steps", "1"])
    assert excinfo.value.code == 2


def test_simulation_accepts_position_predicate_and_config_layout():
    cloth = ClothConfig(rx=5, rz=5, width=1.0, height=1.0)
    positions, _ = make_cloth_grid(cloth)

    direct = ClothSimulation(cloth, SolverConfig(device="cpu"), pins=pins_near(positions[0], 1e-3))
    wrapped = ClothSimulation(
        cloth, SolverConfig(device="cpu"), pins=lambda config: pins_near(positions[0], 1e-3)
    )

    for sim in (direct, wrapped):
        mask = sim.solver.get_pinned_mask()
        assert mask[0]
        assert mask.sum() == 1


def test_cli_rejects_non_positive_frame_stride(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["run", "--steps", "1", "--frame-stride", "0"])
    assert excinfo.value.code == 2
    assert "--frame-stride" in capsys.readouterr().err
