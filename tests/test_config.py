import pytest

from xpbd_cloth import ClothConfig, ConfigurationError, SolverConfig
from xpbd_cloth.geometry import corner_pins, region_pins, table_pins


def test_solver_defaults():
    config = SolverConfig()
    assert config.iterations == 20
    assert config.stretch_compliance == 1e-9
    assert config.bend_compliance == 10.0
    assert config.stretch_damping == 0.9
    assert config.bend_damping == 0.05
    assert config.gravity == (0.0, -9.8, 0.0)
    assert config.floor == pytest.approx(-0.9999)
    assert config.ceiling == 1.0
    assert config.device == "cpu"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"iterations": 0},
        {"stretch_compliance": -1.0},
        {"bend_compliance": -1.0},
        {"bend_damping": -0.1},
        {"damping": 1.5},
        {"inverse_mass": 0.0},
        {"floor": 2.0},
        {"gravity": (0.0, -9.8)},
        {"gravity": -9.8},
        {"gravity": ("down", 0.0, 0.0)},
        {"max_dt": 0.0},
    ],
)
def test_invalid_solver_config_raises(kwargs):
    with pytest.raises(ConfigurationError):
        SolverConfig(device="cpu", **kwargs)


@pytest.mark.parametrize("kwargs", [{"rx": 1}, {"rz": 0}, {"width": 0.0}, {"height": -1.0}])
def test_invalid_cloth_config_raises(kwargs):
    with pytest.raises(ConfigurationError):
        ClothConfig(**kwargs)


def test_pin_layouts():
    config = ClothConfig(rx=15, rz=30)

    assert sorted(corner_pins(config).tolist()) == [0, 29, 420, 449]

    table = table_pins(config)
    assert len(table) == 9 * 16
    assert table.min() == 3 * 30 + 7
    assert table.max() == 11 * 30 + 22

    assert len(region_pins(config, (-5, 2), (28, 99))) == 2 * 2
