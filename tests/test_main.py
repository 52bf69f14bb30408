"""Tests for the entry point: configuration lookup and exit status."""
import json
import os

import pytest

import visualization
from main import main
from utils import PROJECT_DIR, load_config, resolve_path


class FakeVisualizer:
    """Stands in for the pygame window; never asks to quit."""
    instances = []

    def __init__(self, width=64, height=48):
        self.width = width
        self.height = height
        self.presented = 0
        self.closed = False
        FakeVisualizer.instances.append(self)

    def poll(self):
        return True

    def pointer(self):
        return (0, 0)

    def present(self, pixels):
        assert pixels.shape == (self.height, self.width, 4)
        self.presented += 1

    def close(self):
        self.closed = True


@pytest.fixture
def fake_window(monkeypatch, restore_root_logger):
    FakeVisualizer.instances = []
    monkeypatch.setattr(visualization, "Visualizer", FakeVisualizer)
    return FakeVisualizer


def write_config(tmp_path, **overrides):
    config = {
        "logging": {"level": "INFO", "log_file": str(tmp_path / "logs" / "satellites.log")},
        "simulation_parameters": {"seed": 7, "satellite_count": 8, "physics_updates_per_frame": 100},
        "accelerator": {"tile_width": 8, "tile_height": 8, "allow_cpu_device": True},
        "validation": {"frames": 2, "pause_on_failure": False},
        "run_control": {"max_frames": 4, "log_throttle_frames": 1},
    }
    for section, values in overrides.items():
        config[section].update(values)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config))
    return str(path)


def test_shipped_config_is_found_from_any_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_config(resolve_path("config.json"))
    kernel_path = resolve_path(config["accelerator"]["kernel_path"])
    assert kernel_path.startswith(PROJECT_DIR)
    assert os.path.isfile(kernel_path)


def test_missing_config_exits_with_1(tmp_path, fake_window, capsys):
    assert main(["--config", str(tmp_path / "missing.json")]) == 1
    assert "FATAL" in capsys.readouterr().out
    assert FakeVisualizer.instances == []


def test_invalid_satellite_count_exits_with_1(tmp_path, fake_window):
    path = write_config(tmp_path, simulation_parameters={"satellite_count": 0})
    assert main(["--config", path]) == 1
    assert FakeVisualizer.instances[0].closed


def test_missing_kernel_exits_with_1(tmp_path, fake_window):
    path = write_config(tmp_path, accelerator={"kernel_path": str(tmp_path / "missing.cl")})
    assert main(["--config", path]) == 1
    assert FakeVisualizer.instances[0].presented == 0
    assert FakeVisualizer.instances[0].closed


def test_invalid_tile_exits_with_1(tmp_path, fake_window, opencl_device):
    path = write_config(tmp_path, accelerator={"tile_width": 0})
    assert main(["--config", path]) == 1
    assert FakeVisualizer.instances[0].presented == 0


def test_run_stops_at_max_frames(tmp_path, fake_window, opencl_device):
    path = write_config(tmp_path)
    assert main(["--config", path, "3"]) == 0
    window = FakeVisualizer.instances[0]
    assert window.presented == 4
    assert window.closed
    assert os.path.isfile(tmp_path / "logs" / "satellites.log")


def test_value_error_during_a_frame_is_not_a_config_error(tmp_path, fake_window, opencl_device, monkeypatch):
    import pipeline

    def broken_compute(self, ctx, pointer):
        raise ValueError("bad frame")

    monkeypatch.setattr(pipeline.FramePipeline, "compute", broken_compute)
    path = write_config(tmp_path)
    with pytest.raises(ValueError, match="bad frame"):
        main(["--config", path])
    assert FakeVisualizer.instances[0].closed
