"""Tests for configuration, kernel source loading and the command line."""
import json

import pytest

from main import parse_args
from utils import load_config, load_kernel_source, resolve_path


def test_shipped_kernel_source_loads():
    source = load_kernel_source("kernels/color_field.cl")
    assert "__kernel void shade" in source


def test_relative_paths_resolve_to_the_project(tmp_path):
    assert resolve_path(str(tmp_path)) == str(tmp_path)
    assert resolve_path("kernels/color_field.cl").endswith("kernels/color_field.cl")


def test_oversize_kernel_source_is_rejected(tmp_path):
    path = tmp_path / "big.cl"
    path.write_text("// " + "x" * 200, encoding="utf-8")
    with pytest.raises(ValueError):
        load_kernel_source(str(path), max_bytes=100)


def test_kernel_source_is_read_completely(tmp_path):
    body = "__kernel void shade() {}\n" * 5000
    path = tmp_path / "long.cl"
    path.write_text(body, encoding="utf-8")
    assert load_kernel_source(str(path)) == body


def test_missing_kernel_source_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_kernel_source(str(tmp_path / "missing.cl"))


def test_load_config_reads_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"validation": {"frames": 3}}))
    assert load_config(str(path))["validation"]["frames"] == 3


def test_load_config_rejects_bad_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(json.JSONDecodeError):
        load_config(str(path))


def test_seed_argument_is_optional():
    assert parse_args([]).seed is None
    args = parse_args(["42", "--config", "other.json"])
    assert args.seed == 42
    assert args.config == "other.json"
