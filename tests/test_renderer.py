"""Tests for launch geometry and the per-frame dispatch sequence."""
import numpy as np
import pytest

import renderer
from renderer import BUFFER_ARGUMENTS, ColorFieldRenderer, launch_geometry


@pytest.mark.parametrize(
    "width, height, tile_w, tile_h, expected",
    [
        (1920, 1024, 32, 32, (1920, 1024)),
        (1921, 1025, 32, 32, (1952, 1056)),
        (70, 45, 8, 8, (72, 48)),
        (1, 1, 16, 16, (16, 16)),
        (100, 30, 7, 5, (105, 30)),
    ],
)
def test_launch_grid_is_smallest_tile_multiple(width, height, tile_w, tile_h, expected):
    global_size, local_size = launch_geometry(width, height, tile_w, tile_h)
    assert global_size == expected
    assert local_size == (tile_w, tile_h)
    assert global_size[0] >= width and global_size[0] - width < tile_w
    assert global_size[1] >= height and global_size[1] - height < tile_h


def test_every_pixel_is_covered_exactly_once():
    width, height = 37, 21
    (gx, gy), _ = launch_geometry(width, height, 8, 4)
    coverage = np.zeros((height, width), dtype=np.int32)
    for y in range(gy):
        for x in range(gx):
            # Out-of-range lanes return early in the kernel.
            if x < width and y < height:
                coverage[y, x] += 1
    assert np.all(coverage == 1)


@pytest.mark.parametrize("tile", [(0, 32), (32, 0), (-8, 8)])
def test_invalid_tile_is_rejected(tile):
    with pytest.raises(ValueError):
        launch_geometry(640, 480, *tile)


class FakeKernel:
    def __init__(self, calls):
        self.calls = calls
        self.args = None

    def set_args(self, *args):
        self.args = args
        self.calls.append(('set_args',))


class FakeQueue:
    def __init__(self, calls):
        self.calls = calls

    def finish(self):
        self.calls.append(('finish',))


class FakeSession:
    """Stands in for an open AcceleratorSession; buffers are plain names."""
    def __init__(self, satellite_count, width, height):
        self.calls = []
        self.satellite_count = satellite_count
        self.width = width
        self.height = height
        self.kernel_max_work_group_size = 1024
        self.queue = FakeQueue(self.calls)
        self.kernel = FakeKernel(self.calls)
        self.buffers = {name: name for name in BUFFER_ARGUMENTS}

    @property
    def is_open(self):
        return bool(self.buffers)


@pytest.fixture
def recorded(monkeypatch, small_satellites):
    session = FakeSession(small_satellites.satellite_count, 70, 45)

    def fake_copy(queue, dest, src, is_blocking=True):
        target = dest if isinstance(dest, str) else src
        session.calls.append(('copy', target, is_blocking))

    def fake_launch(queue, kernel, global_size, local_size):
        session.calls.append(('launch', global_size, local_size))

    monkeypatch.setattr(renderer.cl, "enqueue_copy", fake_copy)
    monkeypatch.setattr(renderer.cl, "enqueue_nd_range_kernel", fake_launch)
    return session


def test_identity_colors_are_not_restaged(recorded, small_satellites):
    r = ColorFieldRenderer(recorded, tile_width=8, tile_height=8)
    for _ in range(3):
        r.render(small_satellites, (35, 22))

    copied = [call[1] for call in recorded.calls if call[0] == 'copy']
    assert copied.count('pos_x') == 3
    assert copied.count('pos_y') == 3
    assert copied.count('pixels') == 3
    assert not {'id_r', 'id_g', 'id_b'} & set(copied)


def test_frame_sequence_is_synchronous(recorded, small_satellites):
    r = ColorFieldRenderer(recorded, tile_width=8, tile_height=8)
    pixels = r.render(small_satellites, (35, 22))

    assert recorded.calls == [
        ('copy', 'pos_x', False),
        ('copy', 'pos_y', False),
        ('set_args',),
        ('launch', (72, 48), (8, 8)),
        ('finish',),
        ('copy', 'pixels', True),
    ]
    assert pixels.shape == (45, 70, 4) and pixels.dtype == np.uint8


def test_kernel_arguments_follow_the_documented_order(recorded, small_satellites):
    r = ColorFieldRenderer(recorded, tile_width=8, tile_height=8,
                           black_hole_radius=4.5, satellite_radius=3.16)
    r.render(small_satellites, (30, 20))

    args = recorded.kernel.args
    assert list(args[:6]) == list(BUFFER_ARGUMENTS)
    assert args[6] == np.int32(4)
    assert (args[7], args[8]) == (np.int32(70), np.int32(45))
    assert args[9] == np.float32(4.5) * np.float32(4.5)
    assert args[10] == np.float32(3.16) * np.float32(3.16)
    assert (args[11], args[12]) == (np.int32(30), np.int32(20))
    assert all(isinstance(a, (np.int32, np.float32)) for a in args[6:])


def test_staged_positions_match_the_satellites(recorded, small_satellites):
    r = ColorFieldRenderer(recorded, tile_width=8, tile_height=8)
    r.stage_positions(small_satellites)
    np.testing.assert_array_equal(r._host_pos_x, small_satellites.positions[:, 0])
    np.testing.assert_array_equal(r._host_pos_y, small_satellites.positions[:, 1])
