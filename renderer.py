# renderer.py
"""
Dispatches the color field kernel for one frame.

This module defines the ColorFieldRenderer class, which stages the current
satellite positions into device memory, binds the kernel arguments, launches
the kernel over a tile-padded 2D grid and reads the finished pixel buffer
back into host memory. The pipeline is synchronous: `render` returns only
after the readback completed.
"""
import logging
import numpy as np
import pyopencl as cl
from typing import Tuple

from accelerator import AcceleratorSession, AcceleratorError, cl_step
from satellites import SatelliteSystem
from constants import (
    BLACK_HOLE_RADIUS, SATELLITE_RADIUS, TILE_WIDTH, TILE_HEIGHT
)

# --- Data Contracts ---
#
# launch_geometry(width, height, tile_width, tile_height) -> (global, local):
#   - Outputs: global size, the smallest tile multiples >= (width, height),
#     and the local size (tile_width, tile_height).
#
# class ColorFieldRenderer:
#   - render(self, satellites: SatelliteSystem, attractor: Tuple[int, int]) -> np.ndarray:
#     - Inputs:
#       - satellites: Current satellite state. Only positions are staged.
#       - attractor: Integer pixel position of the black hole.
#     - Outputs: The host pixel buffer, uint8 (height, width, 4) BGRA.
#       The same array object is reused every frame.
#
# Kernel argument order:
#   0 pixels, 1 pos_x, 2 pos_y, 3 id_r, 4 id_g, 5 id_b, 6 satellite_count,
#   7 width, 8 height, 9 black_hole_radius^2, 10 satellite_radius^2,
#   11 attractor_x, 12 attractor_y

BUFFER_ARGUMENTS = ('pixels', 'pos_x', 'pos_y', 'id_r', 'id_g', 'id_b')


def launch_geometry(width: int, height: int, tile_width: int, tile_height: int) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """Rounds the display size up to whole tiles."""
    if tile_width <= 0 or tile_height <= 0:
        raise ValueError(f"Tile size must be positive, got {tile_width}x{tile_height}.")
    global_x = (width + tile_width - 1) // tile_width * tile_width
    global_y = (height + tile_height - 1) // tile_height * tile_height
    return (global_x, global_y), (tile_width, tile_height)


class ColorFieldRenderer:
    """
    Renders the satellite color field on the accelerator.
    """
    def __init__(
        self,
        session: AcceleratorSession,
        tile_width: int = TILE_WIDTH,
        tile_height: int = TILE_HEIGHT,
        black_hole_radius: float = BLACK_HOLE_RADIUS,
        satellite_radius: float = SATELLITE_RADIUS,
    ):
        self.session = session
        self.width = session.width
        self.height = session.height
        self.satellite_count = session.satellite_count

        self.global_size, self.local_size = launch_geometry(
            self.width, self.height, tile_width, tile_height
        )
        self.black_hole_r2 = np.float32(black_hole_radius) * np.float32(black_hole_radius)
        self.satellite_r2 = np.float32(satellite_radius) * np.float32(satellite_radius)

        # Host memory. The position arrays back non-blocking writes and must
        # stay alive until the queue is finished.
        self.pixels = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        self._host_pos_x = np.zeros(self.satellite_count, dtype=np.float32)
        self._host_pos_y = np.zeros(self.satellite_count, dtype=np.float32)

        tile_area = tile_width * tile_height
        max_wg = session.kernel_max_work_group_size
        if max_wg and tile_area > max_wg:
            logging.warning(
                f"Tile {tile_width}x{tile_height} ({tile_area} work items) exceeds the "
                f"kernel max work-group size {max_wg}; the launch will be rejected."
            )

        logging.info(
            f"Color field renderer initialized: {self.width}x{self.height} px, "
            f"grid {self.global_size[0]}x{self.global_size[1]}, "
            f"tile {self.local_size[0]}x{self.local_size[1]}."
        )

    @classmethod
    def from_config(cls, session: AcceleratorSession, config: dict) -> "ColorFieldRenderer":
        acc_params = config.get('accelerator', {})
        sim_params = config.get('simulation_parameters', {})
        return cls(
            session,
            tile_width=int(acc_params.get('tile_width', TILE_WIDTH)),
            tile_height=int(acc_params.get('tile_height', TILE_HEIGHT)),
            black_hole_radius=float(sim_params.get('black_hole_radius', BLACK_HOLE_RADIUS)),
            satellite_radius=float(sim_params.get('satellite_radius', SATELLITE_RADIUS)),
        )

    def stage_positions(self, satellites: SatelliteSystem) -> None:
        """Enqueues non-blocking writes of the satellite positions."""
        if satellites.satellite_count != self.satellite_count:
            raise AcceleratorError(
                f"Session holds {self.satellite_count} satellites, got {satellites.satellite_count}."
            )
        self._host_pos_x[:] = satellites.positions[:, 0]
        self._host_pos_y[:] = satellites.positions[:, 1]

        buffers = self.session.buffers
        with cl_step("Position staging"):
            cl.enqueue_copy(self.session.queue, buffers['pos_x'], self._host_pos_x, is_blocking=False)
            cl.enqueue_copy(self.session.queue, buffers['pos_y'], self._host_pos_y, is_blocking=False)

    def configure(self, attractor: Tuple[int, int]) -> None:
        """Binds all kernel arguments in the documented order."""
        buffers = self.session.buffers
        args = [buffers[name] for name in BUFFER_ARGUMENTS]
        args += [
            np.int32(self.satellite_count),
            np.int32(self.width),
            np.int32(self.height),
            np.float32(self.black_hole_r2),
            np.float32(self.satellite_r2),
            np.int32(attractor[0]),
            np.int32(attractor[1]),
        ]
        with cl_step("Kernel argument binding"):
            self.session.kernel.set_args(*args)

    def render(self, satellites: SatelliteSystem, attractor: Tuple[int, int]) -> np.ndarray:
        """
        Produces the pixel buffer for the current satellite positions.
        """
        if not self.session.is_open:
            raise AcceleratorError("Accelerator session is not open.")

        self.stage_positions(satellites)
        self.configure(attractor)

        queue = self.session.queue
        with cl_step("Kernel launch"):
            cl.enqueue_nd_range_kernel(queue, self.session.kernel, self.global_size, self.local_size)
            queue.finish()

        with cl_step("Pixel readback"):
            cl.enqueue_copy(queue, self.pixels, self.session.buffers['pixels'], is_blocking=True)
        return self.pixels
