# pipeline.py
"""
Runs one frame of the simulation.

The FramePipeline moves the satellites, renders the color field on the
accelerator and, during the first frames, validates both results against
the sequential reference. All state that changes from frame to frame (the
frame number, the pointer position and the timing accumulators) lives in a
FrameContext owned by the main loop.
"""
import logging
import time
import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from satellites import SatelliteSystem
from physics import PhysicsEngine
from renderer import ColorFieldRenderer
from reference import ReferenceValidator

# --- Data Contracts ---
#
# class FramePipeline:
#   - compute(self, ctx: FrameContext, pointer: Tuple[int, int]) -> np.ndarray:
#     - Inputs:
#       - ctx: The frame context. Its frame_number is NOT advanced here; the
#         caller increments it after the frame was presented.
#       - pointer: Mouse position reported by the presentation layer.
#     - Outputs: The parallel pixel buffer of this frame.
#     - Side Effects: Moves the satellites, updates ctx.mouse_x/mouse_y and
#       the timing accumulators, logs validation and timing results.


@dataclass
class FrameContext:
    """Per-run mutable state, passed explicitly to every frame."""
    frame_number: int = 0
    mouse_x: int = 0
    mouse_y: int = 0
    previous_finish_time: Optional[float] = None
    timed_frames: int = 0
    satellite_movement_acc: float = 0.0
    pixel_coloring_acc: float = 0.0
    total_time_acc: float = 0.0

    def record(self, movement_ms: float, coloring_ms: float, total_ms: float) -> None:
        self.timed_frames += 1
        self.satellite_movement_acc += movement_ms
        self.pixel_coloring_acc += coloring_ms
        self.total_time_acc += total_ms

    def averages(self) -> Tuple[float, float, float]:
        if self.timed_frames == 0:
            return 0.0, 0.0, 0.0
        n = self.timed_frames
        return (
            self.satellite_movement_acc / n,
            self.pixel_coloring_acc / n,
            self.total_time_acc / n,
        )


def _now_ms() -> float:
    return time.perf_counter() * 1000.0


class FramePipeline:
    """
    Physics, accelerator rendering and early-frame validation for one frame.
    """
    def __init__(
        self,
        satellites: SatelliteSystem,
        physics: PhysicsEngine,
        renderer: ColorFieldRenderer,
        validator: ReferenceValidator,
    ):
        self.satellites = satellites
        self.physics = physics
        self.renderer = renderer
        self.validator = validator
        self.center = (renderer.width // 2, renderer.height // 2)
        self.last_validation = None

    def compute(self, ctx: FrameContext, pointer: Tuple[int, int]) -> np.ndarray:
        """
        Computes one frame and returns the pixel buffer to present.
        """
        start = _now_ms()
        validating = self.validator.is_validation_frame(ctx.frame_number)

        # Error check during first frames
        reference_satellites = None
        if validating:
            reference_satellites = self.satellites.copy()
            self.validator.integrate(reference_satellites)
            ctx.mouse_x, ctx.mouse_y = self.center
        else:
            ctx.mouse_x, ctx.mouse_y = int(pointer[0]), int(pointer[1])
            if ctx.mouse_x == 0 and ctx.mouse_y == 0:
                ctx.mouse_x, ctx.mouse_y = self.center

        attractor = (ctx.mouse_x, ctx.mouse_y)
        self.physics.step(self.satellites, attractor)
        if validating:
            self.validator.compare_satellites(self.satellites, reference_satellites)

        movement_moment = _now_ms()
        movement_ms = movement_moment - start

        pixels = self.renderer.render(self.satellites, attractor)

        coloring_moment = _now_ms()
        coloring_ms = coloring_moment - movement_moment
        finish_time = coloring_moment

        if validating:
            self.validator.render(self.satellites)
            self.last_validation = self.validator.check_frame(pixels, ctx.frame_number)
        elif ctx.frame_number == self.validator.frames:
            ctx.previous_finish_time = finish_time
            logging.info(
                "Time spent on moving satellites + Time spent on space coloring : "
                "Total time in milliseconds between frames "
                "(might not equal the sum of the left-hand expression)"
            )
        else:
            total_ms = finish_time - ctx.previous_finish_time
            ctx.previous_finish_time = finish_time
            ctx.record(movement_ms, coloring_ms, total_ms)

            logging.info(f"Latency of this frame {movement_ms:.0f} + {coloring_ms:.0f} : {total_ms:.0f}ms")
            avg_movement, avg_coloring, avg_total = ctx.averages()
            logging.info(
                f"Averaged over all frames: {avg_movement:.0f} + {avg_coloring:.0f} : {avg_total:.0f}ms."
            )

        return pixels
