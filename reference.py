# reference.py
"""
Sequential reference implementation used to validate the parallel path.

This module re-implements both the satellite physics and the color field
without any parallel decomposition. During the first frames the frame
pipeline runs both paths and the ReferenceValidator compares the results:
satellite state within a relative tolerance, pixels channel by channel
within an error budget. Validation is advisory; mismatches are reported and
counted but never stop the simulation.
"""
import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, Any, List, Optional
from numba import jit

from satellites import SatelliteSystem
from constants import (
    ALLOWED_ERROR, ALLOWED_NUMBER_OF_ERRORS, BLACK_HOLE_RADIUS, DELTA_TIME,
    GRAVITY, PHYSICS_RTOL, PHYSICS_UPDATES_PER_FRAME, PIXEL_RESERVED_VALUE,
    SATELLITE_RADIUS, VALIDATION_FRAMES, WINDOW_HEIGHT, WINDOW_WIDTH
)

# --- Data Contracts ---
#
# class ReferenceValidator:
#   - __init__(self, sim_params, validation_params, width, height):
#     - Inputs:
#       - sim_params: "gravity", "delta_time", "physics_updates_per_frame",
#         "black_hole_radius", "satellite_radius".
#       - validation_params: "frames", "allowed_error",
#         "allowed_number_of_errors", "physics_rtol", "pause_on_failure".
#     - Side Effects: Allocates the reference pixel buffer once.
#
#   - integrate(self, satellites) -> None:
#     - Side Effects: Advances `satellites` in place with the attractor fixed
#       at the display center. Callers pass an isolated copy.
#
#   - render(self, satellites) -> np.ndarray:
#     - Outputs: self.reference_pixels, uint8 (height, width, 4) BGRA.
#
#   - check_frame(self, pixels, frame_number) -> ValidationResult:
#     - Invariants: Pixels are visited in row-major order; at most
#       allowed_number_of_errors + 1 errors are counted per frame.

@jit(nopython=True)
def _sequential_physics_numba(positions, velocities, center_x, center_y, gravity, delta_time, substeps):
    """
    Numba-jitted sequential integrator.

    Sub-steps are the outer loop and satellites the inner loop. Accumulation
    is done in float64 and stored back to float32 once.
    """
    satellite_count = positions.shape[0]
    tmp_position = np.empty((satellite_count, 2), dtype=np.float64)
    tmp_velocity = np.empty((satellite_count, 2), dtype=np.float64)
    for i in range(satellite_count):
        tmp_position[i, 0] = positions[i, 0]
        tmp_position[i, 1] = positions[i, 1]
        tmp_velocity[i, 0] = velocities[i, 0]
        tmp_velocity[i, 1] = velocities[i, 1]

    for _ in range(substeps):
        for i in range(satellite_count):
            # Distance to the black hole
            to_black_hole_x = tmp_position[i, 0] - center_x
            to_black_hole_y = tmp_position[i, 1] - center_y
            dist_squared = to_black_hole_x * to_black_hole_x + to_black_hole_y * to_black_hole_y
            dist = np.sqrt(dist_squared)

            # Gravity force
            normal_x = to_black_hole_x / dist
            normal_y = to_black_hole_y / dist
            accumulation = gravity / dist_squared

            tmp_velocity[i, 0] -= accumulation * normal_x * delta_time / substeps
            tmp_velocity[i, 1] -= accumulation * normal_y * delta_time / substeps

            tmp_position[i, 0] += tmp_velocity[i, 0] * delta_time / substeps
            tmp_position[i, 1] += tmp_velocity[i, 1] * delta_time / substeps

    for i in range(satellite_count):
        positions[i, 0] = np.float32(tmp_position[i, 0])
        positions[i, 1] = np.float32(tmp_position[i, 1])
        velocities[i, 0] = np.float32(tmp_velocity[i, 0])
        velocities[i, 1] = np.float32(tmp_velocity[i, 1])


@jit(nopython=True)
def _to_channel(value):
    """Scales a unit color to 0..255, truncating and saturating (NaN -> 0)."""
    scaled = value * np.float32(255.0)
    if not scaled > 0.0:
        return 0
    if scaled >= 255.0:
        return 255
    return int(scaled)


@jit(nopython=True)
def _sequential_color_field_numba(
    pixels, positions, identifiers, center_x, center_y,
    black_hole_radius, satellite_radius, reserved
):
    """
    Numba-jitted sequential color field in single precision.

    The first satellite loop finds a hit or the closest satellite and the
    total weight; the second loop blends every satellite's color onto the
    closest one.
    """
    height = pixels.shape[0]
    width = pixels.shape[1]
    satellite_count = positions.shape[0]
    one = np.float32(1.0)
    three = np.float32(3.0)
    bh_radius = np.float32(black_hole_radius)
    sat_radius = np.float32(satellite_radius)

    for i in range(width * height):
        # Row wise ordering
        x = i % width
        y = i // width
        px = np.float32(x)
        py = np.float32(y)
        pixels[y, x, 3] = reserved

        # Draw the black hole
        to_bh_x = px - np.float32(center_x)
        to_bh_y = py - np.float32(center_y)
        dist_to_bh = np.sqrt(to_bh_x * to_bh_x + to_bh_y * to_bh_y)
        if dist_to_bh < bh_radius:
            pixels[y, x, 0] = 0
            pixels[y, x, 1] = 0
            pixels[y, x, 2] = 0
            continue

        render_r = np.float32(0.0)
        render_g = np.float32(0.0)
        render_b = np.float32(0.0)
        shortest_distance = np.float32(np.inf)
        weights = np.float32(0.0)
        hits_satellite = False

        # First loop: find the closest satellite.
        for j in range(satellite_count):
            diff_x = px - positions[j, 0]
            diff_y = py - positions[j, 1]
            distance = np.sqrt(diff_x * diff_x + diff_y * diff_y)

            if distance < sat_radius:
                render_r = identifiers[j, 0]
                render_g = identifiers[j, 1]
                render_b = identifiers[j, 2]
                hits_satellite = True
                break
            weight = one / (distance * distance * distance * distance)
            weights += weight
            if distance < shortest_distance:
                shortest_distance = distance
                render_r = identifiers[j, 0]
                render_g = identifiers[j, 1]
                render_b = identifiers[j, 2]

        # Second loop: blend based on the distance to every satellite.
        if not hits_satellite:
            for j in range(satellite_count):
                diff_x = px - positions[j, 0]
                diff_y = py - positions[j, 1]
                dist2 = diff_x * diff_x + diff_y * diff_y
                weight = one / (dist2 * dist2)
                render_r += (identifiers[j, 0] * weight / weights) * three
                render_g += (identifiers[j, 1] * weight / weights) * three
                render_b += (identifiers[j, 2] * weight / weights) * three

        pixels[y, x, 0] = _to_channel(render_b)
        pixels[y, x, 1] = _to_channel(render_g)
        pixels[y, x, 2] = _to_channel(render_r)


@dataclass
class ValidationResult:
    """Outcome of one frame's pixel comparison."""
    error_count: int
    aborted: bool


class ReferenceValidator:
    """
    Recomputes physics and pixels sequentially and diffs them against the parallel path.
    """
    def __init__(
        self,
        sim_params: Dict[str, Any],
        validation_params: Dict[str, Any],
        width: int = WINDOW_WIDTH,
        height: int = WINDOW_HEIGHT,
    ):
        self.width = width
        self.height = height
        self.center = (width // 2, height // 2)

        self.gravity = float(sim_params.get('gravity', GRAVITY))
        self.delta_time = float(sim_params.get('delta_time', DELTA_TIME))
        self.substeps = int(sim_params.get('physics_updates_per_frame', PHYSICS_UPDATES_PER_FRAME))
        self.black_hole_radius = float(sim_params.get('black_hole_radius', BLACK_HOLE_RADIUS))
        self.satellite_radius = float(sim_params.get('satellite_radius', SATELLITE_RADIUS))

        self.frames = int(validation_params.get('frames', VALIDATION_FRAMES))
        self.allowed_error = int(validation_params.get('allowed_error', ALLOWED_ERROR))
        self.allowed_number_of_errors = int(
            validation_params.get('allowed_number_of_errors', ALLOWED_NUMBER_OF_ERRORS)
        )
        self.physics_rtol = float(validation_params.get('physics_rtol', PHYSICS_RTOL))
        self.pause_on_failure = bool(validation_params.get('pause_on_failure', True))

        self.reference_pixels = np.zeros((height, width, 4), dtype=np.uint8)

        logging.info(
            f"Reference validator initialized: {self.frames} validation frames, "
            f"allowed error {self.allowed_error}, "
            f"allowed number of errors {self.allowed_number_of_errors}."
        )

    def is_validation_frame(self, frame_number: int) -> bool:
        return frame_number < self.frames

    def integrate(self, satellites: SatelliteSystem) -> None:
        """Sequential physics with the black hole fixed at the display center."""
        _sequential_physics_numba(
            satellites.positions, satellites.velocities,
            float(self.center[0]), float(self.center[1]),
            self.gravity, self.delta_time, self.substeps
        )

    def render(self, satellites: SatelliteSystem) -> np.ndarray:
        """Sequential color field into the reference pixel buffer."""
        _sequential_color_field_numba(
            self.reference_pixels, satellites.positions, satellites.identifiers,
            self.center[0], self.center[1],
            self.black_hole_radius, self.satellite_radius, PIXEL_RESERVED_VALUE
        )
        return self.reference_pixels

    def compare_satellites(self, parallel: SatelliteSystem, reference: SatelliteSystem) -> List[int]:
        """
        Reports satellites whose parallel state differs from the reference.

        Returns:
            List[int]: Indices of the mismatching satellites.
        """
        position_ok = np.isclose(
            parallel.positions, reference.positions, rtol=self.physics_rtol, atol=1e-6
        ).all(axis=1)
        velocity_ok = np.isclose(
            parallel.velocities, reference.velocities, rtol=self.physics_rtol, atol=1e-6
        ).all(axis=1)
        mismatches = np.flatnonzero(~(position_ok & velocity_ok)).tolist()

        for i in mismatches:
            logging.warning(
                f"Incorrect satellite data of satellite: {i} | "
                f"position {parallel.positions[i]} vs {reference.positions[i]}, "
                f"velocity {parallel.velocities[i]} vs {reference.velocities[i]}"
            )
        if mismatches:
            self._pause(f"{len(mismatches)} satellites differ from the reference.")
        else:
            logging.info("Satellite state matches the sequential reference.")
        return mismatches

    def check_frame(
        self, pixels: np.ndarray, frame_number: int, reference: Optional[np.ndarray] = None
    ) -> ValidationResult:
        """
        Compares the parallel pixel buffer with the reference buffer.

        A pixel is wrong if any of its color channels differs by more than
        `allowed_error`. Checking stops once more than
        `allowed_number_of_errors` wrong pixels have been found.
        """
        if reference is None:
            reference = self.reference_pixels
        actual = pixels[:, :, :3].astype(np.int16)
        expected = reference[:, :, :3].astype(np.int16)
        wrong = (np.abs(actual - expected) > self.allowed_error).any(axis=2)

        count_errors = 0
        for flat_index in np.flatnonzero(wrong):
            y, x = divmod(int(flat_index), self.width)
            b, g, r = actual[y, x]
            eb, eg, er = expected[y, x]
            logging.warning(
                f"Pixel x={x} y={y} value: {r}, {g}, {b}. "
                f"Should have been: {er}, {eg}, {eb}"
            )
            count_errors += 1
            if count_errors > self.allowed_number_of_errors:
                logging.error(f"Too many errors ({count_errors}) in frame {frame_number}.")
                self._pause("Too many wrong pixels.")
                return ValidationResult(error_count=count_errors, aborted=True)

        logging.info(f"Error check passed with acceptable number of wrong pixels: {count_errors}")
        return ValidationResult(error_count=count_errors, aborted=False)

    def _pause(self, reason: str) -> None:
        """Waits for the operator to inspect the output, if enabled."""
        if self.pause_on_failure:
            input(f"{reason} Press enter to continue.")
