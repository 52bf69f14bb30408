# satellites.py
"""
Manages the state of all satellites in the simulation.

This module defines the SatelliteSystem class, which is responsible for
creating and storing satellite data (position, velocity, identity color)
in NumPy arrays. Storage at rest is single precision; the physics routines
accumulate in double precision and write back once per frame.
"""
import logging
import numpy as np
from typing import Dict, Any

from constants import (
    DEFAULT_SATELLITE_COUNT, WINDOW_WIDTH, WINDOW_HEIGHT
)

# --- Data Contracts ---
#
# class SatelliteSystem:
#   - __init__(self, params: Dict[str, Any], width: int, height: int):
#     - Inputs:
#       - params: Dictionary of simulation parameters from config.json.
#         - "seed": int, 0 means unseeded (non-reproducible).
#         - "satellite_count": int
#       - width, height: Size of the display the satellites orbit in.
#     - Side Effects: Initializes internal NumPy arrays for satellite state.
#     - Invariants:
#       - self.positions is a NumPy array of shape (N, 2) of dtype float32.
#       - self.velocities is a NumPy array of shape (N, 2) of dtype float32.
#       - self.identifiers is a NumPy array of shape (N, 3) of dtype float32,
#         channels red, green, blue in [0, 1]. Never modified after creation.
#
#   - copy(self) -> SatelliteSystem:
#     - Outputs: An independent deep copy (no shared arrays).

class SatelliteSystem:
    """
    A container for all satellites, managing their state via NumPy arrays.
    """
    def __init__(self, params: Dict[str, Any], width: int = WINDOW_WIDTH, height: int = WINDOW_HEIGHT):
        """
        Creates the satellites around the center of the display.

        Args:
            params (Dict[str, Any]): Simulation parameters from config.
            width (int): The width of the display.
            height (int): The height of the display.
        """
        self.satellite_count = int(params.get('satellite_count', DEFAULT_SATELLITE_COUNT))
        self.seed = int(params.get('seed', 0))
        self.width = width
        self.height = height

        if self.satellite_count <= 0:
            msg = f"Configuration error: satellite_count must be positive, got {self.satellite_count}."
            logging.critical(msg)
            raise ValueError(msg)

        # Seed 0 leaves the generator unseeded.
        self.rng = np.random.default_rng(self.seed if self.seed != 0 else None)

        n = self.satellite_count
        center = np.array([width // 2, height // 2], dtype=np.float64)

        # Random reddish color
        red = self.rng.uniform(0.0, 0.15, size=n) + 0.1
        green = self.rng.uniform(0.0, 0.14, size=n)
        blue = self.rng.uniform(0.0, 0.16, size=n)
        self.identifiers = np.stack([red, green, blue], axis=1).astype(np.float32)

        # Random position with margins to the borders, mirrored into the
        # four quadrants around the black hole.
        offsets = self.rng.uniform(50.0, 320.0, size=(n, 2))
        positions = center - offsets
        index = np.arange(n)
        mirror_x = (index // 2) % 2 == 1
        mirror_y = index >= n // 2
        positions[mirror_x, 0] = width - positions[mirror_x, 0]
        positions[mirror_y, 1] = height - positions[mirror_y, 1]
        self.positions = positions.astype(np.float32)

        # Randomize velocity tangential to the black hole
        to_center = self.positions.astype(np.float64) - center
        distance = np.linalg.norm(to_center, axis=1)
        speed = (0.06 + self.rng.uniform(-0.01, 0.01, size=n)) / distance
        velocities = np.stack([-to_center[:, 1], to_center[:, 0]], axis=1) * speed[:, np.newaxis]

        # Every other satellite orbits clockwise
        velocities[index % 2 == 0] *= -1.0
        self.velocities = velocities.astype(np.float32)

        logging.info(f"SatelliteSystem initialized with {n} satellites.")
        logging.debug(
            f"Satellite data arrays created. "
            f"Positions shape: {self.positions.shape}, "
            f"Velocities shape: {self.velocities.shape}, "
            f"Identifiers shape: {self.identifiers.shape}"
        )

    @classmethod
    def from_arrays(cls, positions, velocities, identifiers) -> "SatelliteSystem":
        """Builds a system from explicit arrays, bypassing random creation."""
        system = cls.__new__(cls)
        system.positions = np.array(positions, dtype=np.float32).reshape(-1, 2)
        system.velocities = np.array(velocities, dtype=np.float32).reshape(-1, 2)
        system.identifiers = np.array(identifiers, dtype=np.float32).reshape(-1, 3)
        system.satellite_count = system.positions.shape[0]
        system.seed = 0
        system.rng = None
        system.width = WINDOW_WIDTH
        system.height = WINDOW_HEIGHT
        return system

    def copy(self) -> "SatelliteSystem":
        """Returns an isolated copy of the satellite state."""
        clone = SatelliteSystem.from_arrays(self.positions, self.velocities, self.identifiers)
        clone.seed = self.seed
        clone.width = self.width
        clone.height = self.height
        return clone
