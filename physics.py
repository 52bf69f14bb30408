# physics.py
"""
Handles the satellite movement around the black hole.

This module defines the PhysicsEngine class, which advances every satellite
by one displayed frame. A frame is split into many Euler sub-steps. Each
satellite is integrated independently, so the satellites are distributed
over threads with Numba's `prange`; the sub-steps of one satellite are
strictly sequential.
"""
import logging
import numpy as np
from typing import Dict, Any, Tuple
from numba import jit, prange

from satellites import SatelliteSystem
from constants import GRAVITY, DELTA_TIME, PHYSICS_UPDATES_PER_FRAME

# --- Data Contracts ---
#
# class PhysicsEngine:
#   - __init__(self, params: Dict[str, Any]):
#     - Inputs:
#       - params: Dictionary of simulation parameters from config.json.
#         - "gravity": float
#         - "delta_time": float, the frame time budget.
#         - "physics_updates_per_frame": int, the number of sub-steps.
#     - Side Effects: Validates and stores the parameters.
#
#   - step(self, satellites: SatelliteSystem, attractor: Tuple[int, int]) -> None:
#     - Inputs:
#       - satellites: The SatelliteSystem to advance in place.
#       - attractor: Integer pixel position of the black hole for this frame.
#     - Side Effects: Overwrites satellites.positions and satellites.velocities.
#     - Invariants: Accumulation is done in float64, the float32 arrays are
#       written exactly once per satellite after all sub-steps.

@jit(nopython=True, parallel=True)
def _integrate_parallel_numba(positions, velocities, attractor_x, attractor_y, gravity, dt, substeps):
    """
    Numba-jitted Euler integrator, parallel over satellites.

    The float32 state is loaded into float64 locals, advanced for
    `substeps` iterations and stored back once.
    """
    satellite_count = positions.shape[0]
    for i in prange(satellite_count):
        x = np.float64(positions[i, 0])
        y = np.float64(positions[i, 1])
        vx = np.float64(velocities[i, 0])
        vy = np.float64(velocities[i, 1])

        for _ in range(substeps):
            dx = x - attractor_x
            dy = y - attractor_y
            d2 = dx * dx + dy * dy

            inv_d = 1.0 / np.sqrt(d2)
            inv_d2 = inv_d * inv_d

            ax = (gravity * dx) * (inv_d * inv_d2)
            ay = (gravity * dy) * (inv_d * inv_d2)

            vx -= ax * dt
            vy -= ay * dt

            x += vx * dt
            y += vy * dt

        # Single write-back per satellite
        positions[i, 0] = np.float32(x)
        positions[i, 1] = np.float32(y)
        velocities[i, 0] = np.float32(vx)
        velocities[i, 1] = np.float32(vy)


class PhysicsEngine:
    """
    Moves the satellites based on the gravity of the black hole.
    """
    def __init__(self, params: Dict[str, Any]):
        """
        Initializes the integrator settings.

        Args:
            params (Dict[str, Any]): Simulation parameters from config.
        """
        self.gravity = float(params.get('gravity', GRAVITY))
        self.delta_time = float(params.get('delta_time', DELTA_TIME))
        self.substeps = int(params.get('physics_updates_per_frame', PHYSICS_UPDATES_PER_FRAME))

        if self.substeps <= 0:
            msg = (
                f"Configuration error: physics_updates_per_frame must be positive, "
                f"got {self.substeps}."
            )
            logging.critical(msg)
            raise ValueError(msg)

        # Double precision sub-step length.
        self.dt = self.delta_time / self.substeps

        logging.info(
            f"Physics engine initialized: gravity {self.gravity}, "
            f"{self.substeps} sub-steps per frame, dt {self.dt:.3e}."
        )

    def step(self, satellites: SatelliteSystem, attractor: Tuple[int, int]) -> None:
        """
        Advances all satellites by one displayed frame.
        """
        _integrate_parallel_numba(
            satellites.positions, satellites.velocities,
            float(attractor[0]), float(attractor[1]),
            self.gravity, self.dt, self.substeps
        )
