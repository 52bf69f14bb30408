"""Shared fixtures for the satellites test suite."""
import logging

import numpy as np
import pytest

from accelerator import AcceleratorError, AcceleratorSession, available_platforms, pick_device
from satellites import SatelliteSystem


@pytest.fixture
def small_satellites():
    """Four satellites spread around a 70x45 display."""
    positions = [(12.3, 9.6), (55.7, 8.2), (14.1, 36.4), (58.9, 33.8)]
    velocities = [(0.01, -0.02), (0.02, 0.01), (-0.01, 0.02), (-0.02, -0.01)]
    identifiers = [
        (0.20, 0.10, 0.05),
        (0.12, 0.03, 0.15),
        (0.25, 0.14, 0.00),
        (0.10, 0.07, 0.12),
    ]
    return SatelliteSystem.from_arrays(positions, velocities, identifiers)


@pytest.fixture
def opencl_device():
    """Skips the test when the machine has no OpenCL device at all."""
    try:
        return pick_device(available_platforms(), allow_cpu=True)
    except AcceleratorError as e:
        pytest.skip(f"No OpenCL device available: {e}")


@pytest.fixture
def opencl_session(opencl_device):
    """Factory opening an AcceleratorSession on any available OpenCL device."""
    sessions = []

    def _open(satellites: SatelliteSystem, width: int, height: int) -> AcceleratorSession:
        session = AcceleratorSession(
            satellite_count=satellites.satellite_count,
            width=width,
            height=height,
            allow_cpu=True,
        )
        sessions.append(session)
        return session.open(np.asarray(satellites.identifiers))

    yield _open

    for session in sessions:
        session.close()


@pytest.fixture
def restore_root_logger():
    """Puts back the root logger handlers replaced by setup_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
