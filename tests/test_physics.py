"""Tests for the parallel integrator and its agreement with the sequential reference."""
import numpy as np
import pytest

from physics import PhysicsEngine
from reference import ReferenceValidator
from satellites import SatelliteSystem
from constants import WINDOW_WIDTH, WINDOW_HEIGHT

CENTER = (WINDOW_WIDTH // 2, WINDOW_HEIGHT // 2)


@pytest.fixture
def fast_params():
    return {'gravity': 1.0, 'delta_time': 32.0, 'physics_updates_per_frame': 2000}


def test_satellite_at_rest_falls_toward_the_attractor(fast_params):
    distance = 100.0
    satellites = SatelliteSystem.from_arrays(
        positions=[(CENTER[0], CENTER[1] - distance)],
        velocities=[(0.0, 0.0)],
        identifiers=[(0.2, 0.1, 0.1)],
    )
    engine = PhysicsEngine(fast_params)
    engine.step(satellites, CENTER)

    x, y = satellites.positions[0]
    vx, vy = satellites.velocities[0]
    # Directly above the attractor: pure vertical motion, y grows downward.
    assert x == pytest.approx(CENTER[0])
    assert CENTER[1] - distance < y < CENTER[1]
    assert vx == pytest.approx(0.0)
    assert vy > 0.0
    # Roughly g / d^2 * delta_time for such a short fall.
    assert vy == pytest.approx(32.0 / distance ** 2, rel=0.05)


def test_state_stays_single_precision(fast_params):
    satellites = SatelliteSystem({'seed': 9, 'satellite_count': 6})
    PhysicsEngine(fast_params).step(satellites, CENTER)
    assert satellites.positions.dtype == np.float32
    assert satellites.velocities.dtype == np.float32


def test_parallel_matches_sequential_reference(fast_params):
    parallel = SatelliteSystem({'seed': 42, 'satellite_count': 16})
    sequential = parallel.copy()

    PhysicsEngine(fast_params).step(parallel, CENTER)
    validator = ReferenceValidator(fast_params, {'pause_on_failure': False})
    validator.integrate(sequential)

    np.testing.assert_allclose(parallel.positions, sequential.positions, rtol=1e-5, atol=1e-5)
    np.testing.assert_allclose(parallel.velocities, sequential.velocities, rtol=1e-5, atol=1e-7)
    assert validator.compare_satellites(parallel, sequential) == []


def test_satellites_are_independent(fast_params):
    pair = SatelliteSystem({'seed': 21, 'satellite_count': 2})
    alone = SatelliteSystem.from_arrays(pair.positions[:1], pair.velocities[:1], pair.identifiers[:1])

    engine = PhysicsEngine(fast_params)
    engine.step(pair, CENTER)
    engine.step(alone, CENTER)

    np.testing.assert_array_equal(pair.positions[0], alone.positions[0])
    np.testing.assert_array_equal(pair.velocities[0], alone.velocities[0])


def test_attractor_follows_the_given_position(fast_params):
    a = SatelliteSystem({'seed': 4, 'satellite_count': 4})
    b = a.copy()
    engine = PhysicsEngine(fast_params)
    engine.step(a, CENTER)
    engine.step(b, (CENTER[0] + 200, CENTER[1]))
    assert not np.array_equal(a.positions, b.positions)


def test_non_positive_substeps_are_rejected():
    with pytest.raises(ValueError):
        PhysicsEngine({'physics_updates_per_frame': 0})
