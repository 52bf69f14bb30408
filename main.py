# main.py
"""
Main entry point for the Satellites simulation.

This script orchestrates the entire simulation lifecycle:
1. Loads configuration from `config.json` and applies the seed argument.
2. Initializes the logging system.
3. Creates the satellites, opens the accelerator session and sets up the
   frame pipeline.
4. Runs the main loop until the window is closed.
5. Handles clean shutdown; accelerator failures are fatal (exit status 1).
"""
import argparse
import json
import logging
import sys
import cProfile
import pstats
import io
from typing import List, Optional

from utils import setup_logging, load_config, resolve_path


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Satellites orbiting a black hole, rendered with OpenCL.")
    parser.add_argument("seed", nargs="?", type=int, default=None,
                        help="Random seed for the satellites (0 = unseeded).")
    parser.add_argument("--config", default="config.json",
                        help="Path to the JSON configuration, relative to the project directory.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    The main function to run the simulation.

    Returns:
        int: The process exit status.
    """
    args = parse_args(argv)

    # Logging is not set up yet, so we use a print for this one error.
    config_path = resolve_path(args.config)
    try:
        config = load_config(config_path)
    except (OSError, json.JSONDecodeError) as e:
        print(f"FATAL: Could not load {config_path}. Error: {e}")
        return 1

    setup_logging(config)

    logging.info("--- Satellites Simulation Starting ---")

    sim_params = config.setdefault('simulation_parameters', {})
    run_params = config.get('run_control', {})
    validation_params = config.get('validation', {})

    if args.seed is not None:
        sim_params['seed'] = args.seed
    seed = int(sim_params.get('seed', 0))
    if seed != 0:
        logging.info(f"Using seed: {seed}")

    from accelerator import AcceleratorSession, AcceleratorError
    from satellites import SatelliteSystem
    from physics import PhysicsEngine
    from renderer import ColorFieldRenderer
    from reference import ReferenceValidator
    from pipeline import FramePipeline, FrameContext
    from visualization import Visualizer

    # --- Component Initialization ---
    # 1. The visualizer owns the window and decides the display size.
    visualizer = Visualizer()
    width, height = visualizer.width, visualizer.height

    # 2. The other components are sized to the display.
    try:
        satellites = SatelliteSystem(sim_params, width, height)
        physics = PhysicsEngine(sim_params)
        validator = ReferenceValidator(sim_params, validation_params, width, height)
        session = AcceleratorSession.from_config(config, satellites.satellite_count, width, height)
    except ValueError:
        logging.critical("Invalid configuration.", exc_info=True)
        visualizer.close()
        return 1

    log_throttle = run_params.get('log_throttle_frames', 100)
    max_frames = run_params.get('max_frames', 0)
    profiler = cProfile.Profile() if run_params.get('profile', False) else None

    ctx = FrameContext()
    try:
        with session.open(satellites.identifiers):
            try:
                renderer = ColorFieldRenderer.from_config(session, config)
            except ValueError:
                logging.critical("Invalid configuration.", exc_info=True)
                return 1
            pipeline = FramePipeline(satellites, physics, renderer, validator)

            if profiler:
                profiler.enable()
            running = True
            while running:
                running = visualizer.poll()
                if not running:
                    break

                pixels = pipeline.compute(ctx, visualizer.pointer())
                visualizer.present(pixels)
                ctx.frame_number += 1

                if ctx.frame_number % log_throttle == 0:
                    logging.info(f"Frame {ctx.frame_number}")

                if max_frames and ctx.frame_number >= max_frames:
                    logging.info(f"Reached max_frames ({max_frames}). Stopping simulation.")
                    running = False
            if profiler:
                profiler.disable()
    except AcceleratorError:
        logging.critical("Fatal accelerator error.", exc_info=True)
        return 1
    finally:
        visualizer.close()

    logging.info("Simulation loop finished.")

    if profiler:
        logging.info("--- Performance Profile ---")
        s = io.StringIO()
        # Sort by cumulative time spent in the function
        stats = pstats.Stats(profiler, stream=s).sort_stats('cumtime')
        stats.print_stats(20)
        logging.info(f"\n{s.getvalue()}")

    if seed != 0:
        logging.info(f"Used seed: {seed}")
    logging.info("--- Satellites Simulation Shutting Down ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
