# visualization.py
"""
Presents the rendered pixel buffer using Pygame.
"""
import logging
import pygame
import numpy as np
from typing import Tuple

from constants import WINDOW_WIDTH, WINDOW_HEIGHT, WINDOW_TITLE

# --- Data Contracts ---
#
# class Visualizer:
#   - __init__(self, width: int, height: int):
#     - Side Effects: Initializes Pygame and creates a fixed-size window.
#
#   - poll(self) -> bool:
#     - Outputs: False if the user has quit (window closed or ESC), True otherwise.
#     - Side Effects: Drains the Pygame event queue.
#
#   - pointer(self) -> Tuple[int, int]:
#     - Outputs: Current mouse position in window pixels.
#
#   - present(self, pixels: np.ndarray) -> None:
#     - Inputs: uint8 array (height, width, 4), channels blue, green, red, reserved.
#     - Side Effects: Copies the buffer to the window surface and flips it.

class Visualizer:
    """
    Displays the color field and reports the pointer position.
    """
    def __init__(self, width: int = WINDOW_WIDTH, height: int = WINDOW_HEIGHT):
        """
        Initializes Pygame and the display window.
        """
        pygame.init()
        self.width = width
        self.height = height
        self.screen = pygame.display.set_mode((width, height))
        pygame.display.set_caption(WINDOW_TITLE)

        logging.info(f"Visualizer initialized with Pygame display ({width}x{height}).")

    def poll(self) -> bool:
        """
        Handles window events.

        Returns:
            bool: False if the simulation should exit, True otherwise.
        """
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit called")
                return False
            if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                logging.info("ESC key pressed. Shutting down visualizer.")
                return False
        return True

    def pointer(self) -> Tuple[int, int]:
        """Returns the current mouse position."""
        x, y = pygame.mouse.get_pos()
        return int(x), int(y)

    def present(self, pixels: np.ndarray) -> None:
        """
        Renders the pixel buffer to the window.
        """
        # surfarray expects (width, height, rgb); the buffer is (height, width, bgra).
        rgb = np.ascontiguousarray(pixels[:, :, 2::-1].swapaxes(0, 1))
        pygame.surfarray.blit_array(self.screen, rgb)
        pygame.display.flip()

    def close(self):
        """Shuts down Pygame."""
        pygame.quit()
