# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They define the display surface, the black hole and satellite geometry, and
the defaults used when `config.json` does not provide a value.
"""

# Display settings
# The window size is fixed; the pixel buffers are allocated once at this size.
WINDOW_WIDTH = 1920
WINDOW_HEIGHT = 1024
WINDOW_TITLE = "Satellites"

# --- Satellite Population ---
# Benchmarks are run with the default number of satellites.
DEFAULT_SATELLITE_COUNT = 64

# --- Physics ---
GRAVITY = 1.0
# Frame time budget shared by all sub-steps of one displayed frame.
DELTA_TIME = 32.0
# Euler integration is not accurate enough to be done once per frame.
PHYSICS_UPDATES_PER_FRAME = 100000

# --- Geometry of the Scene ---
SATELLITE_RADIUS = 3.16
BLACK_HOLE_RADIUS = 4.5

# --- Accelerator ---
KERNEL_PATH = "kernels/color_field.cl"
KERNEL_NAME = "shade"
# Work-group (tile) size of the color field launch.
TILE_WIDTH = 32
TILE_HEIGHT = 32
# Upper bound for the device program source read from disk.
MAX_KERNEL_SOURCE_BYTES = 1024 * 1024
# Platform vendor substrings, in order of preference.
DISCRETE_GPU_VENDORS = ("NVIDIA", "AMD", "Advanced Micro Devices")
INTEGRATED_GPU_VENDORS = ("Intel",)

# --- Validation ---
# Just a value that barely passes for the OpenCL program.
ALLOWED_ERROR = 10
ALLOWED_NUMBER_OF_ERRORS = 10
VALIDATION_FRAMES = 2
# Relative tolerance for parallel vs. sequential satellite state.
PHYSICS_RTOL = 1e-4

# Value written to the fourth byte of every pixel.
PIXEL_RESERVED_VALUE = 255
