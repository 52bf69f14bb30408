# accelerator.py
"""
Owns the OpenCL compute resources.

This module defines the AcceleratorSession class, which selects a GPU,
creates the context and the in-order command queue, compiles the color
field program and holds every device buffer the renderer uses. The session
is all-or-nothing: any failure while opening releases what was acquired and
raises AcceleratorError, which the entry point treats as fatal.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pyopencl as cl

from constants import (
    DEFAULT_SATELLITE_COUNT, DISCRETE_GPU_VENDORS, INTEGRATED_GPU_VENDORS,
    KERNEL_NAME, KERNEL_PATH, MAX_KERNEL_SOURCE_BYTES, WINDOW_HEIGHT, WINDOW_WIDTH
)
from utils import load_kernel_source

# --- Data Contracts ---
#
# pick_device(platforms, allow_cpu=False) -> (platform, device):
#   - Inputs:
#     - platforms: Sequence of pyopencl Platform objects (or objects with
#       `vendor` and `get_devices(device_type=...)`).
#     - allow_cpu: Accept any device when no GPU is found.
#   - Outputs: The selected platform and device.
#   - Raises: AcceleratorError if nothing suitable exists.
#
# class AcceleratorSession:
#   - open(self, identifiers: np.ndarray) -> AcceleratorSession:
#     - Inputs: identifiers, float32 array (N, 3) of red, green, blue.
#     - Side Effects: Acquires device, context, queue, program, kernel and
#       the six device buffers; uploads the identity colors once.
#   - close(self) -> None:
#     - Side Effects: Releases everything that was acquired. Safe to call
#       any number of times, also after a failed open().
#   - Invariants: `self.buffers` is non-empty iff the session is open.

DEVICE_TYPE_NAMES = {
    cl.device_type.GPU: "GPU",
    cl.device_type.CPU: "CPU",
    cl.device_type.ACCELERATOR: "ACCEL",
}


class AcceleratorError(RuntimeError):
    """Fatal failure of the compute environment."""

    def __init__(self, message: str, code: Optional[int] = None):
        if code is not None:
            message = f"{message} (OpenCL error {code})"
        super().__init__(message)
        self.code = code


@contextmanager
def cl_step(step: str) -> Iterator[None]:
    """Converts any pyopencl error raised inside the block into AcceleratorError."""
    try:
        yield
    except cl.Error as e:
        raise AcceleratorError(f"{step} failed: {e}", getattr(e, "code", None)) from e


def _first_gpu(platform) -> Optional[Any]:
    try:
        devices = platform.get_devices(device_type=cl.device_type.GPU)
    except cl.Error:
        return None
    return devices[0] if devices else None


def pick_device(platforms: Sequence[Any], allow_cpu: bool = False) -> Tuple[Any, Any]:
    """
    Picks the compute device, preferring a discrete GPU over an integrated one.
    """
    if not platforms:
        raise AcceleratorError("No OpenCL platforms found.")

    # Pass 1: discrete GPU (NVIDIA / AMD)
    for platform in platforms:
        if any(vendor in platform.vendor for vendor in DISCRETE_GPU_VENDORS):
            device = _first_gpu(platform)
            if device is not None:
                return platform, device

    # Pass 2: integrated GPU (Intel)
    for platform in platforms:
        if any(vendor in platform.vendor for vendor in INTEGRATED_GPU_VENDORS):
            device = _first_gpu(platform)
            if device is not None:
                return platform, device

    if allow_cpu:
        for platform in platforms:
            try:
                devices = platform.get_devices()
            except cl.Error:
                continue
            if devices:
                logging.warning(f"No GPU found, falling back to '{devices[0].name}'.")
                return platform, devices[0]

    raise AcceleratorError("No GPU OpenCL device found (no discrete or integrated GPU).")


def available_platforms() -> List[Any]:
    try:
        return cl.get_platforms()
    except cl.Error:
        # The ICD loader reports "no platforms" as an error.
        return []


class AcceleratorSession:
    """
    The compute device, its compiled color field program and the device memory.
    """
    def __init__(
        self,
        satellite_count: int = DEFAULT_SATELLITE_COUNT,
        width: int = WINDOW_WIDTH,
        height: int = WINDOW_HEIGHT,
        kernel_path: str = KERNEL_PATH,
        allow_cpu: bool = False,
    ):
        self.satellite_count = satellite_count
        self.width = width
        self.height = height
        self.kernel_path = kernel_path
        self.allow_cpu = allow_cpu

        self.platform = None
        self.device = None
        self.context = None
        self.queue = None
        self.program = None
        self.kernel = None
        self.buffers: Dict[str, cl.Buffer] = {}

        self.preferred_work_group_multiple = 0
        self.kernel_max_work_group_size = 0
        self.device_max_work_group_size = 0

    @classmethod
    def from_config(
        cls, config: Dict[str, Any], satellite_count: int,
        width: int = WINDOW_WIDTH, height: int = WINDOW_HEIGHT
    ) -> "AcceleratorSession":
        acc_params = config.get('accelerator', {})
        return cls(
            satellite_count=satellite_count,
            width=width,
            height=height,
            kernel_path=acc_params.get('kernel_path', KERNEL_PATH),
            allow_cpu=bool(acc_params.get('allow_cpu_device', False)),
        )

    @property
    def is_open(self) -> bool:
        return bool(self.buffers)

    @property
    def pixel_bytes(self) -> int:
        return self.width * self.height * 4

    def open(self, identifiers: np.ndarray) -> "AcceleratorSession":
        """
        Acquires every device resource and uploads the identity colors.

        Raises:
            AcceleratorError: On any failure; partially acquired resources
                are released first.
        """
        try:
            self._open(identifiers)
        except Exception:
            self.close()
            raise
        return self

    def _open(self, identifiers: np.ndarray) -> None:
        self.platform, self.device = pick_device(available_platforms(), self.allow_cpu)
        self._log_device()

        with cl_step("Context creation"):
            self.context = cl.Context([self.device])
            # In-order queue: staging, launch and readback run in submission order.
            self.queue = cl.CommandQueue(self.context, self.device)

        try:
            source = load_kernel_source(self.kernel_path, MAX_KERNEL_SOURCE_BYTES)
        except (OSError, ValueError) as e:
            raise AcceleratorError(f"Could not load {self.kernel_path}: {e}") from e
        self.program = self._build_program(source)

        with cl_step("Kernel creation"):
            self.kernel = cl.Kernel(self.program, KERNEL_NAME)

        self._allocate_buffers()
        self._upload_identifiers(identifiers)
        self._log_work_group_info()
        logging.info("Accelerator session opened.")

    def _build_program(self, source: str):
        with cl_step("Program creation"):
            program = cl.Program(self.context, source)
        try:
            return program.build(devices=[self.device])
        except cl.Error as e:
            try:
                build_log = program.get_build_info(self.device, cl.program_build_info.LOG)
            except cl.Error:
                build_log = str(e)
            logging.critical(f"Build failed:\n{build_log}")
            raise AcceleratorError("Program build failed", getattr(e, "code", None)) from e

    def _allocate_buffers(self) -> None:
        mf = cl.mem_flags
        satellite_bytes = self.satellite_count * np.dtype(np.float32).itemsize
        with cl_step("Buffer allocation"):
            self.buffers['pixels'] = cl.Buffer(self.context, mf.WRITE_ONLY, size=self.pixel_bytes)
            for name in ('pos_x', 'pos_y', 'id_r', 'id_g', 'id_b'):
                self.buffers[name] = cl.Buffer(self.context, mf.READ_ONLY, size=satellite_bytes)
        logging.debug(
            f"Allocated {len(self.buffers)} device buffers "
            f"({self.pixel_bytes} pixel bytes, {satellite_bytes} bytes per satellite array)."
        )

    def _upload_identifiers(self, identifiers: np.ndarray) -> None:
        """Uploads the constant identity colors once, synchronously."""
        identifiers = np.asarray(identifiers, dtype=np.float32)
        if identifiers.shape != (self.satellite_count, 3):
            raise AcceleratorError(
                f"Expected identifiers of shape {(self.satellite_count, 3)}, got {identifiers.shape}."
            )
        with cl_step("Identity color upload"):
            for channel, name in enumerate(('id_r', 'id_g', 'id_b')):
                host = np.ascontiguousarray(identifiers[:, channel])
                cl.enqueue_copy(self.queue, self.buffers[name], host, is_blocking=True)

    def _log_device(self) -> None:
        device_type = DEVICE_TYPE_NAMES.get(self.device.type, "OTHER")
        logging.info(f"OpenCL platform: {self.platform.name} | vendor: {self.platform.vendor}")
        logging.info(f"OpenCL device  : {self.device.name} | type: {device_type}")

    def _log_work_group_info(self) -> None:
        info = cl.kernel_work_group_info
        with cl_step("Work-group query"):
            self.preferred_work_group_multiple = self.kernel.get_work_group_info(
                info.PREFERRED_WORK_GROUP_SIZE_MULTIPLE, self.device
            )
            self.kernel_max_work_group_size = self.kernel.get_work_group_info(
                info.WORK_GROUP_SIZE, self.device
            )
            self.device_max_work_group_size = self.device.max_work_group_size
        logging.info(
            f"Preferred WG multiple: {self.preferred_work_group_multiple} | "
            f"Kernel Max WG size: {self.kernel_max_work_group_size} | "
            f"Device max WG size: {self.device_max_work_group_size}"
        )

    def close(self) -> None:
        """
        Releases every device resource. Handles that were never acquired are skipped.
        """
        for buffer in self.buffers.values():
            buffer.release()
        self.buffers = {}

        if self.queue is not None:
            try:
                self.queue.finish()
            except cl.Error as e:
                logging.warning(f"Command queue did not finish cleanly: {e}")

        # pyopencl releases the remaining CL objects with their last reference.
        was_open = self.context is not None
        self.kernel = None
        self.program = None
        self.queue = None
        self.context = None
        self.device = None
        self.platform = None
        if was_open:
            logging.info("Accelerator session closed.")

    def __enter__(self) -> "AcceleratorSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
