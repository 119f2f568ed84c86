"""CUDA device capability query."""

from __future__ import annotations

from transpose_compiler.target_config import DeviceCaps

try:
    import cupy as cp

    HAS_CUPY = True
except ImportError:
    cp = None
    HAS_CUPY = False


def query_device_caps(device_id: int | None = None) -> DeviceCaps:
    """Read launch limits of a CUDA device (current device by default)."""
    if not HAS_CUPY:
        raise RuntimeError("CuPy is not installed")
    if device_id is None:
        device_id = cp.cuda.runtime.getDevice()
    props = cp.cuda.runtime.getDeviceProperties(device_id)
    name = props.get("name", b"cuda_gpu")
    if isinstance(name, bytes):
        name = name.decode(errors="replace")
    grid = props.get("maxGridSize", (2**31 - 1, 65535, 65535))
    return DeviceCaps(
        name=name,
        max_threads_per_block=int(props["maxThreadsPerBlock"]),
        warp_size=int(props["warpSize"]),
        max_grid_dim_y=int(grid[1]),
        max_grid_dim_z=int(grid[2]),
    )
