"""Device capabilities and tunables for the transpose planner."""

from __future__ import annotations

from dataclasses import dataclass

from transpose_compiler.element_types import VECTOR_TYPES
from transpose_compiler.errors import ConfigurationError


@dataclass(frozen=True)
class DeviceCaps:
    """Launch limits of the target CUDA device.

    Consumed as plain values by the strategy selector; the runtime builds one
    from the device properties (see transpose_runtime.device).
    """
    name: str = "cuda_gpu"
    max_threads_per_block: int = 1024
    warp_size: int = 32
    max_grid_dim_y: int = 65535
    max_grid_dim_z: int = 65535


@dataclass(frozen=True)
class TransposeConfig:
    """Planner tunables shared by all strategies."""
    tile_dim: int = 32
    block_rows: int = 8
    vector_bytes: int = 16  # int4 loads in the 4D kernel; 8 -> int2, 4 -> int
    block_size: int = 256
    max_rank: int = 8
    use_blas_fast_path: bool = True
    enable_tiled_3d: bool = True

    def __post_init__(self):
        if self.vector_bytes not in VECTOR_TYPES:
            raise ConfigurationError(
                f"vector_bytes must be one of {sorted(VECTOR_TYPES)}, got {self.vector_bytes}"
            )


DEFAULT_DEVICE_CAPS = DeviceCaps()
DEFAULT_CONFIG = TransposeConfig()

# Flat output ids and fast-divmod operands are 32-bit in the generic kernel.
MAX_ELEMENTS = 2**31 - 1
