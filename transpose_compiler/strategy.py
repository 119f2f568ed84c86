"""Strategy selection for a coalesced permutation.

Categories:
- NOOP: zero-sized tensor, nothing to launch
- BLAS_MATRIX: 2D-equivalent transpose delegated to cuBLAS geam
- VECTORIZED_4D: innermost axis fixed; 16-byte loads over a 4D grid
- TILED_3D: swap of the two innermost axes through a shared-memory tile
- GENERIC: one thread per output element, fast-divmod indexing
"""

from __future__ import annotations

import logging
from enum import Enum, auto

from transpose_compiler.coalesce import CoalescedProblem
from transpose_compiler.element_types import is_supported_width, vector_pack
from transpose_compiler.target_config import (
    DEFAULT_CONFIG,
    DEFAULT_DEVICE_CAPS,
    DeviceCaps,
    TransposeConfig,
)

logger = logging.getLogger(__name__)


class Strategy(Enum):
    NOOP = auto()
    BLAS_MATRIX = auto()
    VECTORIZED_4D = auto()
    TILED_3D = auto()
    GENERIC = auto()


def can_do_transpose_4d(
    problem: CoalescedProblem,
    element_size: int,
    caps: DeviceCaps = DEFAULT_DEVICE_CAPS,
    config: TransposeConfig = DEFAULT_CONFIG,
) -> bool:
    """Innermost axis unmoved and the two inner axes form a warp-aligned block."""
    if problem.rank != 4 or problem.permutation[3] != 3:
        return False
    if not is_supported_width(element_size):
        return False

    dims = problem.input_dims
    pack = vector_pack(element_size, config.vector_bytes)
    inner = dims[2] * dims[3]
    if pack < 1 or inner % pack != 0 or dims[3] % pack != 0:
        return False

    threads = inner // pack
    return (
        caps.warp_size <= threads <= caps.max_threads_per_block
        and threads % caps.warp_size == 0
        and dims[0] <= caps.max_grid_dim_y
    )


def can_do_blas_transpose(
    precision: str,
    M: int,
    N: int,
    caps: DeviceCaps = DEFAULT_DEVICE_CAPS,
    config: TransposeConfig = DEFAULT_CONFIG,
) -> bool:
    """cuBLAS geam takes any M x N; the fp16 tile kernel is bounded by grid y."""
    if precision != "h":
        return True
    return (M + config.tile_dim - 1) // config.tile_dim <= caps.max_grid_dim_y


def can_do_transpose_3d(
    problem: CoalescedProblem,
    element_size: int,
    caps: DeviceCaps = DEFAULT_DEVICE_CAPS,
    config: TransposeConfig = DEFAULT_CONFIG,
) -> bool:
    """Swap of the two innermost axes, both tile-aligned."""
    if problem.rank != 3 or problem.permutation[1:] != (2, 1):
        return False
    if not is_supported_width(element_size):
        return False
    dims = problem.input_dims
    return (
        dims[1] % config.tile_dim == 0
        and dims[2] % config.tile_dim == 0
        and dims[1] // config.tile_dim <= caps.max_grid_dim_y
        and dims[0] <= caps.max_grid_dim_z
    )


def select_strategy(
    problem: CoalescedProblem,
    element_size: int,
    caps: DeviceCaps = DEFAULT_DEVICE_CAPS,
    config: TransposeConfig = DEFAULT_CONFIG,
) -> Strategy:
    """Pick the kernel for a coalesced problem. GENERIC always applies."""
    if can_do_transpose_4d(problem, element_size, caps, config):
        strategy = Strategy.VECTORIZED_4D
    elif config.enable_tiled_3d and can_do_transpose_3d(problem, element_size, caps, config):
        strategy = Strategy.TILED_3D
    else:
        strategy = Strategy.GENERIC
    logger.debug(
        "strategy %s for dims %s perm %s (%d-byte elements)",
        strategy.name, list(problem.input_dims), list(problem.permutation), element_size,
    )
    return strategy
