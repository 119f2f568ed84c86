"""Host-side trace of the index arithmetic each step performs on the GPU.

trace_offsets(plan) enumerates every thread of the step's launch geometry and
reproduces its address computation with numpy (reciprocal-multiply division,
int4 offsets, shared-memory tile round trip). The result is a pair of flat
element indices (dst, src) meaning output[dst[i]] = input[src[i]].

Used to verify plans without a CUDA device.
"""

from __future__ import annotations

import numpy as np

from transpose_compiler.transpose_program import (
    BlasTransposeStep,
    GenericTransposeStep,
    NoopStep,
    Tiled3DStep,
    TransposePlan,
    Vectorized4DStep,
)

_U32_SHIFT = np.uint64(32)


def _trace_generic(step: GenericTransposeStep) -> tuple[np.ndarray, np.ndarray]:
    ids = np.arange(step.total_elements, dtype=np.uint64)
    remaining = ids.copy()
    src = np.zeros(step.total_elements, dtype=np.int64)
    for stride, fd in zip(step.input_strides, step.output_divisors):
        hi = (np.uint64(fd.multiplier) * remaining) >> _U32_SHIFT
        q = (hi + remaining) >> np.uint64(fd.shift)
        remaining = remaining - q * np.uint64(fd.divisor)
        src += q.astype(np.int64) * stride
    return ids.astype(np.int64), src


def _trace_vectorized_4d(step: Vectorized4DStep) -> tuple[np.ndarray, np.ndarray]:
    grid_x, grid_y = step.grid_dim[:2]
    block_x, block_y = step.block_dim[:2]
    by, bx, ty, tx = np.meshgrid(
        np.arange(grid_y), np.arange(grid_x), np.arange(block_y), np.arange(block_x),
        indexing="ij",
    )
    by, bx, ty, tx = (a.astype(np.int64).ravel() for a in (by, bx, ty, tx))

    def _vector_index(strides):
        return (by * strides[0] + bx * strides[1] + ty * strides[2]) // step.pack + tx * strides[3]

    in_vec = _vector_index(step.input_strides)
    out_vec = _vector_index(step.output_strides)
    keep = (in_vec < step.total_vectors) & (out_vec < step.total_vectors)
    in_vec, out_vec = in_vec[keep], out_vec[keep]

    lanes = np.arange(step.pack, dtype=np.int64)
    src = (in_vec[:, None] * step.pack + lanes).ravel()
    dst = (out_vec[:, None] * step.pack + lanes).ravel()
    return dst, src


def _trace_tiled_3d(step: Tiled3DStep) -> tuple[np.ndarray, np.ndarray]:
    _, d1, d2 = step.input_dims
    tile, rows = step.tile_dim, step.block_rows
    grid_x, grid_y, grid_z = step.grid_dim
    z, by, bx, ty, tx, j = np.meshgrid(
        np.arange(grid_z), np.arange(grid_y), np.arange(grid_x),
        np.arange(rows), np.arange(tile), np.arange(0, tile, rows),
        indexing="ij",
    )
    base = z * step.slice_stride

    # Load phase: tile[ty + j][tx] <- input
    shared = np.full((grid_z, grid_y, grid_x, tile, tile + 1), -1, dtype=np.int64)
    shared[z, by, bx, ty + j, tx] = base + (by * tile + ty + j) * d2 + bx * tile + tx

    # Write phase (after the barrier): output <- tile[tx][ty + j]
    dst = base + (bx * tile + ty + j) * d1 + by * tile + tx
    src = shared[z, by, bx, tx, ty + j]
    return dst.ravel(), src.ravel()


def _trace_blas(step: BlasTransposeStep) -> tuple[np.ndarray, np.ndarray]:
    m, n = np.meshgrid(np.arange(step.M, dtype=np.int64), np.arange(step.N, dtype=np.int64), indexing="ij")
    # column-major C (M x N, ldc = M) = op_T(A) where A is column-major N x M, lda = N
    return (n * step.ldc + m).ravel(), (m * step.lda + n).ravel()


def trace_offsets(plan: TransposePlan) -> tuple[np.ndarray, np.ndarray]:
    """Return (dst, src) flat element indices written/read by the plan's step."""
    step = plan.step
    if isinstance(step, NoopStep):
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty
    if isinstance(step, BlasTransposeStep):
        return _trace_blas(step)
    if isinstance(step, GenericTransposeStep):
        return _trace_generic(step)
    if isinstance(step, Vectorized4DStep):
        return _trace_vectorized_4d(step)
    if isinstance(step, Tiled3DStep):
        return _trace_tiled_3d(step)
    raise TypeError(f"Unknown transpose step: {type(step).__name__}")


def replay_plan(plan: TransposePlan, host_input: np.ndarray) -> np.ndarray:
    """Apply the traced index map to a host array (verification only)."""
    flat = np.ascontiguousarray(host_input).reshape(-1)
    dst, src = trace_offsets(plan)
    out = np.zeros(plan.total_elements, dtype=flat.dtype)
    out[dst] = flat[src]
    return out.reshape(plan.output_shape)
