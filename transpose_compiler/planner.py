"""Transpose planner: (permutation, shape, dtype) -> TransposePlan.

Pipeline:
1. Validate the permutation, infer the output shape
2. Zero-sized tensors -> NoopStep
3. float16/32/64 2D-equivalent transposes -> cuBLAS step (within launch limits)
4. Element width check (1/2/4/8 bytes)
5. Coalesce adjacent axes, check rank/size limits
6. Select a kernel strategy and build its launch geometry
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from transpose_compiler.coalesce import CoalescedProblem, coalesce_dims
from transpose_compiler.element_types import (
    ElementWidth,
    blas_precision,
    element_width,
    resolve_dtype,
    vector_pack,
)
from transpose_compiler.errors import ConfigurationError
from transpose_compiler.fast_divmod import FastDivmod
from transpose_compiler.fast_path import match_matrix_transpose
from transpose_compiler.shape_utils import (
    inverse_permutation,
    num_elements,
    permuted_shape,
    validate_permutation,
)
from transpose_compiler.strategy import Strategy, can_do_blas_transpose, select_strategy
from transpose_compiler.target_config import (
    DEFAULT_CONFIG,
    DEFAULT_DEVICE_CAPS,
    MAX_ELEMENTS,
    DeviceCaps,
    TransposeConfig,
)
from transpose_compiler.transpose_program import (
    BlasTransposeStep,
    GenericTransposeStep,
    NoopStep,
    Tiled3DStep,
    TransposeKernelSource,
    TransposePlan,
    TransposeStep,
    Vectorized4DStep,
)
from transpose_compiler.transpose_templates import (
    generic_transpose_source,
    half_matrix_transpose_source,
    tiled_3d_source,
    vectorized_4d_source,
)

logger = logging.getLogger(__name__)


def plan_transpose(
    permutation: Sequence[int] | None,
    input_shape: Sequence[int],
    dtype,
    caps: DeviceCaps = DEFAULT_DEVICE_CAPS,
    config: TransposeConfig = DEFAULT_CONFIG,
) -> TransposePlan:
    """Plan the permutation of a dense row-major tensor.

    Args:
        permutation: permutation[i] is the input axis that becomes output
            axis i. None reverses all axes.
        input_shape: Input dims, outermost first.
        dtype: numpy dtype (or name; "bfloat16" is resolved via ml_dtypes).
        caps: Launch limits of the target device.
        config: Planner tunables.

    Returns:
        TransposePlan with exactly one step.

    Raises:
        InvalidPermutationError: permutation is not a bijection over the axes.
        UnsupportedElementTypeError: element width not in {1, 2, 4, 8}.
        ConfigurationError: coalesced rank or element count over the limits.
    """
    shape = tuple(int(d) for d in input_shape)
    perm = validate_permutation(permutation, len(shape))
    output_shape = permuted_shape(shape, perm)
    np_dtype = resolve_dtype(dtype)
    total = num_elements(shape)

    def _plan(strategy: Strategy, step: TransposeStep, problem: CoalescedProblem | None = None):
        sources = []
        if getattr(step, "source_code", ""):
            sources.append(TransposeKernelSource(step.kernel_name, step.source_code))
        return TransposePlan(
            strategy=strategy,
            step=step,
            permutation=perm,
            input_shape=shape,
            output_shape=output_shape,
            dtype=np_dtype.name,
            problem=problem,
            kernel_sources=sources,
        )

    if total == 0:
        return _plan(Strategy.NOOP, NoopStep())
    if total > MAX_ELEMENTS:
        raise ConfigurationError(f"{total} elements exceed the 32-bit index range of the kernels")

    if config.use_blas_fast_path:
        precision = blas_precision(np_dtype)
        mn = match_matrix_transpose(perm, shape) if precision is not None else None
        if mn is not None and can_do_blas_transpose(precision, mn[0], mn[1], caps, config):
            logger.debug("cuBLAS fast path: %s perm %s -> M=%d N=%d", list(shape), list(perm), *mn)
            return _plan(Strategy.BLAS_MATRIX, build_blas_step(precision, mn[0], mn[1], config))

    width = element_width(np_dtype.itemsize, np_dtype.name)

    problem = coalesce_dims(perm, shape, output_shape)
    if problem.rank > config.max_rank:
        raise ConfigurationError(
            f"Coalesced rank {problem.rank} exceeds the supported maximum of {config.max_rank}"
        )

    strategy = select_strategy(problem, width.value, caps, config)
    if strategy is Strategy.VECTORIZED_4D:
        step = build_vectorized_4d_step(problem, width, config)
    elif strategy is Strategy.TILED_3D:
        step = build_tiled_3d_step(problem, width, config)
    else:
        step = build_generic_step(problem, width, config)
    return _plan(strategy, step, problem)


def build_blas_step(precision: str, M: int, N: int, config: TransposeConfig = DEFAULT_CONFIG) -> BlasTransposeStep:
    if precision != "h":
        return BlasTransposeStep(precision=precision, M=M, N=N)

    tile = config.tile_dim
    name, source = half_matrix_transpose_source(tile, config.block_rows)
    return BlasTransposeStep(
        precision=precision,
        M=M,
        N=N,
        kernel_name=name,
        source_code=source,
        block_dim=(tile, config.block_rows),
        grid_dim=((N + tile - 1) // tile, (M + tile - 1) // tile),
    )


def build_generic_step(
    problem: CoalescedProblem, width: ElementWidth, config: TransposeConfig = DEFAULT_CONFIG,
) -> GenericTransposeStep:
    name, source = generic_transpose_source(width)
    return GenericTransposeStep(
        kernel_name=name,
        source_code=source,
        element_size=width.value,
        input_strides=list(problem.permuted_input_strides),
        output_divisors=[FastDivmod.from_divisor(s) for s in problem.output_strides],
        total_elements=num_elements(problem.input_dims),
        block_size=config.block_size,
    )


def build_vectorized_4d_step(
    problem: CoalescedProblem, width: ElementWidth, config: TransposeConfig = DEFAULT_CONFIG,
) -> Vectorized4DStep:
    dims = problem.input_dims
    pack = vector_pack(width.value, config.vector_bytes)
    inverse = inverse_permutation(problem.permutation)
    name, source = vectorized_4d_source(config.vector_bytes)
    return Vectorized4DStep(
        kernel_name=name,
        source_code=source,
        element_size=width.value,
        pack=pack,
        input_strides=list(problem.input_strides),
        output_strides=[problem.output_strides[inverse[i]] for i in range(4)],
        total_vectors=num_elements(dims) // pack,
        grid_dim=(dims[1], dims[0]),
        block_dim=(dims[3] // pack, dims[2]),
    )


def build_tiled_3d_step(
    problem: CoalescedProblem, width: ElementWidth, config: TransposeConfig = DEFAULT_CONFIG,
) -> Tiled3DStep:
    dims = problem.input_dims
    tile = config.tile_dim
    name, source = tiled_3d_source(width, tile, config.block_rows)
    return Tiled3DStep(
        kernel_name=name,
        source_code=source,
        element_size=width.value,
        input_dims=list(dims),
        slice_stride=problem.input_strides[0],
        tile_dim=tile,
        block_rows=config.block_rows,
        grid_dim=(dims[2] // tile, dims[1] // tile, dims[0]),
        block_dim=(tile, config.block_rows),
    )


def describe_plan(plan: TransposePlan) -> str:
    """One-line summary used in logs and benchmark output."""
    coalesced = ""
    if plan.problem is not None:
        coalesced = f" coalesced={list(plan.problem.input_dims)}/{list(plan.problem.permutation)}"
    return (
        f"{plan.strategy.name} {plan.dtype}{list(plan.input_shape)} perm={list(plan.permutation)}"
        f"{coalesced}"
    )
