"""Tests for the transpose planner: fast path, coalescing, strategy selection, plans.

These tests do NOT require CuPy/CUDA: they test the offline planning pipeline only.
"""

import ml_dtypes
import numpy as np
import pytest

from transpose_compiler import (
    ConfigurationError,
    InvalidPermutationError,
    Strategy,
    TransposeConfig,
    UnsupportedElementTypeError,
    plan_transpose,
)
from transpose_compiler.coalesce import coalesce_dims, make_problem
from transpose_compiler.element_types import ElementWidth, element_width, resolve_dtype
from transpose_compiler.fast_divmod import FastDivmod
from transpose_compiler.fast_path import match_matrix_transpose
from transpose_compiler.shape_utils import (
    inverse_permutation,
    packed_strides,
    permuted_shape,
    validate_permutation,
)
from transpose_compiler.strategy import (
    can_do_blas_transpose,
    can_do_transpose_3d,
    can_do_transpose_4d,
    select_strategy,
)
from transpose_compiler.target_config import DeviceCaps
from transpose_compiler.transpose_program import (
    BlasTransposeStep,
    GenericTransposeStep,
    NoopStep,
    Tiled3DStep,
    Vectorized4DStep,
)
from transpose_compiler.transpose_templates import (
    generic_transpose_source,
    half_matrix_transpose_source,
    tiled_3d_source,
    vectorized_4d_source,
)

# ---------------------------------------------------------------------------
# 1. Shape helpers
# ---------------------------------------------------------------------------


class TestShapeUtils:
    def test_packed_strides(self):
        assert packed_strides([2, 3, 4]) == (12, 4, 1)
        assert packed_strides([5]) == (1,)
        assert packed_strides([]) == ()

    def test_permuted_shape(self):
        assert permuted_shape([2, 3, 4], [2, 0, 1]) == (4, 2, 3)

    def test_inverse_permutation(self):
        assert inverse_permutation([2, 0, 1]) == (1, 2, 0)
        assert inverse_permutation([0, 2, 1, 3]) == (0, 2, 1, 3)

    def test_default_permutation_reverses_axes(self):
        assert validate_permutation(None, 4) == (3, 2, 1, 0)

    @pytest.mark.parametrize("perm", [[0, 0, 1], [0, 1], [0, 1, 3], [-1, 0, 1]])
    def test_invalid_permutation(self, perm):
        with pytest.raises(InvalidPermutationError):
            validate_permutation(perm, 3)


# ---------------------------------------------------------------------------
# 2. Fast-path classifier
# ---------------------------------------------------------------------------


class TestFastPath:
    def test_2d_transpose(self):
        assert match_matrix_transpose([1, 0], [4, 6]) == (4, 6)

    def test_nchw_to_nhwc(self):
        assert match_matrix_transpose([0, 2, 3, 1], [1, 3, 4, 5]) == (3, 20)

    def test_nhwc_to_nchw(self):
        assert match_matrix_transpose([0, 3, 1, 2], [1, 4, 5, 3]) == (20, 3)

    def test_batch_not_one(self):
        assert match_matrix_transpose([0, 2, 3, 1], [2, 3, 4, 5]) is None

    def test_identity_2d(self):
        assert match_matrix_transpose([0, 1], [4, 6]) is None

    def test_other_4d_permutation(self):
        assert match_matrix_transpose([0, 2, 1, 3], [1, 3, 4, 5]) is None

    def test_rank_3(self):
        assert match_matrix_transpose([2, 1, 0], [2, 3, 4]) is None


# ---------------------------------------------------------------------------
# 3. Dimension coalescing
# ---------------------------------------------------------------------------


class TestCoalesce:
    def test_identity_collapses_to_rank_1(self):
        p = coalesce_dims([0, 1, 2], [2, 3, 4])
        assert p.permutation == (0,)
        assert p.input_dims == (24,)
        assert p.output_dims == (24,)

    def test_inner_run_folded(self):
        p = coalesce_dims([0, 2, 3, 1], [2, 3, 4, 5])
        assert p.permutation == (0, 2, 1)
        assert p.input_dims == (2, 3, 20)
        assert p.output_dims == (2, 20, 3)
        assert p.input_strides == (60, 20, 1)
        assert p.output_strides == (60, 3, 1)

    def test_channel_move_becomes_3d_swap(self):
        p = coalesce_dims([0, 3, 1, 2], [1, 4, 32, 32])
        assert p.permutation == (0, 2, 1)
        assert p.input_dims == (1, 128, 32)
        assert p.output_dims == (1, 32, 128)

    def test_rotation_becomes_2d(self):
        p = coalesce_dims([2, 0, 1], [2, 3, 4])
        assert p.permutation == (1, 0)
        assert p.input_dims == (6, 4)
        assert p.output_dims == (4, 6)

    def test_two_runs(self):
        p = coalesce_dims([3, 4, 0, 1, 2], [2, 3, 4, 5, 6])
        assert p.permutation == (1, 0)
        assert p.input_dims == (24, 30)
        assert p.output_dims == (30, 24)

    def test_nothing_to_fold(self):
        p = coalesce_dims([2, 1, 0], [2, 3, 4])
        assert p.permutation == (2, 1, 0)
        assert p.input_dims == (2, 3, 4)
        assert p.output_dims == (4, 3, 2)

    def test_element_count_preserved(self):
        for perm, shape in [([0, 2, 3, 1], [2, 3, 4, 5]), ([1, 2, 0, 3], [3, 1, 4, 2])]:
            p = coalesce_dims(perm, shape)
            assert np.prod(p.input_dims) == np.prod(shape)
            assert np.prod(p.output_dims) == np.prod(shape)
            assert permuted_shape(p.input_dims, p.permutation) == p.output_dims

    def test_make_problem_keeps_rank(self):
        p = make_problem([0, 1, 2], [2, 3, 4])
        assert p.rank == 3
        assert p.permuted_input_strides == (12, 4, 1)


# ---------------------------------------------------------------------------
# 4. Fast divmod
# ---------------------------------------------------------------------------


class TestFastDivmod:
    @pytest.mark.parametrize("divisor", [1, 2, 3, 5, 7, 24, 384, 1000, 65536, 65537, 2**31 - 1])
    def test_matches_integer_division(self, divisor, rng):
        fd = FastDivmod.from_divisor(divisor)
        samples = list(rng.integers(0, 2**31 - 1, 200)) + [0, 1, divisor - 1, divisor, 2**31 - 1]
        for n in samples:
            n = int(n)
            assert fd.div(n) == n // divisor
            assert fd.divmod(n) == divmod(n, divisor)

    def test_divisor_one(self):
        fd = FastDivmod.from_divisor(1)
        assert (fd.multiplier, fd.shift) == (1, 0)

    def test_multiplier_fits_32_bits(self):
        for d in range(1, 5000):
            assert 0 <= FastDivmod.from_divisor(d).multiplier < 2**32


# ---------------------------------------------------------------------------
# 5. Element widths
# ---------------------------------------------------------------------------


class TestElementTypes:
    def test_supported_widths(self):
        assert element_width(1) is ElementWidth.B1
        assert element_width(8).ctype == "unsigned long long"
        assert element_width(4).suffix == "u32"

    @pytest.mark.parametrize("size", [3, 16, 0])
    def test_unsupported_width(self, size):
        with pytest.raises(UnsupportedElementTypeError) as exc:
            element_width(size)
        assert exc.value.element_size == size

    def test_bfloat16_resolves(self):
        assert resolve_dtype("bfloat16") == np.dtype(ml_dtypes.bfloat16)
        assert resolve_dtype("bfloat16").itemsize == 2


# ---------------------------------------------------------------------------
# 6. Strategy selection
# ---------------------------------------------------------------------------


class TestStrategy:
    def test_vectorized_4d(self):
        p = coalesce_dims([0, 2, 1, 3], [2, 3, 8, 16])
        assert p.rank == 4
        assert can_do_transpose_4d(p, 4)
        assert select_strategy(p, 4) is Strategy.VECTORIZED_4D

    def test_vectorized_4d_below_warp_falls_back(self):
        # 4 * 8 float32 = 8 int4 threads, not a warp multiple
        p = coalesce_dims([0, 2, 1, 3], [2, 3, 4, 8])
        assert not can_do_transpose_4d(p, 4)
        assert select_strategy(p, 4) is Strategy.GENERIC

    def test_vectorized_4d_respects_device_caps(self):
        p = coalesce_dims([0, 2, 1, 3], [2, 3, 8, 16])
        assert not can_do_transpose_4d(p, 4, DeviceCaps(warp_size=64))
        assert not can_do_transpose_4d(p, 4, DeviceCaps(max_threads_per_block=16))
        assert not can_do_transpose_4d(p, 4, DeviceCaps(max_grid_dim_y=1))

    def test_vectorized_4d_inner_axis_not_pack_aligned(self):
        # int8 packs 16 per int4; D3 = 8 cannot hold a whole vector
        p = coalesce_dims([0, 2, 1, 3], [2, 3, 64, 8])
        assert not can_do_transpose_4d(p, 1)

    def test_vectorized_4d_needs_fixed_inner_axis(self):
        p = coalesce_dims([3, 2, 1, 0], [2, 3, 8, 16])
        assert not can_do_transpose_4d(p, 4)

    def test_tiled_3d(self):
        p = coalesce_dims([0, 2, 1], [2, 64, 32])
        assert can_do_transpose_3d(p, 4)
        assert select_strategy(p, 4) is Strategy.TILED_3D

    def test_tiled_3d_unaligned(self):
        p = coalesce_dims([0, 2, 1], [2, 64, 48])
        assert not can_do_transpose_3d(p, 4)
        assert select_strategy(p, 4) is Strategy.GENERIC

    def test_tiled_3d_respects_device_caps(self):
        p = coalesce_dims([0, 2, 1], [2, 64, 32])
        assert not can_do_transpose_3d(p, 4, DeviceCaps(max_grid_dim_z=1))
        assert not can_do_transpose_3d(p, 4, DeviceCaps(max_grid_dim_y=1))

    def test_tiled_3d_disabled(self):
        p = coalesce_dims([0, 2, 1], [2, 64, 32])
        assert select_strategy(p, 4, config=TransposeConfig(enable_tiled_3d=False)) is Strategy.GENERIC

    def test_unsupported_width_goes_generic(self):
        p = coalesce_dims([0, 2, 1, 3], [2, 3, 8, 48])
        assert select_strategy(p, 3) is Strategy.GENERIC


# ---------------------------------------------------------------------------
# 7. Planner
# ---------------------------------------------------------------------------


class TestPlanTranspose:
    def test_float32_2d_uses_blas(self):
        plan = plan_transpose([1, 0], [4, 6], np.float32)
        assert plan.strategy is Strategy.BLAS_MATRIX
        step = plan.step
        assert isinstance(step, BlasTransposeStep)
        assert (step.precision, step.M, step.N, step.lda, step.ldc) == ("s", 4, 6, 6, 4)
        assert plan.kernel_sources == []
        assert plan.output_shape == (6, 4)

    def test_float64_channel_move_uses_blas(self):
        plan = plan_transpose([0, 2, 3, 1], [1, 3, 4, 5], np.float64)
        assert plan.strategy is Strategy.BLAS_MATRIX
        assert (plan.step.precision, plan.step.M, plan.step.N) == ("d", 3, 20)

    def test_float16_blas_uses_helper_kernel(self):
        plan = plan_transpose([1, 0], [40, 70], np.float16)
        step = plan.step
        assert plan.strategy is Strategy.BLAS_MATRIX
        assert step.precision == "h"
        assert step.grid_dim == (3, 2)
        assert step.block_dim == (32, 8)
        assert [k.kernel_name for k in plan.kernel_sources] == [step.kernel_name]

    def test_float16_helper_over_grid_limit_falls_back(self):
        # M = 2048 * 2048 rows -> 131072 tiles along grid y
        plan = plan_transpose([0, 3, 1, 2], [1, 2048, 2048, 3], np.float16)
        assert plan.strategy is Strategy.GENERIC
        assert plan.problem.input_dims == (1, 2048 * 2048, 3)

    def test_float16_helper_respects_device_caps(self):
        caps = DeviceCaps(max_grid_dim_y=1)
        assert plan_transpose([1, 0], [32, 70], np.float16, caps=caps).strategy is Strategy.BLAS_MATRIX
        assert plan_transpose([1, 0], [40, 70], np.float16, caps=caps).strategy is Strategy.GENERIC

    def test_blas_gate_ignores_grid_for_geam(self):
        caps = DeviceCaps(max_grid_dim_y=1)
        assert can_do_blas_transpose("s", 2**20, 4, caps)
        assert not can_do_blas_transpose("h", 2**20, 4, caps)
        assert plan_transpose([1, 0], [40, 70], np.float32, caps=caps).strategy is Strategy.BLAS_MATRIX

    def test_int32_2d_skips_blas(self):
        plan = plan_transpose([1, 0], [4, 6], np.int32)
        assert plan.strategy is Strategy.GENERIC

    def test_bfloat16_skips_blas(self):
        plan = plan_transpose([1, 0], [4, 6], "bfloat16")
        assert plan.strategy is Strategy.GENERIC
        assert plan.step.kernel_name == "transpose_generic_u16"
        assert plan.dtype == "bfloat16"

    def test_blas_fast_path_disabled(self):
        plan = plan_transpose([1, 0], [4, 6], np.float32, config=TransposeConfig(use_blas_fast_path=False))
        assert plan.strategy is Strategy.GENERIC

    def test_zero_size_is_noop(self):
        plan = plan_transpose([2, 0, 1], [0, 5, 3], np.float32)
        assert plan.strategy is Strategy.NOOP
        assert isinstance(plan.step, NoopStep)
        assert plan.output_shape == (3, 0, 5)
        assert plan.kernel_sources == []

    def test_three_byte_elements_rejected(self):
        with pytest.raises(UnsupportedElementTypeError) as exc:
            plan_transpose([1, 0], [2, 3], np.dtype("V3"))
        assert exc.value.element_size == 3
        assert "3 bytes" in str(exc.value)

    def test_three_byte_zero_size_is_noop(self):
        plan = plan_transpose([1, 0], [0, 3], np.dtype("V3"))
        assert plan.strategy is Strategy.NOOP

    def test_complex128_rejected(self):
        with pytest.raises(UnsupportedElementTypeError):
            plan_transpose([1, 0], [2, 3], np.complex128)

    def test_generic_step_geometry(self):
        plan = plan_transpose([2, 0, 1], [2, 3, 4], np.float32)
        step = plan.step
        assert plan.strategy is Strategy.GENERIC
        assert isinstance(step, GenericTransposeStep)
        assert plan.problem.input_dims == (6, 4)
        assert step.rank == 2
        assert step.input_strides == [1, 4]
        assert [fd.divisor for fd in step.output_divisors] == [6, 1]
        assert step.total_elements == 24
        assert step.grid_dim == (1,)
        assert step.kernel_name == "transpose_generic_u32"

    def test_vectorized_step_geometry(self):
        plan = plan_transpose([0, 2, 1, 3], [2, 3, 8, 16], np.float32)
        step = plan.step
        assert plan.strategy is Strategy.VECTORIZED_4D
        assert isinstance(step, Vectorized4DStep)
        assert step.pack == 4
        assert step.grid_dim == (3, 2)
        assert step.block_dim == (4, 8)
        assert step.input_strides == [384, 128, 16, 1]
        assert step.output_strides == [384, 16, 48, 1]
        assert step.total_vectors == 192

    def test_vectorized_step_follows_vector_bytes(self):
        config = TransposeConfig(vector_bytes=8)
        plan = plan_transpose([0, 2, 1, 3], [2, 3, 16, 16], np.float32, config=config)
        step = plan.step
        assert plan.strategy is Strategy.VECTORIZED_4D
        assert step.pack * 4 == config.vector_bytes
        assert step.block_dim == (8, 16)
        assert step.total_vectors == 768
        assert step.kernel_name == "transpose_4d_vec8"
        assert "const int2* input" in step.source_code
        assert "int4" not in step.source_code

    @pytest.mark.parametrize("vector_bytes", [0, 2, 12, 32])
    def test_unsupported_vector_bytes(self, vector_bytes):
        with pytest.raises(ConfigurationError):
            TransposeConfig(vector_bytes=vector_bytes)

    def test_element_wider_than_vector_skips_4d(self):
        config = TransposeConfig(vector_bytes=4)
        plan = plan_transpose([0, 2, 1, 3], [2, 3, 8, 64], np.float64, config=config)
        assert plan.strategy is Strategy.GENERIC

    def test_tiled_step_geometry(self):
        plan = plan_transpose([0, 2, 1], [2, 64, 32], np.int32)
        step = plan.step
        assert plan.strategy is Strategy.TILED_3D
        assert isinstance(step, Tiled3DStep)
        assert step.grid_dim == (1, 2, 2)
        assert step.block_dim == (32, 8)
        assert step.slice_stride == 2048

    def test_channel_move_int8_becomes_tiled(self):
        plan = plan_transpose([0, 3, 1, 2], [1, 4, 32, 32], np.int8)
        assert plan.strategy is Strategy.TILED_3D
        assert plan.problem.input_dims == (1, 128, 32)

    def test_rank_overflow(self):
        shape = [2] * 9
        with pytest.raises(ConfigurationError):
            plan_transpose(None, shape, np.int32)
        plan = plan_transpose(None, shape, np.int32, config=TransposeConfig(max_rank=9))
        assert plan.problem.rank == 9

    def test_high_rank_identity_coalesces_below_limit(self):
        plan = plan_transpose(list(range(12)), [2] * 12, np.int32)
        assert plan.problem.rank == 1

    def test_too_many_elements(self):
        with pytest.raises(ConfigurationError):
            plan_transpose([1, 0], [2**16, 2**16], np.int8)

    def test_invalid_permutation(self):
        with pytest.raises(InvalidPermutationError):
            plan_transpose([0, 0], [2, 3], np.float32)


# ---------------------------------------------------------------------------
# 8. Kernel templates
# ---------------------------------------------------------------------------


class TestTemplates:
    @pytest.mark.parametrize("width", list(ElementWidth))
    def test_generic_source(self, width):
        name, source = generic_transpose_source(width)
        assert f"__global__ void {name}(" in source
        assert f"const {width.ctype}* input" in source
        assert "__umulhi" in source
        assert source.count("{") == source.count("}")

    def test_vectorized_source(self):
        name, source = vectorized_4d_source()
        assert "const int4* input" in source
        assert source.count("{") == source.count("}")

    def test_tiled_source(self):
        name, source = tiled_3d_source(ElementWidth.B2, 32, 8)
        assert "#define TILE_DIM 32" in source
        assert "unsigned short tile[TILE_DIM][TILE_DIM + 1]" in source
        assert source.count("__syncthreads()") == 1
        assert name in source

    def test_half_matrix_source(self):
        name, source = half_matrix_transpose_source()
        assert f"__global__ void {name}(" in source
        assert source.count("{") == source.count("}")
