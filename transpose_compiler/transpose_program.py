"""Transpose plan data model: one execution step plus its launch geometry.

A TransposePlan is the transpose analogue of a CUDAProgram with exactly one
step. Steps carry everything the executor needs to enqueue the work without
looking at the permutation again.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from transpose_compiler.coalesce import CoalescedProblem
from transpose_compiler.fast_divmod import FastDivmod
from transpose_compiler.strategy import Strategy


@dataclass
class TransposeKernelSource:
    """CUDA C source code for NVRTC JIT compilation."""

    kernel_name: str
    source_code: str


@dataclass
class NoopStep:
    """Zero-sized tensor: no launch."""

    total_elements: int = 0


@dataclass
class BlasTransposeStep:
    """Row-major M x N -> N x M via cuBLAS geam (op T, op T).

    float16 has no geam; kernel_name/source_code then name the tiled helper.
    """

    precision: str  # "s", "d", "h"
    M: int
    N: int
    kernel_name: str = ""
    source_code: str = ""
    block_dim: tuple[int, ...] = (1,)
    grid_dim: tuple[int, ...] = (1,)

    @property
    def lda(self) -> int:
        return self.N

    @property
    def ldc(self) -> int:
        return self.M


@dataclass
class GenericTransposeStep:
    """One thread per output element; fast-divmod over output pitches."""

    kernel_name: str
    source_code: str
    element_size: int
    input_strides: list[int]  # input pitch for each output axis
    output_divisors: list[FastDivmod]
    total_elements: int
    block_size: int = 256

    @property
    def rank(self) -> int:
        return len(self.input_strides)

    @property
    def grid_dim(self) -> tuple[int, ...]:
        return ((self.total_elements + self.block_size - 1) // self.block_size,)

    @property
    def block_dim(self) -> tuple[int, ...]:
        return (self.block_size,)


@dataclass
class Vectorized4DStep:
    """16-byte copies over input coordinates (blockIdx.y, blockIdx.x, threadIdx.y, threadIdx.x)."""

    kernel_name: str
    source_code: str
    element_size: int
    pack: int
    input_strides: list[int]  # input pitch per input axis
    output_strides: list[int]  # output pitch per input axis
    total_vectors: int
    grid_dim: tuple[int, ...] = (1,)
    block_dim: tuple[int, ...] = (1,)


@dataclass
class Tiled3DStep:
    """[D0, D1, D2] -> [D0, D2, D1] through a shared-memory tile per block."""

    kernel_name: str
    source_code: str
    element_size: int
    input_dims: list[int]
    slice_stride: int
    tile_dim: int = 32
    block_rows: int = 8
    grid_dim: tuple[int, ...] = (1,)
    block_dim: tuple[int, ...] = (1,)


TransposeStep = NoopStep | BlasTransposeStep | GenericTransposeStep | Vectorized4DStep | Tiled3DStep


@dataclass
class TransposePlan:
    """Complete transpose execution plan for one (shape, permutation, dtype)."""

    strategy: Strategy
    step: TransposeStep
    permutation: tuple[int, ...]
    input_shape: tuple[int, ...]
    output_shape: tuple[int, ...]
    dtype: str
    problem: CoalescedProblem | None = None
    kernel_sources: list[TransposeKernelSource] = field(default_factory=list)

    @property
    def total_elements(self) -> int:
        total = 1
        for d in self.input_shape:
            total *= d
        return total
