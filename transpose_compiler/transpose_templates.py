"""CUDA kernel templates for the transpose engines.

These templates are compiled via NVRTC at runtime. Each function returns
(kernel_name, CUDA C source) for one element width; kernels copy raw bits,
so the element type is always an unsigned integer of the right width.
"""

from __future__ import annotations

from transpose_compiler.element_types import VECTOR_TYPES, ElementWidth

GENERIC_TRANSPOSE_KERNEL = r"""
extern "C" {{
// One thread per output element. The flat output id is split into per-axis
// coordinates with reciprocal-multiply division by the output pitches
// (most significant axis first); each coordinate is scaled by the input
// pitch of the input axis feeding that output axis.
__global__ void {name}(const {ctype}* input, {ctype}* output, int rank,
                       const long long* input_strides,
                       const unsigned int* divisors,
                       const unsigned int* multipliers,
                       const unsigned int* shifts,
                       int N) {{
    int id = blockIdx.x * blockDim.x + threadIdx.x;
    if (id >= N) return;

    long long input_index = 0;
    unsigned int output_index = (unsigned int)id;
    for (int dim = 0; dim < rank; dim++) {{
        unsigned int hi = __umulhi(multipliers[dim], output_index);
        unsigned int q = (hi + output_index) >> shifts[dim];
        unsigned int r = output_index - q * divisors[dim];
        input_index += input_strides[dim] * (long long)q;
        output_index = r;
    }}
    output[id] = input[input_index];
}}
}}
"""

VECTORIZED_4D_KERNEL = r"""
extern "C" {{
// Grid (D1, D0), block (D3 / pack, D2) over input coordinates. Offsets of the
// three outer axes are computed in elements and converted to {vtype} units; the
// innermost axis is unmoved so it advances one vector per thread.
__global__ void {name}(const {vtype}* input, {vtype}* output,
                       const long long* input_strides,
                       const long long* output_strides,
                       long long pack, long long N) {{
    long long input_index = ((long long)blockIdx.y * input_strides[0] +
                             (long long)blockIdx.x * input_strides[1] +
                             (long long)threadIdx.y * input_strides[2]) / pack +
                            (long long)threadIdx.x * input_strides[3];

    long long output_index = ((long long)blockIdx.y * output_strides[0] +
                              (long long)blockIdx.x * output_strides[1] +
                              (long long)threadIdx.y * output_strides[2]) / pack +
                             (long long)threadIdx.x * output_strides[3];

    if (input_index < N && output_index < N) {{
        output[output_index] = input[input_index];
    }}
}}
}}
"""

TILED_3D_KERNEL = r"""
#define TILE_DIM {tile_dim}
#define BLOCK_ROWS {block_rows}
extern "C" {{
// [D0, D1, D2] -> [D0, D2, D1]. One block per TILE_DIM x TILE_DIM tile of one
// outer slice (blockIdx.z). The padding column keeps the transposed read out
// of a single shared-memory bank.
__global__ void {name}(const {ctype}* input, {ctype}* output,
                       long long dim1, long long dim2, long long slice_stride) {{
    __shared__ {ctype} tile[TILE_DIM][TILE_DIM + 1];

    long long base = (long long)blockIdx.z * slice_stride;
    int x = blockIdx.x * TILE_DIM + threadIdx.x;
    int y = blockIdx.y * TILE_DIM + threadIdx.y;

    for (int j = 0; j < TILE_DIM; j += BLOCK_ROWS) {{
        tile[threadIdx.y + j][threadIdx.x] = input[base + (long long)(y + j) * dim2 + x];
    }}
    __syncthreads();

    x = blockIdx.y * TILE_DIM + threadIdx.x;
    y = blockIdx.x * TILE_DIM + threadIdx.y;

    for (int j = 0; j < TILE_DIM; j += BLOCK_ROWS) {{
        output[base + (long long)(y + j) * dim1 + x] = tile[threadIdx.x][threadIdx.y + j];
    }}
}}
}}
"""

HALF_MATRIX_TRANSPOSE_KERNEL = r"""
#define TILE_DIM {tile_dim}
#define BLOCK_ROWS {block_rows}
extern "C" {{
// Row-major M x N -> N x M for 16-bit floats (cuBLAS has no half geam).
// Bounds-checked, so M and N need not be tile multiples.
__global__ void {name}(const unsigned short* input, unsigned short* output, int M, int N) {{
    __shared__ unsigned short tile[TILE_DIM][TILE_DIM + 1];

    int x = blockIdx.x * TILE_DIM + threadIdx.x;
    int y = blockIdx.y * TILE_DIM + threadIdx.y;
    for (int j = 0; j < TILE_DIM; j += BLOCK_ROWS) {{
        if (x < N && y + j < M) {{
            tile[threadIdx.y + j][threadIdx.x] = input[(long long)(y + j) * N + x];
        }}
    }}
    __syncthreads();

    x = blockIdx.y * TILE_DIM + threadIdx.x;
    y = blockIdx.x * TILE_DIM + threadIdx.y;
    for (int j = 0; j < TILE_DIM; j += BLOCK_ROWS) {{
        if (x < M && y + j < N) {{
            output[(long long)(y + j) * M + x] = tile[threadIdx.x][threadIdx.y + j];
        }}
    }}
}}
}}
"""


def generic_transpose_source(width: ElementWidth) -> tuple[str, str]:
    name = f"transpose_generic_{width.suffix}"
    return name, GENERIC_TRANSPOSE_KERNEL.format(name=name, ctype=width.ctype)


def vectorized_4d_source(vector_bytes: int = 16) -> tuple[str, str]:
    """One vector of `vector_bytes` per thread; element width only changes `pack`."""
    name = f"transpose_4d_vec{vector_bytes}"
    return name, VECTORIZED_4D_KERNEL.format(name=name, vtype=VECTOR_TYPES[vector_bytes])


def tiled_3d_source(width: ElementWidth, tile_dim: int = 32, block_rows: int = 8) -> tuple[str, str]:
    name = f"transpose_3d_tiled_{width.suffix}_t{tile_dim}x{block_rows}"
    return name, TILED_3D_KERNEL.format(
        name=name, ctype=width.ctype, tile_dim=tile_dim, block_rows=block_rows,
    )


def half_matrix_transpose_source(tile_dim: int = 32, block_rows: int = 8) -> tuple[str, str]:
    name = f"half_matrix_transpose_t{tile_dim}x{block_rows}"
    return name, HALF_MATRIX_TRANSPOSE_KERNEL.format(name=name, tile_dim=tile_dim, block_rows=block_rows)
