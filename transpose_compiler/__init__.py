"""Transpose planner: turns (permutation, shape, dtype) into a TransposePlan.

Entry point: plan_transpose(permutation, shape, dtype) -> TransposePlan

The planner never touches the GPU. It simplifies the permutation by
coalescing axes that move together, picks one of the kernel strategies
(cuBLAS matrix transpose, vectorized 4D, tiled 3D, generic) and packages the
launch geometry and NVRTC sources for transpose_runtime.
"""

from __future__ import annotations

from transpose_compiler.coalesce import CoalescedProblem as CoalescedProblem
from transpose_compiler.coalesce import coalesce_dims as coalesce_dims
from transpose_compiler.errors import ConfigurationError as ConfigurationError
from transpose_compiler.errors import InvalidPermutationError as InvalidPermutationError
from transpose_compiler.errors import MissingInputError as MissingInputError
from transpose_compiler.errors import ShapeMismatchError as ShapeMismatchError
from transpose_compiler.errors import TransposeError as TransposeError
from transpose_compiler.errors import UnsupportedElementTypeError as UnsupportedElementTypeError
from transpose_compiler.errors import VendorCallError as VendorCallError
from transpose_compiler.fast_path import match_matrix_transpose as match_matrix_transpose
from transpose_compiler.planner import describe_plan as describe_plan
from transpose_compiler.planner import plan_transpose as plan_transpose
from transpose_compiler.strategy import Strategy as Strategy
from transpose_compiler.target_config import DEFAULT_CONFIG as DEFAULT_CONFIG
from transpose_compiler.target_config import DEFAULT_DEVICE_CAPS as DEFAULT_DEVICE_CAPS
from transpose_compiler.target_config import DeviceCaps as DeviceCaps
from transpose_compiler.target_config import TransposeConfig as TransposeConfig
from transpose_compiler.transpose_program import TransposePlan as TransposePlan
