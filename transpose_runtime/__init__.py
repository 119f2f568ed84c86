"""Transpose runtime: CuPy-based GPU execution of transpose plans."""

from transpose_runtime.device import query_device_caps as query_device_caps
from transpose_runtime.tensor import DeviceTensor as DeviceTensor
from transpose_runtime.transpose import TransposeResult as TransposeResult
from transpose_runtime.transpose import Transposer as Transposer
from transpose_runtime.transpose import transpose as transpose
from transpose_runtime.transpose_executor import LaunchToken as LaunchToken
from transpose_runtime.transpose_executor import TransposeExecutor as TransposeExecutor
