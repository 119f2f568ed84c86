"""Transpose executor: launches a TransposePlan on the current CUDA stream.

Architecture:
    - NVRTC JIT compilation at __init__ time (not per-launch)
    - Module-level kernel cache (source hash → RawKernel) avoids re-NVRTC
    - cuBLAS geam via cupy.cuda.cublas (no extra dependency)
    - Per-plan device arrays (strides, divisors) uploaded once
    - launch() enqueues exactly one kernel or cuBLAS call and returns a
      LaunchToken; it never synchronizes
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

from transpose_compiler.errors import VendorCallError
from transpose_compiler.transpose_program import (
    BlasTransposeStep,
    GenericTransposeStep,
    NoopStep,
    Tiled3DStep,
    TransposePlan,
    Vectorized4DStep,
)

try:
    import cupy as cp
    from cupy.cuda import cublas

    HAS_CUPY = True
except ImportError:
    cp = None
    cublas = None
    HAS_CUPY = False

if TYPE_CHECKING:
    from transpose_runtime.tensor import DeviceTensor

logger = logging.getLogger(__name__)

# Module-level NVRTC compilation cache: source_hash → RawKernel
# Survives across TransposeExecutor instances, avoiding redundant NVRTC calls
_KERNEL_CACHE: dict[str, "cp.RawKernel"] = {}


def _get_or_compile_kernel(source_code: str, kernel_name: str) -> "cp.RawKernel":
    """Get a compiled kernel from cache or compile via NVRTC."""
    key = hashlib.md5(source_code.encode()).hexdigest() + ":" + kernel_name
    cached = _KERNEL_CACHE.get(key)
    if cached is not None:
        return cached
    logger.debug("NVRTC compile %s", kernel_name)
    kernel = cp.RawKernel(source_code, kernel_name)
    _KERNEL_CACHE[key] = kernel
    return kernel


@dataclass
class LaunchToken:
    """Completion token for one enqueued transpose.

    event is None when nothing was launched (zero-sized tensors).
    """

    event: Any = None

    @property
    def done(self) -> bool:
        return self.event is None or self.event.done

    def synchronize(self) -> None:
        if self.event is not None:
            self.event.synchronize()


class TransposeExecutor:
    """Executes one TransposePlan on a CUDA GPU.

    Init-time work:
        - NVRTC compile the plan's kernel (cached across instances)
        - Upload stride / fast-divmod tables

    Launch-time work (hot path):
        - One kernel launch or one cuBLAS geam call
    """

    def __init__(self, plan: TransposePlan):
        if not HAS_CUPY:
            raise RuntimeError("CuPy is not installed")

        self._plan = plan
        self._kernel = None
        for ksrc in plan.kernel_sources:
            self._kernel = _get_or_compile_kernel(ksrc.source_code, ksrc.kernel_name)

        self._device_arrays: dict[str, cp.ndarray] = {}
        step = plan.step
        if isinstance(step, GenericTransposeStep):
            self._device_arrays["input_strides"] = cp.array(step.input_strides, dtype=cp.int64)
            self._device_arrays["divisors"] = cp.array(
                [fd.divisor for fd in step.output_divisors], dtype=cp.uint32,
            )
            self._device_arrays["multipliers"] = cp.array(
                [fd.multiplier for fd in step.output_divisors], dtype=cp.uint32,
            )
            self._device_arrays["shifts"] = cp.array(
                [fd.shift for fd in step.output_divisors], dtype=cp.uint32,
            )
        elif isinstance(step, Vectorized4DStep):
            self._device_arrays["input_strides"] = cp.array(step.input_strides, dtype=cp.int64)
            self._device_arrays["output_strides"] = cp.array(step.output_strides, dtype=cp.int64)

        self._dispatch = {
            BlasTransposeStep: self._dispatch_blas,
            GenericTransposeStep: self._dispatch_generic,
            Vectorized4DStep: self._dispatch_vectorized_4d,
            Tiled3DStep: self._dispatch_tiled_3d,
        }.get(type(step))

    @property
    def plan(self) -> TransposePlan:
        return self._plan

    def launch(self, input: DeviceTensor, output: DeviceTensor) -> LaunchToken:
        """Enqueue the transpose on the current stream.

        The caller synchronizes (LaunchToken.synchronize or stream sync)
        before reading the output.
        """
        if isinstance(self._plan.step, NoopStep):
            return LaunchToken()
        stream = cp.cuda.get_current_stream()
        self._dispatch(self._plan.step, input.native_handle, output.native_handle, stream)
        event = cp.cuda.Event(disable_timing=True)
        event.record(stream)
        return LaunchToken(event)

    def _dispatch_generic(self, step: GenericTransposeStep, inp, out, stream) -> None:
        d = self._device_arrays
        block = step.block_size
        grid = step.grid_dim
        self._kernel(
            grid, (block,),
            (inp, out, np.int32(step.rank),
             d["input_strides"], d["divisors"], d["multipliers"], d["shifts"],
             np.int32(step.total_elements)),
        )

    def _dispatch_vectorized_4d(self, step: Vectorized4DStep, inp, out, stream) -> None:
        d = self._device_arrays
        self._kernel(
            step.grid_dim, step.block_dim,
            (inp, out, d["input_strides"], d["output_strides"],
             np.int64(step.pack), np.int64(step.total_vectors)),
        )

    def _dispatch_tiled_3d(self, step: Tiled3DStep, inp, out, stream) -> None:
        _, dim1, dim2 = step.input_dims
        self._kernel(
            step.grid_dim, step.block_dim,
            (inp, out, np.int64(dim1), np.int64(dim2), np.int64(step.slice_stride)),
        )

    def _dispatch_blas(self, step: BlasTransposeStep, inp, out, stream) -> None:
        """Row-major M x N -> N x M.

        Seen column-major, the input is N x M with lda = N; C = 1 * A^T + 0 * A^T
        is M x N column-major with ldc = M, i.e. the row-major N x M result.
        """
        if step.precision == "h":
            self._kernel(
                step.grid_dim, step.block_dim,
                (inp, out, np.int32(step.M), np.int32(step.N)),
            )
            return

        if step.precision == "s":
            geam, scalar = cublas.sgeam, np.float32
        else:
            geam, scalar = cublas.dgeam, np.float64
        one = np.array(1, dtype=scalar)
        zero = np.array(0, dtype=scalar)

        handle = cp.cuda.device.get_cublas_handle()
        mode = cublas.getPointerMode(handle)
        try:
            cublas.setStream(handle, stream.ptr)
            cublas.setPointerMode(handle, cublas.CUBLAS_POINTER_MODE_HOST)
            geam(
                handle, cublas.CUBLAS_OP_T, cublas.CUBLAS_OP_T, step.M, step.N,
                one.ctypes.data, inp.data.ptr, step.lda,
                zero.ctypes.data, inp.data.ptr, step.lda,
                out.data.ptr, step.ldc,
            )
        except cublas.CUBLASError as err:
            raise VendorCallError(f"cuBLAS geam failed: {err}") from err
        finally:
            cublas.setPointerMode(handle, mode)
