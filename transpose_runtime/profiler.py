"""Profiler: measure transpose kernel time."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from transpose_runtime.tensor import DeviceTensor
from transpose_runtime.transpose import Transposer
from transpose_runtime.transpose_executor import TransposeExecutor

try:
    import cupy as cp
except ImportError:
    cp = None


@dataclass
class ProfileResult:
    """Profiling result with timing, iteration count and the chosen strategy."""
    total_ms: float
    iterations: int
    strategy: str
    bytes_moved: int

    @property
    def bandwidth_gbps(self) -> float:
        if self.total_ms <= 0:
            return 0.0
        return self.bytes_moved / (self.total_ms * 1e-3) / 1e9


def profile_transpose(
    transposer: Transposer,
    permutation: Sequence[int] | None,
    input: DeviceTensor,
    warmup: int = 3,
    iterations: int = 10,
) -> ProfileResult:
    """Profile one permutation.

    Plans, compiles and allocates the output once, then runs warmup launches
    and measures the average time per launch with CUDA events on the current
    stream. Only TransposeExecutor.launch is inside the timed window.
    """
    input = DeviceTensor.wrap(input)
    plan = transposer.plan(permutation, input)
    executor = TransposeExecutor(plan)
    out = DeviceTensor.empty(plan.output_shape, input.dtype)
    for _ in range(warmup):
        executor.launch(input, out)

    stream = cp.cuda.get_current_stream()
    start = cp.cuda.Event()
    end = cp.cuda.Event()
    start.record(stream)
    for _ in range(iterations):
        executor.launch(input, out)
    end.record(stream)
    end.synchronize()

    total_ms = cp.cuda.get_elapsed_time(start, end) / iterations

    return ProfileResult(
        total_ms=total_ms,
        iterations=iterations,
        strategy=plan.strategy.name,
        bytes_moved=2 * input.size_bytes,
    )
