"""Transpose throughput benchmark: one line per (shape, permutation, dtype).

Reports the selected strategy, mean kernel time and effective bandwidth
(read + write bytes per second), alongside cupy.ascontiguousarray on the
permuted view as a baseline.

Prerequisites:
    pip install -e ".[cuda]"

Usage:
    python benchmarks/benchmark_transpose.py
    python benchmarks/benchmark_transpose.py --dtype float16 --iterations 50
    python benchmarks/benchmark_transpose.py --json results.json
"""

from __future__ import annotations

import argparse
import json
import os
import platform
import sys
from dataclasses import asdict, dataclass, field

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import cupy as cp  # noqa: E402

from transpose_runtime import DeviceTensor, Transposer  # noqa: E402
from transpose_runtime.profiler import profile_transpose  # noqa: E402

# (shape, permutation): one case per strategy plus a few generic ones
CASES: list[tuple[tuple[int, ...], tuple[int, ...]]] = [
    ((4096, 4096), (1, 0)),                 # cuBLAS matrix transpose
    ((1, 256, 56, 56), (0, 2, 3, 1)),       # NCHW -> NHWC
    ((64, 128, 8, 64), (0, 2, 1, 3)),       # vectorized 4D (head split)
    ((32, 512, 512), (0, 2, 1)),            # tiled 3D
    ((16, 32, 64, 64), (3, 1, 0, 2)),       # generic
    ((8, 8, 8, 8, 8, 8), (5, 4, 3, 2, 1, 0)),
]


@dataclass
class CaseResult:
    shape: list[int]
    permutation: list[int]
    strategy: str
    time_ms: float
    bandwidth_gbps: float
    baseline_ms: float = 0.0


@dataclass
class BenchmarkReport:
    environment: dict = field(default_factory=dict)
    dtype: str = "float32"
    results: list[CaseResult] = field(default_factory=list)


def get_environment_info(transposer: Transposer) -> dict:
    """Collect execution environment details."""
    return {
        "platform": platform.platform(),
        "python": platform.python_version(),
        "cupy": cp.__version__,
        "device": transposer.caps.name,
        "max_threads_per_block": transposer.caps.max_threads_per_block,
        "warp_size": transposer.caps.warp_size,
    }


def _baseline_ms(x: cp.ndarray, perm: tuple[int, ...], iterations: int) -> float:
    start, end = cp.cuda.Event(), cp.cuda.Event()
    cp.ascontiguousarray(x.transpose(perm))
    start.record()
    for _ in range(iterations):
        cp.ascontiguousarray(x.transpose(perm))
    end.record()
    end.synchronize()
    return cp.cuda.get_elapsed_time(start, end) / iterations


def run(dtype: str, warmup: int, iterations: int) -> BenchmarkReport:
    transposer = Transposer()
    report = BenchmarkReport(environment=get_environment_info(transposer), dtype=dtype)
    rng = np.random.default_rng(0)

    for shape, perm in CASES:
        host = rng.standard_normal(shape).astype(dtype)
        tensor = DeviceTensor.from_numpy(host)
        prof = profile_transpose(transposer, perm, tensor, warmup=warmup, iterations=iterations)
        report.results.append(CaseResult(
            shape=list(shape),
            permutation=list(perm),
            strategy=prof.strategy,
            time_ms=prof.total_ms,
            bandwidth_gbps=prof.bandwidth_gbps,
            baseline_ms=_baseline_ms(tensor.native_handle.reshape(shape), perm, iterations),
        ))
    return report


def print_report(report: BenchmarkReport) -> None:
    print(f"device: {report.environment.get('device')}  dtype: {report.dtype}")
    print(f"{'shape':<24} {'perm':<20} {'strategy':<14} {'ms':>9} {'GB/s':>8} {'cupy ms':>9}")
    for r in report.results:
        print(
            f"{str(r.shape):<24} {str(r.permutation):<20} {r.strategy:<14} "
            f"{r.time_ms:>9.3f} {r.bandwidth_gbps:>8.1f} {r.baseline_ms:>9.3f}"
        )


def main():
    parser = argparse.ArgumentParser(description="Transpose throughput benchmark")
    parser.add_argument("--dtype", default="float32", choices=["float16", "float32", "float64", "int8"])
    parser.add_argument("--warmup", type=int, default=3)
    parser.add_argument("--iterations", type=int, default=20)
    parser.add_argument("--json", default=None, help="Write results to a JSON file")
    args = parser.parse_args()

    report = run(args.dtype, args.warmup, args.iterations)
    print_report(report)
    if args.json:
        with open(args.json, "w") as f:
            json.dump(asdict(report), f, indent=2)
        print(f"Saved {args.json}")


if __name__ == "__main__":
    main()
