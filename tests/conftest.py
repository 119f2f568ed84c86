"""Shared fixtures and helpers for transpose tests."""

import numpy as np
import pytest

try:
    import cupy as cp

    HAS_CUDA_DEVICE = cp.cuda.runtime.getDeviceCount() > 0
except Exception:  # ImportError, or CUDARuntimeError without a driver
    HAS_CUDA_DEVICE = False


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


def make_input(shape, dtype, rng):
    """Distinct, dtype-appropriate values so any misplaced element is visible."""
    total = int(np.prod(shape)) if len(shape) else 1
    dtype = np.dtype(dtype)
    if dtype.kind == "f" or dtype.name == "bfloat16":
        values = rng.standard_normal(total).astype(np.float32).astype(dtype)
    elif dtype.kind == "b":
        values = rng.integers(0, 2, total).astype(bool)
    else:
        info = np.iinfo(dtype)
        values = rng.integers(info.min, info.max, total, dtype=dtype, endpoint=True)
    return values.reshape(shape)
