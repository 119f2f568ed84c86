"""DeviceTensor: dense row-major CUDA buffer backed by cupy.ndarray.

Dtypes CuPy cannot hold natively (bfloat16 from ml_dtypes, opaque void types)
are stored as raw unsigned words of the same width, or as raw bytes, while
shape and dtype stay the logical ones. Kernels only see pointers, so the
storage dtype never reaches them.
"""

from __future__ import annotations

from typing import Any

import ml_dtypes  # noqa: F401  registers bfloat16 with numpy
import numpy as np

from transpose_compiler.element_types import resolve_dtype
from transpose_compiler.shape_utils import num_elements, packed_strides

try:
    import cupy as cp

    HAS_CUPY = True
except ImportError:
    cp = None
    HAS_CUPY = False

_RAW_WORDS = {1: np.uint8, 2: np.uint16, 4: np.uint32, 8: np.uint64}


def _storage_dtype(dtype: np.dtype) -> np.dtype | None:
    """dtype CuPy stores directly, a same-width word, or None for raw bytes."""
    if dtype.kind in "biufc" and dtype.type.__module__ == "numpy":
        return dtype
    word = _RAW_WORDS.get(dtype.itemsize)
    return np.dtype(word) if word is not None else None


class DeviceTensor:
    """C-contiguous CUDA tensor with logical shape and dtype."""

    def __init__(self, data: cp.ndarray, shape: tuple[int, ...] | None = None, dtype=None):
        if not HAS_CUPY:
            raise RuntimeError("CuPy is not installed. Install with: pip install cuda-transpose[cuda]")
        self._data = data if data.flags.c_contiguous else cp.ascontiguousarray(data)
        self._shape = tuple(int(d) for d in (shape if shape is not None else data.shape))
        self._dtype = resolve_dtype(dtype) if dtype is not None else np.dtype(data.dtype)

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def strides(self) -> tuple[int, ...]:
        """Row-major strides in elements."""
        return packed_strides(self._shape)

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def element_size(self) -> int:
        return self._dtype.itemsize

    @property
    def size(self) -> int:
        return num_elements(self._shape)

    @property
    def size_bytes(self) -> int:
        return self.size * self.element_size

    @property
    def native_handle(self) -> Any:
        """Return the underlying cupy.ndarray (storage dtype)."""
        return self._data

    def to_numpy(self) -> np.ndarray:
        """Download to CPU as a numpy array of the logical dtype."""
        arr = cp.asnumpy(self._data)
        if arr.dtype != self._dtype:
            arr = arr.view(self._dtype)
        return arr.reshape(self._shape)

    @classmethod
    def from_numpy(cls, data: np.ndarray) -> DeviceTensor:
        """Upload a numpy array to the current CUDA device."""
        data = np.ascontiguousarray(data)
        storage = _storage_dtype(data.dtype)
        if storage is None:
            host = data.reshape(-1).view(np.uint8)
        elif storage != data.dtype:
            host = data.view(storage)
        else:
            host = data
        return cls(cp.asarray(host), shape=data.shape, dtype=data.dtype)

    @classmethod
    def empty(cls, shape, dtype) -> DeviceTensor:
        """Allocate an uninitialized tensor."""
        dtype = resolve_dtype(dtype)
        shape = tuple(int(d) for d in shape)
        storage = _storage_dtype(dtype)
        if storage is None:
            data = cp.empty(num_elements(shape) * dtype.itemsize, dtype=np.uint8)
        else:
            data = cp.empty(shape, dtype=storage)
        return cls(data, shape=shape, dtype=dtype)

    @classmethod
    def wrap(cls, array) -> DeviceTensor:
        """Accept a DeviceTensor, cupy.ndarray or numpy.ndarray."""
        if isinstance(array, DeviceTensor):
            return array
        if isinstance(array, np.ndarray):
            return cls.from_numpy(array)
        return cls(array)

    def __repr__(self) -> str:
        return f"DeviceTensor(shape={list(self._shape)}, dtype={self._dtype.name})"
