"""Element types: byte-width dispatch and dtype resolution.

Kernels move raw bits, so every dtype maps onto one of four fixed-width
unsigned CUDA types. Only float16/float32/float64 are eligible for the
cuBLAS matrix-transpose fast path.
"""

from __future__ import annotations

from enum import Enum

import ml_dtypes
import numpy as np

from transpose_compiler.errors import UnsupportedElementTypeError


class ElementWidth(Enum):
    """Closed set of element widths the copy kernels handle."""
    B1 = 1
    B2 = 2
    B4 = 4
    B8 = 8

    @property
    def ctype(self) -> str:
        return _CTYPES[self]

    @property
    def suffix(self) -> str:
        return f"u{self.value * 8}"


_CTYPES: dict[ElementWidth, str] = {
    ElementWidth.B1: "unsigned char",
    ElementWidth.B2: "unsigned short",
    ElementWidth.B4: "unsigned int",
    ElementWidth.B8: "unsigned long long",
}

# dtype name -> cuBLAS geam precision ("h" has no geam; see the half helper kernel)
BLAS_DTYPES: dict[str, str] = {
    "float32": "s",
    "float64": "d",
    "float16": "h",
}


def element_width(element_size: int, dtype: str | None = None) -> ElementWidth:
    """Map a byte size onto an ElementWidth, or raise UnsupportedElementTypeError."""
    try:
        return ElementWidth(int(element_size))
    except ValueError:
        raise UnsupportedElementTypeError(int(element_size), dtype) from None


def is_supported_width(element_size: int) -> bool:
    return element_size in (1, 2, 4, 8)


def resolve_dtype(dtype) -> np.dtype:
    """Resolve a dtype name or object; "bfloat16" goes through ml_dtypes."""
    if isinstance(dtype, str) and dtype == "bfloat16":
        return np.dtype(ml_dtypes.bfloat16)
    return np.dtype(dtype)


def blas_precision(dtype: np.dtype) -> str | None:
    """cuBLAS precision code for the fast path, or None if ineligible."""
    return BLAS_DTYPES.get(np.dtype(dtype).name)


# vector load width in bytes -> CUDA vector type moved by the 4D kernel
VECTOR_TYPES: dict[int, str] = {
    4: "int",
    8: "int2",
    16: "int4",
}


def vector_pack(element_size: int, vector_bytes: int = 16) -> int:
    """Number of elements carried by one vector load (0 if the element is wider)."""
    return vector_bytes // element_size
