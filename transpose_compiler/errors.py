"""Exception types raised by the transpose planner and runtime."""

from __future__ import annotations


class TransposeError(Exception):
    """Base class for all transpose failures."""


class UnsupportedElementTypeError(TransposeError, TypeError):
    """Element byte-width (or dtype) cannot be handled by the selected path."""

    def __init__(self, element_size: int, dtype: str | None = None):
        self.element_size = element_size
        self.dtype = dtype
        what = f"dtype '{dtype}' ({element_size} bytes)" if dtype else f"{element_size}-byte elements"
        super().__init__(f"Unsupported element type: {what}; supported widths are 1, 2, 4, 8 bytes")


class InvalidPermutationError(TransposeError, ValueError):
    """Permutation is not a bijection over the input axes."""


class ConfigurationError(TransposeError, ValueError):
    """Problem exceeds a fixed launch limit (rank capacity, 32-bit index range)."""


class MissingInputError(TransposeError):
    """No input tensor was supplied."""


class ShapeMismatchError(TransposeError, ValueError):
    """Caller-supplied output does not match the permuted shape or dtype."""


class VendorCallError(TransposeError, RuntimeError):
    """cuBLAS reported a failure; the library message is kept verbatim."""
