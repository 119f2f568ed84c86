"""Shape, stride and permutation helpers."""

from __future__ import annotations

from collections.abc import Sequence

from transpose_compiler.errors import InvalidPermutationError


def packed_strides(dims: Sequence[int]) -> tuple[int, ...]:
    """Row-major pitches: each axis steps over the product of the faster axes."""
    strides = [1] * len(dims)
    for i in range(len(dims) - 2, -1, -1):
        strides[i] = strides[i + 1] * int(dims[i + 1])
    return tuple(strides)


def num_elements(dims: Sequence[int]) -> int:
    total = 1
    for d in dims:
        total *= int(d)
    return total


def validate_permutation(permutation: Sequence[int] | None, rank: int) -> tuple[int, ...]:
    """Check that permutation is a bijection over range(rank).

    None means the default ONNX order: all axes reversed.
    """
    if permutation is None:
        return tuple(range(rank - 1, -1, -1))
    perm = tuple(int(p) for p in permutation)
    if len(perm) != rank:
        raise InvalidPermutationError(
            f"Permutation {list(perm)} has {len(perm)} entries, input rank is {rank}"
        )
    if sorted(perm) != list(range(rank)):
        raise InvalidPermutationError(
            f"Permutation {list(perm)} is not a permutation of axes 0..{rank - 1}"
        )
    return perm


def permuted_shape(shape: Sequence[int], permutation: Sequence[int]) -> tuple[int, ...]:
    return tuple(int(shape[p]) for p in permutation)


def inverse_permutation(permutation: Sequence[int]) -> tuple[int, ...]:
    inverse = [0] * len(permutation)
    for i, p in enumerate(permutation):
        inverse[p] = i
    return tuple(inverse)
