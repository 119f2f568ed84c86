"""Dimension coalescing.

Axes that stay adjacent and in order under the permutation can be copied as
one axis. Folding them lowers the rank the kernels have to index over:

    shape [2, 3, 4, 5], perm [0, 2, 3, 1]
      -> axes 2 and 3 move together
      -> shape [2, 3, 20], perm [0, 2, 1]
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from transpose_compiler.shape_utils import packed_strides, permuted_shape

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoalescedProblem:
    """(permutation, dims, strides) of a permutation copy, possibly lower rank."""

    permutation: tuple[int, ...]
    input_dims: tuple[int, ...]
    output_dims: tuple[int, ...]
    input_strides: tuple[int, ...] = field(init=False)
    output_strides: tuple[int, ...] = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "input_strides", packed_strides(self.input_dims))
        object.__setattr__(self, "output_strides", packed_strides(self.output_dims))

    @property
    def rank(self) -> int:
        return len(self.permutation)

    @property
    def permuted_input_strides(self) -> tuple[int, ...]:
        """Input pitch feeding each output axis."""
        return tuple(self.input_strides[p] for p in self.permutation)


def make_problem(permutation: Sequence[int], input_dims: Sequence[int]) -> CoalescedProblem:
    """Build the problem without folding any axes."""
    perm = tuple(int(p) for p in permutation)
    dims = tuple(int(d) for d in input_dims)
    return CoalescedProblem(perm, dims, permuted_shape(dims, perm))


def coalesce_dims(
    permutation: Sequence[int],
    input_dims: Sequence[int],
    output_dims: Sequence[int] | None = None,
) -> CoalescedProblem:
    """Fold every run of adjacent, in-order permutation entries into one axis.

    Single right-to-left pass: a fold at position i only removes slots to the
    right of i - 1, so the remaining positions stay valid and a run of any
    length collapses one step at a time.
    """
    perm = [int(p) for p in permutation]
    in_dims = [int(d) for d in input_dims]
    if output_dims is None:
        out_dims = [in_dims[p] for p in perm]
    else:
        out_dims = [int(d) for d in output_dims]

    for i in range(len(perm) - 1, 0, -1):
        prev, curr = perm[i - 1], perm[i]
        if prev + 1 != curr:
            continue
        in_dims[prev] *= in_dims[curr]
        del in_dims[curr]
        out_dims[i - 1] *= out_dims[i]
        del out_dims[i]
        del perm[i]
        perm = [p - 1 if p > curr else p for p in perm]

    problem = CoalescedProblem(tuple(perm), tuple(in_dims), tuple(out_dims))
    if problem.rank != len(permutation):
        logger.debug(
            "coalesced rank %d -> %d: dims %s perm %s",
            len(permutation), problem.rank, list(problem.input_dims), list(problem.permutation),
        )
    return problem
