"""Fast-path classifier: permutations equivalent to one dense M x N transpose.

Matches run on the original (uncoalesced) permutation:
- [1, 0] on a 2D tensor
- NCHW <-> NHWC on a 4D tensor with N == 1
"""

from __future__ import annotations

from collections.abc import Sequence

_NCHW_TO_NHWC = (0, 2, 3, 1)
_NHWC_TO_NCHW = (0, 3, 1, 2)


def match_matrix_transpose(
    permutation: Sequence[int], input_shape: Sequence[int],
) -> tuple[int, int] | None:
    """Return (M, N) of the equivalent row-major M x N transpose, or None."""
    perm = tuple(permutation)
    shape = tuple(int(d) for d in input_shape)

    if len(perm) == 2 and perm == (1, 0):
        return shape[0], shape[1]

    if len(perm) == 4 and shape[0] == 1 and perm[0] == 0:
        if perm == _NCHW_TO_NHWC:
            # [C, H*W] -> [H*W, C]
            return shape[1], shape[2] * shape[3]
        if perm == _NHWC_TO_NCHW:
            # [H*W, C] -> [C, H*W]
            return shape[1] * shape[2], shape[3]

    return None
