"""Transpose entry point: permute a DeviceTensor on the GPU.

    result = transpose([0, 2, 3, 1], DeviceTensor.from_numpy(x))
    result.token.synchronize()
    y = result.output.to_numpy()
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from transpose_compiler.errors import MissingInputError, ShapeMismatchError
from transpose_compiler.planner import describe_plan, plan_transpose
from transpose_compiler.target_config import DEFAULT_CONFIG, DeviceCaps, TransposeConfig
from transpose_compiler.transpose_program import TransposePlan
from transpose_runtime.device import query_device_caps
from transpose_runtime.tensor import DeviceTensor
from transpose_runtime.transpose_executor import LaunchToken, TransposeExecutor

logger = logging.getLogger(__name__)


@dataclass
class TransposeResult:
    output: DeviceTensor
    plan: TransposePlan
    token: LaunchToken


class Transposer:
    """Holds the device capabilities and config for repeated transposes."""

    def __init__(self, caps: DeviceCaps | None = None, config: TransposeConfig = DEFAULT_CONFIG,
                 device_id: int | None = None):
        self.caps = caps if caps is not None else query_device_caps(device_id)
        self.config = config

    def plan(self, permutation: Sequence[int] | None, input: DeviceTensor) -> TransposePlan:
        return plan_transpose(permutation, input.shape, input.dtype, self.caps, self.config)

    def __call__(
        self,
        permutation: Sequence[int] | None,
        input,
        out: DeviceTensor | None = None,
    ) -> TransposeResult:
        """Enqueue the permutation of `input` into `out` (allocated if None).

        `out` may be a DeviceTensor or a C-contiguous cupy.ndarray.

        Raises:
            MissingInputError: input is None.
            ShapeMismatchError: out does not have the permuted shape / dtype.
            TransposeError subclasses from planning or the cuBLAS call.
        """
        if input is None:
            raise MissingInputError("Transpose requires one input tensor, got None")
        input = DeviceTensor.wrap(input)

        plan = self.plan(permutation, input)
        logger.debug("transpose plan: %s", describe_plan(plan))

        if out is None:
            out = DeviceTensor.empty(plan.output_shape, input.dtype)
        else:
            out = DeviceTensor.wrap(out)
            if out.shape != plan.output_shape or out.dtype != input.dtype:
                raise ShapeMismatchError(
                    f"Output is {out.dtype.name}{list(out.shape)}, "
                    f"expected {input.dtype.name}{list(plan.output_shape)}"
                )

        token = TransposeExecutor(plan).launch(input, out)
        return TransposeResult(output=out, plan=plan, token=token)


def transpose(
    permutation: Sequence[int] | None,
    input,
    out: DeviceTensor | None = None,
    caps: DeviceCaps | None = None,
    config: TransposeConfig = DEFAULT_CONFIG,
) -> TransposeResult:
    """Permute the axes of `input`; see Transposer.__call__."""
    return Transposer(caps, config)(permutation, input, out)
