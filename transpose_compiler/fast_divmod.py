"""Reciprocal-multiply integer division for 32-bit kernel indices.

For a divisor d, pick l = ceil(log2(d)) and M = 2^32 * (2^l - d) / d + 1.
Then for any 0 <= n < 2^31:

    n // d == (umulhi(M, n) + n) >> l

which replaces one hardware divide per axis with a multiply-high and a shift.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FastDivmod:
    divisor: int
    multiplier: int
    shift: int

    @classmethod
    def from_divisor(cls, divisor: int) -> FastDivmod:
        d = max(int(divisor), 1)
        shift = 0
        while shift < 32 and (1 << shift) < d:
            shift += 1
        multiplier = ((1 << 32) * ((1 << shift) - d)) // d + 1
        return cls(divisor=d, multiplier=multiplier & 0xFFFFFFFF, shift=shift)

    def div(self, n: int) -> int:
        hi = (self.multiplier * n) >> 32
        return (hi + n) >> self.shift

    def divmod(self, n: int) -> tuple[int, int]:
        q = self.div(n)
        return q, n - q * self.divisor
