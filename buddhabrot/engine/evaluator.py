"""Escape-time evaluation of the quadratic map z -> z*z + c."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

_EMPTY = np.zeros(0, dtype=np.complex128)


@dataclass(frozen=True)
class Orbit:
    """Trajectory of an escaping seed; empty when the seed never escapes."""

    points: np.ndarray
    escaped_at: int

    def __len__(self) -> int:
        return int(self.points.shape[0])

    @property
    def escaped(self) -> bool:
        return self.escaped_at > 0


CONVERGED = Orbit(points=_EMPTY, escaped_at=0)


def in_bulb(c: complex) -> bool:
    """Closed-form test for the main cardioid and the largest periodic bulbs."""
    cr, ci = c.real, c.imag
    ci2 = ci * ci

    # main cardioid
    q = (cr - 0.25) * (cr - 0.25) + ci2
    if q * (q + (cr - 0.25)) < 0.25 * ci2:
        return True
    # period-2 bulb
    if (cr + 1.0) * (cr + 1.0) + ci2 < 0.0625:
        return True
    # bulb left of the period-2 bulb
    if (cr + 1.309) * (cr + 1.309) + ci2 < 0.00345:
        return True
    # bulbs above and below the main cardioid
    if (cr + 0.125) * (cr + 0.125) + (ci - 0.744) * (ci - 0.744) < 0.0088:
        return True
    if (cr + 0.125) * (cr + 0.125) + (ci + 0.744) * (ci + 0.744) < 0.0088:
        return True
    return False


def evaluate(seed: complex, max_iter: int, bailout_sq: float = 4.0, *, reject_bulbs: bool = True) -> Orbit:
    """Iterate from z = 0 and return every visited point if the orbit escapes.

    Orbits that stay bounded for ``max_iter`` steps, fall into an exactly
    repeating cycle, or start inside a known bulb yield the empty orbit.
    """
    if max_iter <= 0:
        return CONVERGED
    c = complex(seed)
    if reject_bulbs and in_bulb(c):
        return CONVERGED

    points = []
    z = 0j
    saved = 0j
    for i in range(max_iter):
        z = z * z + c
        # Brent-style checkpoint, refreshed at power-of-two steps
        if i > 1 and (i & (i - 1)) == 0:
            saved = z
        elif z == saved:
            return CONVERGED
        points.append(z)
        if z.real * z.real + z.imag * z.imag >= bailout_sq:
            return Orbit(points=np.array(points, dtype=np.complex128), escaped_at=len(points))
    return CONVERGED
