"""
Jerk-minimizing polynomial profiles.

Coefficients are stored lowest order first:
p(t) = c0 + c1*t + c2*t^2 + c3*t^3 + c4*t^4 + c5*t^5
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.polynomial import polynomial as P


@dataclass(frozen=True, eq=False)
class PolynomialProfile:
    """Quintic motion profile over time."""
    coeffs: np.ndarray  # [6], lowest order first

    def __post_init__(self):
        coeffs = np.asarray(self.coeffs, dtype=float)
        if coeffs.shape != (6,):
            raise ValueError(f"Expected 6 coefficients, got shape {coeffs.shape}")
        object.__setattr__(self, "coeffs", coeffs)

    def position(self, t: float) -> float:
        return float(P.polyval(t, self.coeffs))

    def velocity(self, t: float) -> float:
        return float(P.polyval(t, P.polyder(self.coeffs, 1)))

    def acceleration(self, t: float) -> float:
        return float(P.polyval(t, P.polyder(self.coeffs, 2)))

    def jerk(self, t: float) -> float:
        return float(P.polyval(t, P.polyder(self.coeffs, 3)))

    def __call__(self, t: float) -> float:
        return self.position(t)


def _check_duration(duration: float) -> float:
    duration = float(duration)
    if not np.isfinite(duration) or duration <= 0.0:
        raise ValueError(f"Polynomial duration must be positive, got {duration}")
    return duration


def solve_jerk_minimizing(start: Sequence[float], end: Sequence[float],
                          duration: float) -> PolynomialProfile:
    """
    Quintic through full boundary conditions.

    Args:
        start: (position, velocity, acceleration) at t=0
        end: (position, velocity, acceleration) at t=duration
        duration: Time horizon T (seconds), must be positive

    Returns:
        PolynomialProfile matching all six boundary conditions
    """
    T = _check_duration(duration)
    p0, v0, a0 = (float(v) for v in start)
    pf, vf, af = (float(v) for v in end)

    c0, c1, c2 = p0, v0, a0 / 2.0

    A = np.array([
        [T ** 3, T ** 4, T ** 5],
        [3 * T ** 2, 4 * T ** 3, 5 * T ** 4],
        [6 * T, 12 * T ** 2, 20 * T ** 3],
    ])
    b = np.array([
        pf - (c0 + c1 * T + c2 * T ** 2),
        vf - (c1 + 2 * c2 * T),
        af - 2 * c2,
    ])
    c3, c4, c5 = np.linalg.solve(A, b)
    return PolynomialProfile(np.array([c0, c1, c2, c3, c4, c5]))


def solve_velocity_keeping(position: float, velocity: float, target_velocity: float,
                           duration: float) -> PolynomialProfile:
    """
    Minimum-jerk profile that only constrains velocity at the end.

    Starts at (position, velocity) with zero acceleration and reaches
    `target_velocity` with zero acceleration at t=duration. The end position is
    free, which leaves a quartic (c5 = 0).
    """
    T = _check_duration(duration)
    c0, c1, c2 = float(position), float(velocity), 0.0

    A = np.array([
        [3 * T ** 2, 4 * T ** 3],
        [6 * T, 12 * T ** 2],
    ])
    b = np.array([
        float(target_velocity) - c1,
        0.0,
    ])
    c3, c4 = np.linalg.solve(A, b)
    return PolynomialProfile(np.array([c0, c1, c2, c3, c4, 0.0]))
