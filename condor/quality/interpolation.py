"""Curve fitting over probe history

Every method fits y as a function of x through distinct, sorted x values
and extrapolates past the outermost points. Methods that need more points
than are available fall back to linear interpolation.
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np
from scipy.interpolate import (
    Akima1DInterpolator, CubicHermiteSpline, CubicSpline, PchipInterpolator,
)

from .types import InterpolationMethod

logger = logging.getLogger(__name__)

def _linear(xs: np.ndarray, ys: np.ndarray, x: float) -> float:
    # Pick the segment containing x, or the outermost segment to extrapolate
    index = int(np.searchsorted(xs, x)) - 1
    index = min(max(index, 0), len(xs) - 2)
    x0, x1 = xs[index], xs[index + 1]
    y0, y1 = ys[index], ys[index + 1]
    return float(y0 + (y1 - y0) * (x - x0) / (x1 - x0))

def _catmull_rom_tangents(xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    tangents = np.empty_like(ys)
    tangents[0] = (ys[1] - ys[0]) / (xs[1] - xs[0])
    tangents[-1] = (ys[-1] - ys[-2]) / (xs[-1] - xs[-2])
    tangents[1:-1] = (ys[2:] - ys[:-2]) / (xs[2:] - xs[:-2])
    return tangents

def interpolate(method: InterpolationMethod, xs: Sequence[float], ys: Sequence[float],
                x: float) -> Optional[float]:
    """
    Evaluate the curve through (xs, ys) at x.

    Returns:
        The interpolated value, or None when the fit fails or is not finite.
    """
    order = np.argsort(xs)
    xs = np.asarray(xs, dtype=float)[order]
    ys = np.asarray(ys, dtype=float)[order]
    if len(xs) < 2 or len(np.unique(xs)) != len(xs):
        return None
    if len(xs) < method.minimum_points:
        logger.debug("%s needs %d points, using linear with %d",
                     method.value, method.minimum_points, len(xs))
        method = InterpolationMethod.LINEAR

    try:
        if method is InterpolationMethod.LINEAR:
            value = _linear(xs, ys, x)
        elif method is InterpolationMethod.QUADRATIC:
            value = float(np.polyval(np.polyfit(xs, ys, 2), x))
        elif method is InterpolationMethod.CUBIC_POLYNOMIAL:
            value = float(np.polyval(np.polyfit(xs, ys, 3), x))
        elif method is InterpolationMethod.NATURAL:
            value = float(CubicSpline(xs, ys, bc_type="natural")(x))
        elif method is InterpolationMethod.PCHIP:
            value = float(PchipInterpolator(xs, ys, extrapolate=True)(x))
        elif method is InterpolationMethod.AKIMA:
            value = float(Akima1DInterpolator(xs, ys)(x, extrapolate=True))
        else:
            value = float(CubicHermiteSpline(xs, ys, _catmull_rom_tangents(xs, ys))(x))
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug("%s interpolation failed: %s", method.value, e)
        return None

    if not math.isfinite(value):
        return None
    return value
