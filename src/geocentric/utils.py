"""
geocentric.utils — Constants, Tolerances & Point Helpers
=========================================================

Numeric policy shared by the kernel, the optimizer and the pipeline host.
The tolerance values below are empirically tuned; they are kept as literal
tunables rather than derived from the ellipsoid.
"""

import numpy as np
from numpy.typing import NDArray

from .errors import DimensionMismatchError

# ── WGS-84 ──────────────────────────────────────────────────────────────────
R_EARTH = 6_378_137.0           # WGS-84 semi-major axis          [m]
F_EARTH = 1.0 / 298.257223563  # WGS-84 flattening
E2_EARTH = 2 * F_EARTH - F_EARTH ** 2  # First eccentricity squared

# ── Tolerance Policy ────────────────────────────────────────────────────────
LINEAR_TOLERANCE = 1.0          # [m]
NAUTICAL_MILE = 1852.0          # [m]
ANGULAR_TOLERANCE = LINEAR_TOLERANCE / (NAUTICAL_MILE * 60)   # [deg] ≈ 0.03″

# Tunable: quarter of the angular tolerance, in radians.
ITERATION_TOLERANCE = ANGULAR_TOLERANCE * (np.pi / 180) * 0.25
MAXIMUM_ITERATIONS = 18

# Tunable: iterate on latitude when e ≥ 0.16 even if no height is wanted.
ECCENTRICITY_THRESHOLD = 0.16

# ── Dimensions ──────────────────────────────────────────────────────────────
VERTICAL_DIM = 2                # index of h (geodetic) or R (spherical)
NUM_CENTRIC_DIM = 3
BLOCK_SIZE = 256                # points per vectorised block in batch calls


# ── Point Helpers ───────────────────────────────────────────────────────────

def as_points(points: NDArray, dim: int,
              name: str = "points") -> tuple[NDArray, bool]:
    """Coerce a single (d,) point or an (N,d) array to float64 (N,d).

    Returns
    -------
    pts : (N,d) ndarray
    single : bool — True if the input was a single point
    """
    pts = np.asarray(points, dtype=np.float64)
    single = pts.ndim == 1
    if single:
        pts = pts.reshape(1, -1)
    if pts.ndim != 2 or pts.shape[1] != dim:
        raise DimensionMismatchError(
            f"{name} must have shape ({dim},) or (N,{dim}), got {np.shape(points)}")
    return pts, single


def ensure_dimension(point: NDArray, dim: int, name: str = "point") -> NDArray:
    """Return `point` as a (dim,) float64 array or raise DimensionMismatchError."""
    p = np.asarray(point, dtype=np.float64)
    if p.shape != (dim,):
        raise DimensionMismatchError(
            f"{name} must have {dim} coordinates, got shape {p.shape}")
    return p
