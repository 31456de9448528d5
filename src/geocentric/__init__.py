"""
geocentric — Ellipsoidal ↔ Geocentric Coordinate Conversion Kernel
===================================================================

A pure-NumPy kernel converting geodetic coordinates (λ, φ[, h]) to
geocentric Cartesian (X, Y, Z) or spherical (λ, Ω, R) coordinates and back,
with exact Jacobians and an optimizer that collapses 3-D kernels to 2-D
ones when a neighbouring step ignores the height.

Layers
------
::

    chain      TransformChain · AffineStep · geodetic_conversion · lla_to_ecef
      │
    optimizer  try_reduce · DimensionUsage
      │
    kernel     EllipsoidToCentric ⇄ CentricToEllipsoid
      │
    derivatives · iteration · ellipsoid · utils · errors

**Normalized domain.**  The kernel works on an ellipsoid of semi-major
axis 1 with angles in radians; degree and length scaling are the affine
steps of a chain built by ``geodetic_conversion``.

**Targets.**
  - CARTESIAN: X toward the prime meridian, Y toward 90°E, Z toward the
    north pole.
  - SPHERICAL: longitude (copied), spherical latitude Ω, radius R.
"""

from .errors import (
    TransformError,
    InvalidParameterError,
    DimensionMismatchError,
    NonConvergenceError,
    NonInvertibleMatrixError,
)

from .ellipsoid import Ellipsoid, WGS84, GRS80, SPHERE

from .kernel import TargetType, EllipsoidToCentric, CentricToEllipsoid

from .derivatives import cartesian_jacobian, spherical_jacobian, inverse_jacobian

from .iteration import IterationStrategy, transform_blocks

from .optimizer import DimensionUsage, try_reduce, BEFORE, AFTER

from .chain import (
    AffineStep,
    TransformChain,
    geodetic_conversion,
    height_setter,
    height_dropper,
    lla_to_ecef,
    ecef_to_lla,
)

from .utils import (
    R_EARTH,
    F_EARTH,
    E2_EARTH,
    LINEAR_TOLERANCE,
    ANGULAR_TOLERANCE,
    ITERATION_TOLERANCE,
    MAXIMUM_ITERATIONS,
    ECCENTRICITY_THRESHOLD,
    VERTICAL_DIM,
)

__version__ = "1.0.0"
__all__ = [
    # ── Errors ──
    "TransformError", "InvalidParameterError", "DimensionMismatchError",
    "NonConvergenceError", "NonInvertibleMatrixError",
    # ── Ellipsoids ──
    "Ellipsoid", "WGS84", "GRS80", "SPHERE",
    # ── Kernel ──
    "TargetType", "EllipsoidToCentric", "CentricToEllipsoid",
    # ── Derivatives ──
    "cartesian_jacobian", "spherical_jacobian", "inverse_jacobian",
    # ── Buffers ──
    "IterationStrategy", "transform_blocks",
    # ── Optimizer ──
    "DimensionUsage", "try_reduce", "BEFORE", "AFTER",
    # ── Chains ──
    "AffineStep", "TransformChain", "geodetic_conversion",
    "height_setter", "height_dropper", "lla_to_ecef", "ecef_to_lla",
    # ── Constants ──
    "R_EARTH", "F_EARTH", "E2_EARTH",
    "LINEAR_TOLERANCE", "ANGULAR_TOLERANCE", "ITERATION_TOLERANCE",
    "MAXIMUM_ITERATIONS", "ECCENTRICITY_THRESHOLD", "VERTICAL_DIM",
]
