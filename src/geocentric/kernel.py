"""
geocentric.kernel — Ellipsoidal ↔ Geocentric Conversion Kernel
================================================================

Converts geodetic coordinates (λ, φ[, h]) on an ellipsoid of semi-major
axis 1 to geocentric Cartesian (X, Y, Z) or spherical (λ, Ω, R)
coordinates, and back.

Normalized Domain
-----------------
The kernel never sees degrees nor metres::

    (λ°, φ°, h m) ─normalize─▶ (λ, φ, h/a) ─kernel─▶ (X, Y, Z)/a ─denormalize─▶ m

  - λ, φ : radians (for the spherical target λ is copied verbatim, so any
    unit works)
  - h, X, Y, Z, R : multiples of the semi-major axis

Forward (closed form)::

    ν  = 1 / √(1 − e² sin²φ)          prime vertical radius of curvature
    X  = (ν + h) cosφ cosλ
    Y  = (ν + h) cosφ sinλ
    Z  = (ν(1 − e²) + h) sinφ
    Ω  = atan(Z / ((ν + h) cosφ)),   R = hypot(Z, (ν + h) cosφ)

Inverse
-------
A closed-form (Bowring-like) estimate of φ is refined by fixed-point
iteration whenever the height is wanted or the eccentricity is large
(e ≥ 0.16).  At the poles the height is taken as |Z| − b instead of
p/cosφ − ν, which loses kilometres to cancellation there.
"""

from dataclasses import dataclass, field, replace
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from .derivatives import cartesian_jacobian, spherical_jacobian, inverse_jacobian
from .ellipsoid import Ellipsoid
from .errors import DimensionMismatchError, InvalidParameterError, NonConvergenceError
from .iteration import IterationStrategy, transform_blocks
from .utils import (
    ECCENTRICITY_THRESHOLD, ITERATION_TOLERANCE, MAXIMUM_ITERATIONS,
    NUM_CENTRIC_DIM, VERTICAL_DIM,
    as_points, ensure_dimension,
)


class TargetType(Enum):
    """Geocentric coordinate system produced by the forward conversion.

    CARTESIAN : (X toward prime meridian, Y toward 90°E, Z toward north pole)
    SPHERICAL : (longitude λ, spherical latitude Ω, radius R)
    """
    CARTESIAN = "cartesian"
    SPHERICAL = "spherical"

    @classmethod
    def of(cls, value) -> "TargetType":
        """Accept a TargetType or its name, case-insensitive."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        raise InvalidParameterError(
            f"Unsupported target type {value!r}. Valid: {[t.name for t in cls]}")


def _check_eccentricity_squared(e2: float) -> float:
    e2 = float(e2)
    if np.isnan(e2) or not 0.0 <= e2 < 1.0:
        raise InvalidParameterError(
            f"Eccentricity squared must be in [0, 1), got {e2}")
    return e2


def _iterate_latitude(phi: NDArray, p: NDArray, Z: NDArray,
                      e2: float) -> tuple[NDArray, NDArray]:
    """Refine geodetic latitudes in place.

    Iterates  φ ← atan((Z + e² ν sinφ) / p)  independently for every point
    until the update is below ITERATION_TOLERANCE.

    Returns
    -------
    sin_phi : sin(φ) at the start of each point's last iteration
    inv_nu : 1/ν matching sin_phi
    """
    sin_phi = np.empty_like(phi)
    inv_nu = np.empty_like(phi)
    todo = np.arange(phi.size)
    for _ in range(MAXIMUM_ITERATIONS):
        s = np.sin(phi[todo])
        inu = np.sqrt(1.0 - e2 * (s * s))
        updated = np.arctan((Z[todo] + e2 * s / inu) / p[todo])
        delta = phi[todo] - updated
        phi[todo] = updated
        sin_phi[todo] = s
        inv_nu[todo] = inu
        # NaN never satisfies ">=", so NaN inputs leave the loop as NaN.
        todo = todo[np.abs(delta) >= ITERATION_TOLERANCE]
        if todo.size == 0:
            return sin_phi, inv_nu
    raise NonConvergenceError(
        f"Latitude did not converge after {MAXIMUM_ITERATIONS} iterations "
        f"for {todo.size} point(s)", MAXIMUM_ITERATIONS)


# ════════════════════════════════════════════════════════════════════════════
#  Forward Kernel
# ════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EllipsoidToCentric:
    """Ellipsoidal → geocentric conversion on the unit ellipsoid.

    Parameters
    ----------
    eccentricity_squared : float — e² in [0, 1)
    axis_ratio : float — b/a, must equal √(1 − e²)
    with_height : bool — source is (λ,φ,h) if True, (λ,φ) otherwise
    target : TargetType or str — CARTESIAN or SPHERICAL

    Two kernels are equal when all four parameters are equal; the axis
    ratio is compared on its own even though it follows from e².
    """
    eccentricity_squared: float
    axis_ratio: float
    with_height: bool = True
    target: TargetType = TargetType.CARTESIAN
    use_iterations: bool = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        e2 = _check_eccentricity_squared(self.eccentricity_squared)
        ratio = float(self.axis_ratio)
        if not (np.isfinite(ratio) and ratio > 0.0
                and abs(ratio * ratio - (1.0 - e2)) <= 1e-9 * (1.0 - e2)):
            raise InvalidParameterError(
                f"Axis ratio {ratio} is inconsistent with e² = {e2}")
        with_height = bool(self.with_height)
        object.__setattr__(self, "eccentricity_squared", e2)
        object.__setattr__(self, "axis_ratio", ratio)
        object.__setattr__(self, "with_height", with_height)
        object.__setattr__(self, "target", TargetType.of(self.target))
        object.__setattr__(self, "use_iterations",
                           with_height or e2 >= ECCENTRICITY_THRESHOLD * ECCENTRICITY_THRESHOLD)

    # ── Construction ──

    @classmethod
    def from_eccentricity_squared(cls, e2: float, with_height: bool = True,
                                  target=TargetType.CARTESIAN) -> "EllipsoidToCentric":
        e2 = _check_eccentricity_squared(e2)
        return cls(e2, np.sqrt(1.0 - e2), with_height, target)

    @classmethod
    def from_ellipsoid(cls, ellipsoid: Ellipsoid, with_height: bool = True,
                       target=TargetType.CARTESIAN) -> "EllipsoidToCentric":
        return cls(ellipsoid.eccentricity_squared, ellipsoid.axis_ratio,
                   with_height, target)

    @classmethod
    def from_axes(cls, semi_major: float, semi_minor: float,
                  with_height: bool = True,
                  target=TargetType.CARTESIAN) -> "EllipsoidToCentric":
        """Build from axis lengths in any unit; only their ratio is kept."""
        return cls.from_ellipsoid(Ellipsoid(semi_major, semi_minor),
                                  with_height, target)

    def reduced(self) -> "EllipsoidToCentric":
        """Two-dimensional kernel with the same ellipsoid and target."""
        return replace(self, with_height=False)

    def inverse(self) -> "CentricToEllipsoid":
        """Geocentric → ellipsoidal view of this kernel."""
        return CentricToEllipsoid(self)

    @property
    def source_dimensions(self) -> int:
        return 3 if self.with_height else 2

    @property
    def target_dimensions(self) -> int:
        return NUM_CENTRIC_DIM

    # ── Vectorised Formulas ──

    def _forward(self, lam, phi, h):
        """(λ, φ, h) arrays → the three target coordinate arrays."""
        e2 = self.eccentricity_squared
        sin_phi = np.sin(phi)
        nu = 1.0 / np.sqrt(1.0 - e2 * (sin_phi * sin_phi))
        r_cos = (nu + h) * np.cos(phi)
        Z = (h + nu * (1.0 - e2)) * sin_phi
        if self.target is TargetType.SPHERICAL:
            with np.errstate(divide="ignore", invalid="ignore"):
                omega = np.arctan(Z / r_cos)    # atan((1−e²) tanφ) when h = 0
            return lam, omega, np.hypot(Z, r_cos)
        return r_cos * np.cos(lam), r_cos * np.sin(lam), Z

    def _inverse(self, c0: NDArray, c1: NDArray,
                 c2: NDArray) -> tuple[NDArray, NDArray, NDArray | None]:
        """Target coordinate arrays → (λ, φ, h).  h is None without height."""
        e2 = self.eccentricity_squared
        b = self.axis_ratio
        with np.errstate(divide="ignore", invalid="ignore"):
            if self.target is TargetType.SPHERICAL:
                lam = c0
                p = c2 * np.cos(c1)     # radius projected on the equatorial plane
                Z = c2 * np.sin(c1)
            else:
                lam = np.arctan2(c1, c0)
                p = np.hypot(c0, c1)
                Z = c2
            # tan q = Z·a / (p·b) with a = 1.  Only sin²q and cos²q are needed;
            # cos q is positive and sin q has the sign of tan q.
            tanq = Z / (p * b)
            cos2q = 1.0 / (1.0 + tanq * tanq)
            sin2q = 1.0 - cos2q
            phi = np.arctan((Z + np.copysign(e2 * (np.sqrt(sin2q) * sin2q), tanq) / b)
                            / (p - e2 * (np.sqrt(cos2q) * cos2q)))
            phi = np.atleast_1d(phi)
            if not self.use_iterations:
                return lam, phi, None
            sin_phi, inv_nu = _iterate_latitude(phi, np.atleast_1d(p),
                                                np.atleast_1d(Z), e2)
            if not self.with_height:
                return lam, phi, None
            h = np.where(np.abs(sin_phi) == 1.0,
                         np.abs(Z) - b,
                         p / np.cos(phi) - 1.0 / inv_nu)
        return lam, phi, h

    def _forward_block(self, block: NDArray) -> NDArray:
        h = block[:, VERTICAL_DIM] if self.with_height else 0.0
        return np.stack(self._forward(block[:, 0], block[:, 1], h), axis=-1)

    def _inverse_block(self, block: NDArray) -> NDArray:
        lam, phi, h = self._inverse(block[:, 0], block[:, 1], block[:, 2])
        columns = (lam, phi) if h is None else (lam, phi, h)
        return np.stack(columns, axis=-1)

    def _jacobian(self, lam: float, phi: float, h: float, wh: bool) -> NDArray:
        if self.target is TargetType.SPHERICAL:
            return spherical_jacobian(lam, phi, h, self.eccentricity_squared, wh)
        return cartesian_jacobian(lam, phi, h, self.eccentricity_squared, wh)

    # ── Single Point ──

    def transform_point(self, point: NDArray,
                        derivate: bool = False) -> tuple[NDArray, NDArray | None]:
        """Convert one geodetic point and optionally compute the Jacobian.

        Parameters
        ----------
        point : (2,) or (3,) — (λ, φ[, h]) matching source_dimensions
        derivate : bool — also return ∂target/∂source

        Returns
        -------
        out : (3,) ndarray — (X, Y, Z) or (λ, Ω, R)
        jacobian : (3,3), (3,2) or None
        """
        p = ensure_dimension(point, self.source_dimensions)
        h = p[VERTICAL_DIM] if self.with_height else 0.0
        out = np.array(self._forward(p[0], p[1], h), dtype=np.float64)
        if not derivate:
            return out, None
        return out, self._jacobian(p[0], p[1], h, self.with_height)

    def derivative(self, point: NDArray) -> NDArray:
        """Jacobian at (λ,φ) or (λ,φ,h).

        The length of `point` selects the 3×2 or 3×3 form, independently
        of with_height; a 2-D point is evaluated at h = 0.
        """
        p = np.asarray(point, dtype=np.float64)
        if p.shape == (3,):
            return self._jacobian(p[0], p[1], p[VERTICAL_DIM], True)
        if p.shape == (2,):
            return self._jacobian(p[0], p[1], 0.0, False)
        raise DimensionMismatchError(
            f"point must have 2 or 3 coordinates, got shape {p.shape}")

    def inverse_transform_point(self, point: NDArray,
                                derivate: bool = False) -> tuple[NDArray, NDArray | None]:
        """Convert one geocentric point back to (λ, φ[, h]).

        The Jacobian, when requested, is the inverse of the 3×3 forward
        Jacobian at the result (h = 0 without height), with the h row
        dropped afterwards when with_height is False.

        Raises
        ------
        NonConvergenceError — latitude iteration exhausted its budget
        """
        p = ensure_dimension(point, NUM_CENTRIC_DIM)
        lam, phi, h = self._inverse(p[0:1], p[1:2], p[2:3])
        height = 0.0 if h is None else h[0]
        coords = [lam[0], phi[0]] if h is None else [lam[0], phi[0], height]
        out = np.array(coords, dtype=np.float64)
        if not derivate:
            return out, None
        forward = self._jacobian(out[0], out[1], height, True)
        return out, inverse_jacobian(forward, self.with_height)

    # ── Batches ──

    def transform(self, points: NDArray) -> NDArray:
        """Geodetic → geocentric for (d,) or (N,d) points, d = source_dimensions."""
        pts, single = as_points(points, self.source_dimensions)
        out = self._forward_block(pts)
        return out[0] if single else out

    def inverse_transform(self, points: NDArray) -> NDArray:
        """Geocentric → geodetic for (3,) or (N,3) points."""
        pts, single = as_points(points, NUM_CENTRIC_DIM)
        out = self._inverse_block(pts)
        return out[0] if single else out

    def transform_many(self, src_pts: NDArray, src_off: int,
                       dst_pts: NDArray, dst_off: int,
                       num_pts: int) -> IterationStrategy:
        """Convert `num_pts` points between flat buffers, which may alias.

        Returns
        -------
        strategy : IterationStrategy — traversal used for the overlap
        """
        return transform_blocks(self._forward_block,
                                src_pts, src_off, self.source_dimensions,
                                dst_pts, dst_off, NUM_CENTRIC_DIM, num_pts)

    def inverse_transform_many(self, src_pts: NDArray, src_off: int,
                               dst_pts: NDArray, dst_off: int,
                               num_pts: int) -> IterationStrategy:
        """Inverse of transform_many.

        Raises
        ------
        NonConvergenceError — a point of some block did not converge.  The
            call stops there; blocks written before it stay in `dst_pts`
            and the rest of the destination range is left untouched, so
            `dst_pts` holds a partial result after the exception.
        """
        return transform_blocks(self._inverse_block,
                                src_pts, src_off, NUM_CENTRIC_DIM,
                                dst_pts, dst_off, self.source_dimensions, num_pts)


# ════════════════════════════════════════════════════════════════════════════
#  Inverse View
# ════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CentricToEllipsoid:
    """Geocentric → ellipsoidal conversion, delegating to its forward kernel.

    The kernel does not keep a reference back to this view, so the pair
    forms no cycle; ``kernel.inverse()`` returns an equal view every time.
    """
    kernel: EllipsoidToCentric

    @property
    def with_height(self) -> bool:
        return self.kernel.with_height

    @property
    def target(self) -> TargetType:
        return self.kernel.target

    @property
    def source_dimensions(self) -> int:
        return NUM_CENTRIC_DIM

    @property
    def target_dimensions(self) -> int:
        return self.kernel.source_dimensions

    def inverse(self) -> EllipsoidToCentric:
        return self.kernel

    def transform_point(self, point: NDArray,
                        derivate: bool = False) -> tuple[NDArray, NDArray | None]:
        return self.kernel.inverse_transform_point(point, derivate)

    def derivative(self, point: NDArray) -> NDArray:
        return self.kernel.inverse_transform_point(point, True)[1]

    def transform(self, points: NDArray) -> NDArray:
        return self.kernel.inverse_transform(points)

    def inverse_transform(self, points: NDArray) -> NDArray:
        return self.kernel.transform(points)

    def transform_many(self, src_pts: NDArray, src_off: int,
                       dst_pts: NDArray, dst_off: int,
                       num_pts: int) -> IterationStrategy:
        return self.kernel.inverse_transform_many(src_pts, src_off,
                                                  dst_pts, dst_off, num_pts)
