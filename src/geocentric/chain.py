"""
geocentric.chain — Minimal Transform Pipeline Host
===================================================

Hosts the kernel between its normalization and denormalization steps and
lets the optimizer collapse 3-D kernels next to height-ignoring steps.

A geodetic conversion is the chain::

    AffineStep(normalize)  →  EllipsoidToCentric  →  AffineStep(denormalize)

    Cartesian :  (λ°, φ°, h) · (π/180, π/180, 1/a)   …   (X, Y, Z) · a
    Spherical :  (λ,  φ°, h) · (1,     π/180, 1/a)   …   (λ, Ω, R) · (1, 180/π, a)

Affine steps are (m+1)×(n+1) augmented matrices acting on row vectors of
n source coordinates.  Two neighbouring affine steps are always merged.
"""

import logging

import numpy as np
from numpy.typing import NDArray

from .ellipsoid import Ellipsoid, WGS84
from .errors import DimensionMismatchError, NonInvertibleMatrixError
from .kernel import EllipsoidToCentric, CentricToEllipsoid, TargetType
from .optimizer import BEFORE, try_reduce, neighbour_direction
from .utils import VERTICAL_DIM, as_points

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════════════
#  Affine Steps
# ════════════════════════════════════════════════════════════════════════════

class AffineStep:
    """Affine map given by an augmented (m+1)×(n+1) matrix."""

    def __init__(self, matrix: NDArray):
        m = np.array(matrix, dtype=np.float64)
        if m.ndim != 2 or m.shape[0] < 1 or m.shape[1] < 1:
            raise DimensionMismatchError(
                f"Affine matrix must be 2-D and non-empty, got shape {m.shape}")
        m.flags.writeable = False
        self._matrix = m

    @classmethod
    def scale(cls, factors) -> "AffineStep":
        """Diagonal step multiplying coordinate i by factors[i]."""
        return cls(np.diag(np.append(np.asarray(factors, dtype=np.float64), 1.0)))

    @property
    def matrix(self) -> NDArray:
        return self._matrix

    @property
    def source_dimensions(self) -> int:
        return self._matrix.shape[1] - 1

    @property
    def target_dimensions(self) -> int:
        return self._matrix.shape[0] - 1

    @property
    def is_identity(self) -> bool:
        m = self._matrix
        return m.shape[0] == m.shape[1] and np.array_equal(m, np.eye(m.shape[0]))

    def transform(self, points: NDArray) -> NDArray:
        pts, single = as_points(points, self.source_dimensions)
        m = self._matrix
        out = pts @ m[:-1, :-1].T + m[:-1, -1]
        return out[0] if single else out

    def inverse(self) -> "AffineStep":
        if self._matrix.shape[0] != self._matrix.shape[1]:
            raise NonInvertibleMatrixError(
                f"Non-square affine step {self._matrix.shape} has no inverse")
        try:
            return AffineStep(np.linalg.inv(self._matrix))
        except np.linalg.LinAlgError as ex:
            raise NonInvertibleMatrixError("Affine step is singular") from ex

    def then(self, other: "AffineStep") -> "AffineStep":
        """Step applying self first, then other."""
        if self.target_dimensions != other.source_dimensions:
            raise DimensionMismatchError(
                f"Cannot concatenate {self.target_dimensions}-D output "
                f"with {other.source_dimensions}-D input")
        return AffineStep(other.matrix @ self._matrix)

    def remove_rows(self, dimension: int) -> "AffineStep":
        """Same step without output `dimension`."""
        return AffineStep(np.delete(self._matrix, dimension, axis=0))

    def remove_columns(self, dimension: int) -> "AffineStep":
        """Same step without input `dimension`."""
        return AffineStep(np.delete(self._matrix, dimension, axis=1))

    def __eq__(self, other):
        if not isinstance(other, AffineStep):
            return NotImplemented
        return np.array_equal(self._matrix, other._matrix)

    def __hash__(self):
        return hash((self._matrix.shape, self._matrix.tobytes()))

    def __repr__(self):
        return f"AffineStep({self.source_dimensions}→{self.target_dimensions})"


def height_setter() -> AffineStep:
    """(λ, φ) → (λ, φ, 0)."""
    return AffineStep([
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 0.0],
        [0.0, 0.0, 1.0],
    ])


def height_dropper() -> AffineStep:
    """(λ, φ, h) → (λ, φ)."""
    return AffineStep([
        [1.0, 0.0, 0.0, 0.0],
        [0.0, 1.0, 0.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])


# ════════════════════════════════════════════════════════════════════════════
#  Transform Chain
# ════════════════════════════════════════════════════════════════════════════

_KERNEL_STEPS = (EllipsoidToCentric, CentricToEllipsoid)


def _merge_affine(steps: list) -> list:
    merged = []
    for step in steps:
        if merged and isinstance(step, AffineStep) and isinstance(merged[-1], AffineStep):
            merged[-1] = merged[-1].then(step)
        else:
            merged.append(step)
    if len(merged) > 1:
        merged = [s for s in merged if not (isinstance(s, AffineStep) and s.is_identity)]
    return merged


def _neighbour_ignores(steps, index: int, dimension: int, direction: int) -> bool:
    j = index + direction
    if not 0 <= j < len(steps):
        return False
    neighbour = steps[j]
    if not isinstance(neighbour, AffineStep):
        return False
    m = neighbour.matrix
    if direction == BEFORE:
        return dimension < m.shape[0] - 1 and not np.any(m[dimension, :])
    return dimension < m.shape[1] - 1 and not np.any(m[:, dimension])


class _StepAt:
    """DimensionUsage answering for the step at one position of a list."""

    def __init__(self, steps, index: int):
        self.steps = steps
        self.index = index

    def is_dimension_unused(self, step, dimension: int, direction: int) -> bool:
        return _neighbour_ignores(self.steps, self.index, dimension, direction)


class TransformChain:
    """Sequence of steps applied in order.

    Every step exposes source_dimensions, target_dimensions, transform()
    and inverse().  The chain also answers DimensionUsage queries for the
    optimizer about its own affine steps.
    """

    def __init__(self, steps):
        self.steps = tuple(steps)
        if not self.steps:
            raise ValueError("A transform chain needs at least one step")
        for a, b in zip(self.steps, self.steps[1:]):
            if a.target_dimensions != b.source_dimensions:
                raise DimensionMismatchError(
                    f"{a!r} produces {a.target_dimensions}-D points but "
                    f"{b!r} expects {b.source_dimensions}-D")

    @property
    def source_dimensions(self) -> int:
        return self.steps[0].source_dimensions

    @property
    def target_dimensions(self) -> int:
        return self.steps[-1].target_dimensions

    def transform(self, points: NDArray) -> NDArray:
        pts, single = as_points(points, self.source_dimensions)
        for step in self.steps:
            pts = step.transform(pts)
        return pts[0] if single else pts

    def inverse(self) -> "TransformChain":
        return TransformChain(step.inverse() for step in reversed(self.steps))

    def then(self, other) -> "TransformChain":
        tail = other.steps if isinstance(other, TransformChain) else (other,)
        return TransformChain(self.steps + tuple(tail))

    def _index_of(self, step) -> int:
        for i, s in enumerate(self.steps):
            if s is step:
                return i
        raise ValueError(f"{step!r} is not a step of this chain")

    def is_dimension_unused(self, step, dimension: int, direction: int) -> bool:
        """True if the affine neighbour of `step` ignores `dimension`.

        BEFORE: the neighbour's output row is all zeros (always 0).
        AFTER: the neighbour's input column is all zeros (dropped).

        A step object present more than once is looked up at its first
        position; simplify() queries every position separately.
        """
        return _neighbour_ignores(self.steps, self._index_of(step),
                                  dimension, direction)

    def simplify(self) -> "TransformChain":
        """Equivalent chain with merged affine steps and reduced kernels."""
        steps = _merge_affine(list(self.steps))
        for i, step in enumerate(steps):
            if not isinstance(step, _KERNEL_STEPS):
                continue
            reduced = try_reduce(step, _StepAt(steps, i))
            if reduced is None:
                continue
            j = i + neighbour_direction(step)
            if j < i:
                steps[j] = steps[j].remove_rows(VERTICAL_DIM)
            else:
                steps[j] = steps[j].remove_columns(VERTICAL_DIM)
            steps[i] = reduced
        steps = _merge_affine(steps)
        logger.debug("Simplified chain of %d steps to %d steps",
                     len(self.steps), len(steps))
        return TransformChain(steps)

    def __repr__(self):
        return " → ".join(repr(s) for s in self.steps)


# ════════════════════════════════════════════════════════════════════════════
#  Geodetic Conversion Factory
# ════════════════════════════════════════════════════════════════════════════

def geodetic_conversion(ellipsoid: Ellipsoid = WGS84, with_height: bool = True,
                        target=TargetType.CARTESIAN) -> TransformChain:
    """Geographic (λ°, φ°[, h]) → geocentric chain in the ellipsoid's units.

    Parameters
    ----------
    ellipsoid : Ellipsoid — axis lengths set the output unit
    with_height : bool — accept ellipsoidal height as third coordinate
    target : TargetType or str — 'cartesian' gives (X, Y, Z);
        'spherical' gives (λ, Ω°, R) with λ in the caller's unit

    Returns
    -------
    chain : TransformChain — its inverse() converts back
    """
    kernel = EllipsoidToCentric.from_ellipsoid(ellipsoid, with_height, target)
    a = ellipsoid.semi_major
    to_rad = np.pi / 180.0
    if kernel.target is TargetType.SPHERICAL:
        normalize = [1.0, to_rad]
        denormalize = [1.0, 1.0 / to_rad, a]
    else:
        normalize = [to_rad, to_rad]
        denormalize = [a, a, a]
    if with_height:
        normalize.append(1.0 / a)
    return TransformChain([AffineStep.scale(normalize), kernel,
                           AffineStep.scale(denormalize)])


_WGS84_KERNEL = EllipsoidToCentric.from_ellipsoid(WGS84, with_height=True)


def lla_to_ecef(lat, lon, alt=0.0) -> NDArray:
    """Geodetic LLA → ECEF on WGS-84.

    Parameters
    ----------
    lat, lon : float or (N,) — geodetic latitude / longitude [rad]
    alt : float or (N,) — height above the ellipsoid [m]

    Returns
    -------
    r_ecef : (3,) or (N,3) ndarray [m]
    """
    lat, lon, alt = np.broadcast_arrays(np.asarray(lat, dtype=np.float64), lon, alt)
    a = WGS84.semi_major
    geo = np.stack([lon, lat, alt / a], axis=-1)
    return _WGS84_KERNEL.transform(geo) * a


def ecef_to_lla(r_ecef: NDArray) -> NDArray:
    """ECEF [m] → geodetic [lat, lon, alt] on WGS-84.

    Returns
    -------
    lla : (3,) or (N,3) array — [lat rad, lon rad, alt m]
    """
    a = WGS84.semi_major
    geo = _WGS84_KERNEL.inverse_transform(np.asarray(r_ecef, dtype=np.float64) / a)
    return np.stack([geo[..., 1], geo[..., 0], geo[..., 2] * a], axis=-1)
