"""
geocentric.ellipsoid — Reference Ellipsoids
============================================

Oblate ellipsoid of revolution described by its semi-major and semi-minor
axis lengths.  The kernel only needs the dimensionless pair
(eccentricity², axis ratio); the axis length itself is applied by the
normalization and denormalization steps of a conversion chain.
"""

from dataclasses import dataclass

import numpy as np

from .errors import InvalidParameterError
from .utils import R_EARTH, F_EARTH


@dataclass(frozen=True)
class Ellipsoid:
    """Reference ellipsoid.

    Parameters
    ----------
    semi_major : float — equatorial radius a [m]
    semi_minor : float — polar radius b [m], 0 < b ≤ a
    name : str — identifier
    """
    semi_major: float
    semi_minor: float
    name: str = "Ellipsoid"

    def __post_init__(self):
        a, b = self.semi_major, self.semi_minor
        if not (np.isfinite(a) and np.isfinite(b)):
            raise InvalidParameterError(
                f"Axis lengths must be finite, got a={a}, b={b}")
        if a <= 0.0:
            raise InvalidParameterError(f"Semi-major axis must be positive, got {a}")
        if not 0.0 < b <= a:
            raise InvalidParameterError(
                f"Semi-minor axis must be in (0, {a}], got {b}")

    @classmethod
    def from_flattening(cls, semi_major: float, inverse_flattening: float,
                        name: str = "Ellipsoid") -> "Ellipsoid":
        """Build from a = semi_major and 1/f.  0 or ∞ gives a sphere."""
        if inverse_flattening == 0.0 or np.isinf(inverse_flattening):
            return cls(semi_major, semi_major, name)
        return cls(semi_major, semi_major * (1.0 - 1.0 / inverse_flattening), name)

    @property
    def flattening(self) -> float:
        return (self.semi_major - self.semi_minor) / self.semi_major

    @property
    def axis_ratio(self) -> float:
        """b / a."""
        return self.semi_minor / self.semi_major

    @property
    def eccentricity_squared(self) -> float:
        """e² = (a² − b²) / a², computed as f(2 − f) to limit cancellation."""
        f = self.flattening
        return f * (2.0 - f)

    @property
    def is_sphere(self) -> bool:
        return self.semi_major == self.semi_minor


WGS84 = Ellipsoid.from_flattening(R_EARTH, 1.0 / F_EARTH, "WGS 84")
GRS80 = Ellipsoid.from_flattening(6_378_137.0, 298.257222101, "GRS 1980")
SPHERE = Ellipsoid(6_371_007.0, 6_371_007.0, "GRS 1980 Authalic Sphere")
