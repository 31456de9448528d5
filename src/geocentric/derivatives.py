"""
geocentric.derivatives — Jacobians of the Ellipsoid ↔ Centric Conversion
==========================================================================

Forward Jacobians are derived analytically.  Inverse Jacobians are *not*:
they are obtained by inverting the forward Jacobian evaluated at the
geodetic point, which is far simpler than differentiating the iterative
inverse.

Matrix layout (rows = outputs, columns = inputs)::

    Cartesian               Spherical
    ┌ ∂X/∂λ ∂X/∂φ ∂X/∂h ┐   ┌ 1     0      0    ┐
    │ ∂Y/∂λ ∂Y/∂φ ∂Y/∂h │   │ 0   ∂Ω/∂φ  ∂Ω/∂h │
    └   0   ∂Z/∂φ ∂Z/∂h ┘   └ 0   ∂R/∂φ  ∂R/∂h ┘

Without height the last column is omitted (3×2).
"""

import numpy as np
from numpy.typing import NDArray

from .errors import DimensionMismatchError, NonInvertibleMatrixError
from .utils import NUM_CENTRIC_DIM, VERTICAL_DIM


def cartesian_jacobian(lam: float, phi: float, h: float, e2: float,
                       with_height: bool = True) -> NDArray:
    """Jacobian of (λ,φ[,h]) → (X,Y,Z) on the unit ellipsoid.

    Parameters
    ----------
    lam, phi : float — longitude, geodetic latitude [rad]
    h : float — ellipsoidal height [a units]
    e2 : float — eccentricity squared
    with_height : bool — 3×3 if True, 3×2 otherwise

    Returns
    -------
    J : (3,3) or (3,2) ndarray
    """
    cos_phi, sin_phi = np.cos(phi), np.sin(phi)
    cos_lam, sin_lam = np.cos(lam), np.sin(lam)
    nu2 = 1.0 / (1.0 - e2 * (sin_phi * sin_phi))
    nu = np.sqrt(nu2)
    nu_e = nu * (1.0 - e2)
    r = nu + h

    sd_phi = nu_e * nu2 + h
    dX_dh = cos_phi * cos_lam
    dY_dh = cos_phi * sin_lam
    J = np.array([
        [-r * dY_dh, -sd_phi * (sin_phi * cos_lam), dX_dh],
        [ r * dX_dh, -sd_phi * (sin_phi * sin_lam), dY_dh],
        [       0.0,  sd_phi * cos_phi,             sin_phi],
    ])
    return J if with_height else J[:, :2]


def spherical_jacobian(lam: float, phi: float, h: float, e2: float,
                       with_height: bool = True) -> NDArray:
    """Jacobian of (λ,φ[,h]) → (λ,Ω,R) on the unit ellipsoid.

    Longitude passes through, so its row is (1, 0, 0).  At the centre of
    the ellipsoid (R² = 0) only the identity diagonal is returned.
    """
    cos_phi, sin_phi = np.cos(phi), np.sin(phi)
    nu2 = 1.0 / (1.0 - e2 * (sin_phi * sin_phi))
    nu = np.sqrt(nu2)
    nu_e = nu * (1.0 - e2)
    r = nu + h
    r_cos = r * cos_phi
    Z = (nu_e + h) * sin_phi
    R = np.hypot(Z, r_cos)

    J = np.eye(NUM_CENTRIC_DIM, 3 if with_height else 2)
    R2 = R * R                  # may underflow
    if R2 != 0:
        e2nu2 = e2 * nu2
        r_sin = r * sin_phi
        Z_sin = Z * sin_phi
        r_cos2 = r_cos * cos_phi
        J[1, 1] = ((e2nu2 * sin_phi * (nu_e * r_sin - nu * Z) + (nu_e + h) * r)
                   * (cos_phi * cos_phi) + Z * r_sin) / R2
        J[2, 1] = ((e2nu2 * (nu_e * Z_sin + nu * r_cos2) - r * r) * sin_phi
                   + Z * (nu_e + h)) * cos_phi / R
        if with_height:
            J[1, 2] = cos_phi * (r_sin - Z) / R2
            J[2, 2] = (Z_sin + r_cos2) / R
    return J


def inverse_jacobian(forward: NDArray, with_height: bool) -> NDArray:
    """Jacobian of the inverse conversion from a square forward Jacobian.

    The height row is removed only *after* inversion: λ, φ and h are not
    independently recoverable from the reduced 3×2 system.

    Parameters
    ----------
    forward : (3,3) — forward Jacobian at the geodetic point (height kept)
    with_height : bool — keep the ∂h row

    Returns
    -------
    J_inv : (3,3) or (2,3) ndarray
    """
    forward = np.asarray(forward, dtype=np.float64)
    if forward.shape != (NUM_CENTRIC_DIM, NUM_CENTRIC_DIM):
        raise DimensionMismatchError(
            f"Forward Jacobian must be 3×3 before inversion, got {forward.shape}")
    try:
        inv = np.linalg.inv(forward)
    except np.linalg.LinAlgError as ex:
        raise NonInvertibleMatrixError("Forward Jacobian is singular") from ex
    if not with_height:
        inv = np.delete(inv, VERTICAL_DIM, axis=0)
    return inv
