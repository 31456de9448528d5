"""
geocentric.optimizer — Height-Dimension Reduction of Kernel Steps
==================================================================

A 3-D kernel in a transform chain can be replaced by its cheaper 2-D form
when a neighbouring step provably ignores the height::

    [affine: h ← 0]  →  EllipsoidToCentric(3-D)      ⇒  EllipsoidToCentric(2-D)
    CentricToEllipsoid(3-D)  →  [affine: drop h]     ⇒  CentricToEllipsoid(2-D)

The forward kernel looks at the step *before* it (its input height must
always be zero); the inverse view looks at the step *after* it (its output
height must be dropped).  Whether a dimension is unused is answered by the
hosting chain through the DimensionUsage protocol, so this module can be
used without any particular pipeline implementation.

Declining a reduction never changes results, only speed (and the 2-D
kernel may skip the latitude iteration).
"""

import logging
from typing import Protocol, Union

from .kernel import EllipsoidToCentric, CentricToEllipsoid
from .utils import VERTICAL_DIM

logger = logging.getLogger(__name__)

BEFORE = -1     # neighbour feeding the forward kernel
AFTER = +1      # neighbour consuming the inverse view's output

KernelStep = Union[EllipsoidToCentric, CentricToEllipsoid]


class DimensionUsage(Protocol):
    """Capability supplied by the host pipeline."""

    def is_dimension_unused(self, step: KernelStep, dimension: int,
                            direction: int) -> bool:
        """True if the neighbour of `step` in `direction` ignores `dimension`.

        For BEFORE the neighbour always sets the dimension to zero; for
        AFTER it drops the dimension.
        """
        ...


def neighbour_direction(step: KernelStep) -> int:
    """Direction in which `step` looks for a height-ignoring neighbour."""
    return AFTER if isinstance(step, CentricToEllipsoid) else BEFORE


def try_reduce(step: KernelStep, usage: DimensionUsage,
               direction: int | None = None,
               dimension: int = VERTICAL_DIM) -> KernelStep | None:
    """Replace a 3-D kernel step by a 2-D one if its neighbour ignores h.

    Parameters
    ----------
    step : EllipsoidToCentric or CentricToEllipsoid
    usage : DimensionUsage — answers whether the neighbour ignores a dimension
    direction : int or None — BEFORE or AFTER; defaults to the one matching
        the step (BEFORE for the forward kernel, AFTER for the inverse view)
    dimension : int — only the height index (2) is eligible

    Returns
    -------
    reduced : the 2-D kernel (BEFORE) or its inverse view (AFTER),
        or None when the reduction does not apply
    """
    expected = neighbour_direction(step)
    if direction is None:
        direction = expected
    kernel = step.kernel if isinstance(step, CentricToEllipsoid) else step
    if direction != expected or dimension != VERTICAL_DIM or not kernel.with_height:
        return None
    if not usage.is_dimension_unused(step, dimension, direction):
        logger.debug("Height still used next to %r; keeping 3-D kernel", step)
        return None
    reduced = kernel.reduced()
    logger.debug("Reduced %r to a 2-D kernel (direction %+d)", step, direction)
    return reduced.inverse() if direction == AFTER else reduced
