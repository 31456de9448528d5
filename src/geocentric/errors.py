"""
geocentric.errors — Error Taxonomy
===================================

Every failure is reported synchronously to the caller.  Each class also
derives from the built-in exception a caller would naturally catch.
"""


class TransformError(Exception):
    """Base class of all errors raised by this package."""


class InvalidParameterError(TransformError, ValueError):
    """Malformed ellipsoid or kernel parameters (fatal at construction)."""


class DimensionMismatchError(TransformError, ValueError):
    """A point, array or chain step has the wrong number of dimensions."""


class NonConvergenceError(TransformError, ArithmeticError):
    """The latitude iteration did not reach tolerance within its budget."""

    def __init__(self, message: str, iterations: int = 0):
        super().__init__(message)
        self.iterations = iterations


class NonInvertibleMatrixError(TransformError, ArithmeticError):
    """A Jacobian or affine matrix could not be inverted."""
