"""Exceptions raised while building neighbour graphs.

Misconfiguration errors derive from ``ValueError`` so callers can fix ``k``
or ``d`` and retry; numerical failures derive from ``RuntimeError`` and
usually mean switching to exact mode or changing solver parameters.
"""


class GraphBuildError(Exception):
    """Base class for all graph construction errors."""

    pass


class InvalidDimensionError(GraphBuildError, ValueError):
    """Raised for a bad target dimensionality or inconsistent matrix shape.

    Examples
    --------
    >>> from cellgraph.core.graph.exceptions import InvalidDimensionError
    >>> raise InvalidDimensionError("d must be a positive integer, got -1")
    """

    pass


class InsufficientDataError(GraphBuildError, ValueError):
    """Raised when there are too few observations for the requested ``k``."""

    pass


class InvalidParameterError(GraphBuildError, ValueError):
    """Raised for unknown modes, backends or out-of-range parameters."""

    pass


class NumericalError(GraphBuildError, RuntimeError):
    """Raised when an SVD or approximate neighbour search fails to converge."""

    pass
