"""Custom exceptions for the DPMM Gibbs package."""


class DPMMError(Exception):
    """Base class for exceptions in the DPMM Gibbs package."""


class InvalidConfiguration(DPMMError, ValueError):
    """Raised when sampler, driver or base-measure settings are invalid.

    Always raised before any sweep runs.
    """


class InvalidComponent(DPMMError):
    """Raised when an observation is assigned to a component that does not exist."""


class UnknownComponent(DPMMError, KeyError):
    """Raised when a component id is not present in the parameter store."""


class ComponentNotEmpty(DPMMError):
    """Raised when removing a component that still has assigned observations."""


class NegativeCount(DPMMError):
    """Raised when a mutation would leave a component with a negative count."""


class NumericalDegeneracy(DPMMError, ArithmeticError):
    """Raised when every assignment weight underflows to zero.

    The CRP sampler recovers from this locally, see
    :class:`NumericalDegeneracyWarning`.
    """


class NumericalDegeneracyWarning(RuntimeWarning):
    """Emitted each time the uniform fallback assignment is used."""


class InvariantViolation(DPMMError):
    """Raised when the assignment and parameter stores disagree."""
