"""Exceptions raised by the texture synthesis engines."""


class TexsynError(Exception):
    """Base class for every error raised by texsyn."""


class InvalidArguments(TexsynError, ValueError):
    """A synthesis parameter violates its contract.

    Raised at construction or validation time, before any image work starts.
    """


class SynthesisError(TexsynError, RuntimeError):
    """An invariant broke while a synthesis run was in progress.

    This covers situations that valid parameters should never produce, e.g.
    an empty candidate pool or a distance function returning NaN.
    """
