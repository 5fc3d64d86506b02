"""
Exceptions raised while parsing binding matrices and scoring windows.

Every error derives from :class:`BindingMatrixError`, which is itself a
``ValueError``.  The library never terminates the interpreter: a failing
window or matrix raises, and callers decide whether to skip it or stop.
"""


class BindingMatrixError(ValueError):
    """Base class for caller-input errors."""


class MalformedMatrix(BindingMatrixError):
    """PFM text that does not hold exactly four equal-length A/C/G/T rows."""


class InvalidSequence(BindingMatrixError):
    """Window that is empty or contains characters outside ACGT."""


class LengthMismatch(BindingMatrixError):
    """Window whose length differs from the matrix length."""


class OutOfRange(BindingMatrixError):
    """1-based matrix position outside ``[1, length]``."""


class InvalidThreshold(BindingMatrixError):
    """Information-content threshold outside ``[0, 2]``."""
