# cvensemble/utils/errors.py


class EnsembleError(Exception):
    """Root of every error raised by the ensemble engine."""


class ConfigurationError(EnsembleError, ValueError):
    """
    Caller-supplied data or configuration violates a precondition.

    Raised synchronously at build start, never retried.
    """


class LogicError(EnsembleError, RuntimeError):
    """
    Programming error (finalizing twice, computing before finalize, ...).
    Fatal.
    """


class NumericalInstabilityError(EnsembleError, ArithmeticError):
    """
    A trainer update produced non-finite parameters.

    The trainer that raises it MUST have restored its previous parameters.
    """
