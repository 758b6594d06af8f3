"""
Exceptions Module
=================

Error types raised by the power-flow engine.

Configuration problems (bad case data, bad options, misuse of the
renumbering state machine) derive from ``ValueError`` so callers that
already guard against ``ValueError`` keep working.  Numerical failures of a
linear solve derive from ``RuntimeError``.

Non-convergence of an iterative solver is *not* an exception; it is
reported through ``SolverResult.converged`` and ``Case.success``.

Date: 2026-10-19
"""


class PowerFlowError(Exception):
    """Base class for all power-flow engine errors."""


class ConfigurationError(PowerFlowError, ValueError):
    """Invalid case data, option value or ordering key."""


class NoReferenceBusError(ConfigurationError):
    """Raised when no bus can act as the reference (slack) bus."""


class NumberingStateError(ConfigurationError):
    """Raised when ext2int/int2ext is called in the wrong numbering state."""


class UnsupportedAlgorithmError(ConfigurationError):
    """Raised for an unknown power-flow algorithm selector."""


class SolverError(PowerFlowError, RuntimeError):
    """Raised when a linear system inside a solver cannot be factorised."""
