# src/cases_from_deaths/errors.py
"""Input-validation errors raised by the simulation engine.

Every error subclasses ``ValueError`` so callers that already guard
against bad arguments keep working.
"""


class CasesFromDeathsError(ValueError):
    """Base class for rejected simulation inputs."""


class InvalidDistributionParameters(CasesFromDeathsError):
    """A delay distribution cannot be built from the given parameters."""


class InvalidCFR(CasesFromDeathsError):
    """The case-fatality ratio is outside (0, 1]."""


class InvalidHorizon(CasesFromDeathsError):
    """The projection horizon is shorter than one day."""


class DateOutOfRange(CasesFromDeathsError):
    """A requested date precedes the start of an ensemble."""


class EmptyDeathSet(CasesFromDeathsError):
    """No death dates were given, so there is nothing to simulate."""
