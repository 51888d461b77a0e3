"""
Error taxonomy for coexlinks.

Configuration problems abort a run before any computation. Recoverable data
inconsistencies (a gene id missing from a matrix axis, a probe without a gene)
are logged and skipped by the callers, and never raise. Programming errors
such as adding links for an experiment that was not bound to a
LinkStatistics instance raise and are fatal.
"""

from __future__ import annotations

__all__ = [
    'CoexlinksError',
    'ConfigurationError',
    'GeneNotFoundError',
    'UnknownExperimentError',
    'ReportWriteError',
    'ServiceNotReadyError',
    'InsufficientSamplesError',
]


class CoexlinksError(Exception):
    """Base class for all errors raised by coexlinks."""
    pass


class ConfigurationError(CoexlinksError):
    """Raised for missing or inconsistent run configuration (taxon, options, gene sets)."""
    pass


class GeneNotFoundError(CoexlinksError, KeyError):
    """Raised when a gene id is looked up on a matrix axis that does not contain it."""

    def __init__(self, gene_id, axis: str = "row"):
        self.gene_id = gene_id
        self.axis = axis
        super().__init__(f"Gene {gene_id!r} is not on the {axis} axis")

    def __str__(self) -> str:
        return self.args[0]


class UnknownExperimentError(CoexlinksError, KeyError):
    """Raised when links are added for an experiment not bound at construction."""

    def __init__(self, experiment_id):
        self.experiment_id = experiment_id
        super().__init__(f"Experiment {experiment_id!r} is not part of this analysis")

    def __str__(self) -> str:
        return self.args[0]


class ReportWriteError(CoexlinksError, OSError):
    """Raised when a report file cannot be written; the cause is chained."""
    pass


class ServiceNotReadyError(CoexlinksError):
    """Raised when an external service does not become ready within the timeout."""
    pass


class InsufficientSamplesError(CoexlinksError):
    """Raised when an experiment has too few samples to survive filtering."""
    pass
