"""
CONTRACT: inline
ROLE: Exception taxonomy for classifier and pipeline failures.

CONTRACT DETAILS:
# Error policy

- ClassifierUnavailable is fatal at startup and propagates to the runner.
- ClassifierInferenceFailed is absorbed per frame by the pipeline; the
  running belief and the displayed result stay unchanged.
- An empty classification result and a busy speech channel are not errors.
"""


class HandSignsError(Exception):
    """Base class for HandSigns failures."""


class ClassifierUnavailable(HandSignsError):
    """The classifier model or its labels could not be loaded."""


class ClassifierInferenceFailed(HandSignsError):
    """A single classification call failed."""
