"""
Exception types raised by the discovery engine and its page adapters.
"""

from typing import Optional


class FormDiscoveryError(Exception):
    """Base class for all form discovery failures."""


class ConfigError(FormDiscoveryError, ValueError):
    """Invalid configuration value."""


class ExtractionError(FormDiscoveryError):
    """The page could not produce a field snapshot. Fatal to the run."""

    def __init__(self, step: str, iteration: int, cause: Optional[BaseException] = None):
        self.step = step
        self.iteration = iteration
        self.cause = cause
        message = f"Field extraction failed during {step} (iteration {iteration})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class FieldInteractionError(FormDiscoveryError):
    """A single fill or option selection failed. Recovered per field."""

    def __init__(self, field_label: str, reason: str):
        self.field_label = field_label
        self.reason = reason
        super().__init__(f"Could not interact with field '{field_label}': {reason}")
