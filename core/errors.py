"""
Error Taxonomy

Exceptions shared by the processing and display layers.
"""


class ViewerError(Exception):
    """Base class for all viewer errors."""


class InvalidArgumentError(ViewerError, ValueError):
    """A caller passed malformed input (always raised, never coerced)."""


class ResourceUnavailableError(ViewerError):
    """
    Derived data could not be produced (empty plane, empty histogram).

    Recovered at the component boundary with a well-defined fallback.
    """


class ExtractionCancelled(ViewerError):
    """An in-flight extraction was superseded by a newer request."""
