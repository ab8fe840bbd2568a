# src/drone_epoch_annotator/exceptions.py
"""Exceptions raised while annotating a pull request."""

from typing import Optional


class AnnotatorError(Exception):
    """Base class for every failure that aborts an annotation run."""


class ConfigurationError(AnnotatorError):
    """Plugin settings are missing or invalid.

    Raised when, for example:
    - PLUGIN_SCM_TOKEN is not set
    - the repository or pull request number cannot be determined
    - PLUGIN_STRATEGY or PLUGIN_CLEANUP_POLICIES name unknown values
    """


class MalformedDiffError(AnnotatorError):
    """A diff or patch could not be turned into line positions.

    Raised when a hunk header does not match ``@@ -a,b +c,d @@`` while a
    patch body is present, or when the hunk body disagrees with the header
    counts. Line numbers are never guessed.
    """


class UnexpectedResponseShapeError(AnnotatorError):
    """The review host answered with a payload of the wrong type.

    Raised when a diff was requested but the body is not text, or when a
    list endpoint returns something other than a JSON array.
    """


class TransportFailureError(AnnotatorError):
    """A call to the review host failed.

    Raised for connection errors, timeouts, non-success status codes and
    GraphQL responses carrying an ``errors`` array. The core never retries.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
