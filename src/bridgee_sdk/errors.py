"""Exception types raised by the SDK.

Only construction-time validation surfaces as an exception to the host
application. Runtime failures inside a pipeline run are carried as values
(ReferrerFailed, MatchFailure) and logged.
"""


class BridgeeError(Exception):
    """Base class for SDK errors."""


class InvalidArgumentError(BridgeeError, ValueError):
    """A required argument was missing or empty."""
