# file: scamshield/errors.py
"""
Exception hierarchy for scamshield.

Recoverable errors (invalid input, lookup failures, reload failures) are meant
to be surfaced to the user as messages; none of them leave the block list in a
partially written state.
"""

from __future__ import annotations


class ScamshieldError(Exception):
    """Base class for all scamshield errors."""


class InvalidNumberError(ScamshieldError, ValueError):
    """Raised when input cannot be normalized into a 64-bit phone number."""


class StoreUnavailableError(ScamshieldError):
    """Raised when the shared block-list storage cannot be opened or decoded."""


class ReloadError(ScamshieldError):
    """
    Raised (or attached to an outcome) when the call-directory extension could not
    be reloaded. The block-list mutation that preceded it is already durable.
    """

    def __init__(self, extension_id: str, reason: str, *, attempts: int = 1) -> None:
        super().__init__(f"Reload of {extension_id} failed after {attempts} attempt(s): {reason}")
        self.extension_id = extension_id
        self.reason = reason
        self.attempts = attempts


class NumberLookupError(ScamshieldError):
    """Base class for remote number-intelligence failures."""


class InvalidEndpointError(NumberLookupError):
    """The configured report API URL is unusable."""


class LookupNetworkError(NumberLookupError):
    """Transport failure, exhausted retries, or an unexpected HTTP status."""


class LookupDecodeError(NumberLookupError):
    """The remote answered, but the payload is not a valid report."""


class NumberNotFoundError(NumberLookupError):
    """The remote service has no record of the number (HTTP 404)."""

    def __init__(self, number: str) -> None:
        super().__init__(f"No reports found for {number}")
        self.number = number
