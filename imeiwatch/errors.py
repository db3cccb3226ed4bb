"""
imeiwatch/errors.py
Error taxonomy for the status pipeline.

Not-found IMEIs are NOT an error: they are reported in
BatchResult.not_found and exported on their own sheet.
"""

from typing import List, Optional


class ImeiWatchError(Exception):
    """Base class for every error raised by imeiwatch."""


class EmptyInput(ImeiWatchError, ValueError):
    """No IMEI left after trimming and dropping empty tokens."""

    def __init__(self, message: str = 'Please enter at least one IMEI'):
        super().__init__(message)


class InvalidFormat(ImeiWatchError, ValueError):
    """One or more tokens are not exactly 15 decimal digits.

    The whole batch is rejected; `tokens` lists every offending token
    in submission order.
    """

    def __init__(self, tokens: List[str]):
        self.tokens = list(tokens)
        super().__init__(
            f"Invalid IMEIs: {', '.join(self.tokens)}. "
            f"An IMEI must have 15 digits."
        )


class LookupFailure(ImeiWatchError):
    """Lookup service error or network failure. Never retried here."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MissingDaysOffline(ImeiWatchError, ValueError):
    """A resolved device reached the classifier without days_offline."""

    def __init__(self, imei: str):
        self.imei = imei
        super().__init__(f"Device {imei} has no days offline value")
