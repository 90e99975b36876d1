"""
errors.py
Failure types shared by every screen.
"""

from __future__ import annotations


class NativeError(Exception):
    pass


class ValidationError(NativeError):
    """
    Input rejected before anything is written.
    `errors` maps a form field to the message shown next to it.
    """

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class DuplicateError(ValidationError):
    pass


class InsufficientBalanceError(ValidationError):
    pass


class BackendError(NativeError):
    """A read or write against the data/storage/auth backend failed."""
