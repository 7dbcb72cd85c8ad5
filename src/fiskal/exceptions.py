from __future__ import annotations


class FiskalError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(FiskalError, ValueError):
    """Input rejected at the point of the offending call."""


class CredentialError(FiskalError):
    """Private key or certificate could not be loaded or used."""


class CisFaultError(FiskalError):
    """CIS answered, but the response carries one or more errors."""

    def __init__(self, message: str, errors: list | None = None, response: bytes | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []
        self.response = response
