# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

"""
Custom exceptions for the coreason-auth package.

Each exception carries the HTTP status the adapter layer reports by default.
Individual routes may map an error differently (e.g. identity lookups report
provider failures as 401).
"""


class CoreasonAuthError(Exception):
    """Base exception for all coreason-auth errors."""

    status_code: int = 500


class InvalidRequestError(CoreasonAuthError):
    """Raised when a request is malformed or missing required fields."""

    status_code = 400


class InvalidConfigError(InvalidRequestError):
    """Raised when an AuthConfig (or its provider-specific part) is missing or malformed fields."""


class UnauthorizedError(CoreasonAuthError):
    """Raised when the bearer token is missing or malformed."""

    status_code = 401


class UnknownProviderError(CoreasonAuthError):
    """Raised when a provider name does not resolve to a registered provider."""


class NoProviderConfiguredError(CoreasonAuthError):
    """Raised when an operation needs the active provider but none has been loaded yet."""


class AuthFailedError(CoreasonAuthError):
    """Raised when the identity provider rejects a code or an access token."""

    status_code = 401


class IdentityNotFoundError(CoreasonAuthError):
    """Raised when the provider does not know the requested identity."""

    status_code = 404


class ProviderError(CoreasonAuthError):
    """Raised when the identity provider is unreachable, times out or answers with garbage."""


class StoreError(CoreasonAuthError):
    """Raised when reading from or writing to the settings store fails."""


class SigningError(CoreasonAuthError):
    """Raised when the claims payload cannot be signed."""
