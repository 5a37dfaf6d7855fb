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
Configuration for the coreason-auth service.
"""

from pathlib import Path
from urllib.parse import urlparse

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreasonAuthConfig(BaseSettings):
    """
    Process-level settings for coreason-auth, read from `COREASON_AUTH_*` environment variables.

    These only cover how the service reaches its collaborators. The authentication
    configuration itself (provider, allow-list...) lives in the settings store.

    Attributes:
        settings_url (str): Base URL of the settings store API (e.g. http://cattle:8080/v1).
        access_key (str): Access key for the settings store.
        secret_key (SecretStr): Secret key for the settings store.
        private_key_file (Path): PEM file holding the RSA key used to sign tokens.
        http_timeout (float): Connect/read timeout for every outbound HTTP call.
        provider_timeout (float): Upper bound for a single identity provider operation.
        store_timeout (float): Upper bound for a single settings store round-trip.
        token_ttl (int): Lifetime of issued tokens in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="COREASON_AUTH_",
        case_sensitive=False,
    )

    settings_url: str
    access_key: str
    secret_key: SecretStr
    private_key_file: Path
    http_timeout: float = Field(..., gt=0, description="Timeout in seconds for all outbound HTTP operations.")
    provider_timeout: float = Field(default=10.0, gt=0)
    store_timeout: float = Field(default=10.0, gt=0)
    token_ttl: int = Field(default=86400, gt=0)
    host: str = "0.0.0.0"
    port: int = 8090

    @field_validator("settings_url")
    @classmethod
    def validate_settings_url(cls, v: str) -> str:
        """
        Ensures the settings store URL is an absolute http(s) URL without a trailing slash.

        Args:
            v: The raw URL.

        Returns:
            The normalized URL.

        Raises:
            ValueError: If the scheme is not http/https or the host is missing.
        """
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"settings_url must be an absolute http(s) URL, got '{v}'")
        return v.rstrip("/")
