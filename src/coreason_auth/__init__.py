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
Token issuing service delegating credential checks to pluggable identity providers.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import CoreasonAuthConfig
from .exceptions import CoreasonAuthError
from .identity_resolver import IdentityResolver
from .manager import ConfigManager
from .models import AccessMode, AuthConfig, Identity, ProviderToken
from .providers import IdentityProvider, get_provider, register_provider
from .server import AuthServer
from .settings_store import HTTPSettingsStore, InMemorySettingsStore
from .synchronizer import SettingsSynchronizer
from .token_service import TokenService, TokenSigner

__all__ = [
    "AccessMode",
    "AuthConfig",
    "AuthServer",
    "ConfigManager",
    "CoreasonAuthConfig",
    "CoreasonAuthError",
    "HTTPSettingsStore",
    "Identity",
    "IdentityProvider",
    "IdentityResolver",
    "InMemorySettingsStore",
    "ProviderToken",
    "SettingsSynchronizer",
    "TokenService",
    "TokenSigner",
    "get_provider",
    "register_provider",
]
