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
TokenService component: exchanges provider credentials for signed platform tokens.
"""

import time
from pathlib import Path
from typing import Any, Literal

import anyio
from authlib.jose import JsonWebKey, JsonWebToken
from authlib.jose.errors import JoseError
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from coreason_auth.exceptions import (
    CoreasonAuthError,
    InvalidConfigError,
    InvalidRequestError,
    NoProviderConfiguredError,
    ProviderError,
    SigningError,
)
from coreason_auth.models import ProviderToken
from coreason_auth.state import ActiveState
from coreason_auth.utils.logger import logger

tracer = trace.get_tracer(__name__)


def build_claims(token: ProviderToken) -> dict[str, Any]:
    """
    Assembles the claims payload for a provider token.

    `idList` is always derived from the identity records, never taken from the
    provider separately, so the two fields cannot disagree.

    Args:
        token: The token returned by the provider.

    Returns:
        dict[str, Any]: The claims to sign.
    """
    return {
        "token": token.type,
        "account_id": token.external_account_id,
        "access_token": token.access_token,
        "idList": [identity.id for identity in token.identities],
        "identities": [identity.model_dump(mode="json", by_alias=True) for identity in token.identities],
    }


class TokenSigner:
    """
    Signs claims payloads with the service's private key.

    Attributes:
        algorithm (str): The JWS algorithm. Defaults to RS256.
        ttl (int): Token lifetime in seconds, written as the `exp` claim.
    """

    def __init__(self, key: Any, algorithm: str = "RS256", ttl: int = 86400) -> None:
        """
        Initialize the TokenSigner.

        Args:
            key: The private key (an authlib key object, a JWK dict or PEM bytes).
            algorithm: The JWS algorithm. Defaults to RS256.
            ttl: Token lifetime in seconds. Defaults to 86400 (24 hours).
        """
        self.key = key
        self.algorithm = algorithm
        self.ttl = ttl
        self.jwt = JsonWebToken([algorithm])

    @classmethod
    def from_pem_file(cls, path: Path, algorithm: str = "RS256", ttl: int = 86400) -> "TokenSigner":
        """
        Loads the private key from a PEM file.

        Raises:
            InvalidConfigError: If the file cannot be read or does not hold a usable key.
        """
        try:
            key = JsonWebKey.import_key(path.read_bytes(), {"kty": "RSA"})
        except OSError as e:
            raise InvalidConfigError(f"Cannot read private key file {path}: {e}") from e
        except (ValueError, JoseError) as e:
            raise InvalidConfigError(f"Invalid private key in {path}: {e}") from e
        return cls(key, algorithm=algorithm, ttl=ttl)

    def sign(self, claims: dict[str, Any]) -> str:
        """
        Signs `claims`, adding `iat` and `exp`.

        Raises:
            SigningError: If signing fails for any reason.
        """
        now = int(time.time())
        payload = {**claims, "iat": now, "exp": now + self.ttl}
        try:
            token = self.jwt.encode({"alg": self.algorithm}, payload, self.key)
        except Exception as e:
            logger.error(f"Signing the token failed: {type(e).__name__}")
            raise SigningError(f"Failed to sign the token: {e}") from e
        return token.decode("utf-8")


class TokenService:
    """
    Issues signed tokens from authorization codes or provider access tokens.

    Attributes:
        state (ActiveState): The process-wide provider/config cell.
        signer (TokenSigner): Signs the claims payload.
        provider_timeout (float): Upper bound in seconds for the provider call.
    """

    def __init__(self, state: ActiveState, signer: TokenSigner, provider_timeout: float = 10.0) -> None:
        self.state = state
        self.signer = signer
        self.provider_timeout = provider_timeout

    async def create_token(self, code: str) -> str:
        """
        Exchanges an authorization code for a signed token.

        Raises:
            NoProviderConfiguredError: If no provider is active, whatever `code` is.
            InvalidRequestError: If `code` is empty.
            AuthFailedError: If the provider rejects the code.
            ProviderError: If the provider fails or times out.
            SigningError: If the payload cannot be signed.
        """
        return await self._issue("code", code)

    async def refresh_token(self, access_token: str) -> str:
        """
        Re-issues a signed token from a provider access token.

        Raises:
            NoProviderConfiguredError: If no provider is active, whatever `access_token` is.
            InvalidRequestError: If `access_token` is empty.
            AuthFailedError: If the provider rejects the token.
            ProviderError: If the provider fails or times out.
            SigningError: If the payload cannot be signed.
        """
        return await self._issue("refresh", access_token)

    async def _issue(self, grant: Literal["code", "refresh"], credential: str) -> str:
        with tracer.start_as_current_span("issue_token") as span:
            span.set_attribute("auth.grant", grant)
            try:
                async with self.state.read_lock():
                    provider = self.state.snapshot().provider
                    if provider is None:
                        raise NoProviderConfiguredError("No auth provider configured")
                    if not credential:
                        raise InvalidRequestError(
                            "An authorization code is required" if grant == "code" else "An access token is required"
                        )
                    span.set_attribute("auth.provider", provider.name)

                    try:
                        with anyio.fail_after(self.provider_timeout):
                            if grant == "code":
                                provider_token = await provider.generate_token(credential)
                            else:
                                provider_token = await provider.refresh_token(credential)
                    except TimeoutError as e:
                        raise ProviderError(f"Identity provider '{provider.name}' timed out") from e

                token = self.signer.sign(build_claims(provider_token))
                logger.info(
                    f"Issued token for account {provider_token.external_account_id} "
                    f"with {len(provider_token.identities)} identities"
                )
                span.set_status(Status(StatusCode.OK))
                return token
            except CoreasonAuthError as e:
                logger.warning(f"Token issuance ({grant}) failed: {type(e).__name__}: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise
