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
HTTP adapter: parses requests, calls into the AuthServer and formats responses.
"""

import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastapi import FastAPI, Header, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from coreason_auth.exceptions import (
    CoreasonAuthError,
    InvalidRequestError,
    UnauthorizedError,
    UnknownProviderError,
)
from coreason_auth.models import AuthConfig, Identity
from coreason_auth.server import AuthServer
from coreason_auth.utils.logger import logger

BAD_REQUEST = "Bad Request, Please check the request content"
UNAUTHORIZED = "Unauthorized, please provide a valid token"


class ErrorResponse(BaseModel):
    """Error body returned by every failing route."""

    type: Literal["error"] = "error"
    status: int
    message: str


def error_response(status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(status=status_code, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def bearer_token(authorization: str | None) -> str:
    """
    Extracts the token from an `Authorization: Bearer <token>` header value.

    Raises:
        UnauthorizedError: If the header is missing or malformed.
    """
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    match = re.match(r"^Bearer\s+(\S+)$", authorization)
    if not match:
        raise UnauthorizedError("Invalid Authorization header format. Must be 'Bearer <token>'")
    return match.group(1)


def identity_collection(identities: list[Identity]) -> dict[str, Any]:
    return {"type": "collection", "data": [i.model_dump(mode="json", by_alias=True) for i in identities]}


async def _json_object(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidRequestError(f"Request body is not valid JSON: {e}") from e
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return body


def create_app(server: AuthServer) -> FastAPI:
    """
    Builds the FastAPI application around `server`.

    On startup the configuration is reloaded from the settings store; a failure
    is logged and the service still starts (a later POST /authconfig or
    /reloadconfig activates a provider). The store is closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with server:
            try:
                await server.config_manager.reload()
            except CoreasonAuthError as e:
                logger.error(f"Initial auth config reload failed, no provider active: {e}")
            yield

    app = FastAPI(title="coreason-auth", lifespan=lifespan)
    app.state.server = server

    @app.exception_handler(CoreasonAuthError)
    async def auth_error_handler(request: Request, exc: CoreasonAuthError) -> JSONResponse:
        return error_response(exc.status_code, str(exc))

    @app.post("/token")
    async def create_token(request: Request) -> Any:
        try:
            body = await _json_object(request)
        except InvalidRequestError as e:
            logger.error(f"CreateToken: {e}")
            body = {}

        code = body.get("code") or ""
        access_token = body.get("accessToken") or ""
        if not isinstance(code, str) or not isinstance(access_token, str) or not (code or access_token):
            return error_response(400, BAD_REQUEST)

        try:
            if code:
                token = await server.token_service.create_token(code)
            else:
                token = await server.token_service.refresh_token(access_token)
        except CoreasonAuthError as e:
            logger.error(f"CreateToken failed: {e}")
            return error_response(500, f"Error getting the token: {e}")
        return JSONResponse(content=token)

    @app.get("/me/identities")
    async def get_my_identities(authorization: str | None = Header(default=None)) -> Any:
        try:
            token = bearer_token(authorization)
            identities = await server.resolver.get_identities(token)
        except UnauthorizedError:
            return error_response(401, UNAUTHORIZED)
        except CoreasonAuthError as e:
            logger.debug(f"GetIdentities failed: {e}")
            return error_response(401, "Unauthorized, failed to get identities")
        return identity_collection(identities)

    @app.get("/identities")
    async def search_identities(
        authorization: str | None = Header(default=None),
        external_id: str = Query(default="", alias="externalId"),
        external_id_type: str = Query(default="", alias="externalIdType"),
        name: str = Query(default=""),
    ) -> Any:
        try:
            token = bearer_token(authorization)
        except UnauthorizedError:
            return error_response(401, UNAUTHORIZED)

        try:
            if external_id and external_id_type:
                identity = await server.resolver.get_identity(external_id, external_id_type, token)
                return identity.model_dump(mode="json", by_alias=True)
            if name:
                return identity_collection(await server.resolver.search_identities(name, True, token))
        except CoreasonAuthError as e:
            logger.error(f"SearchIdentities failed: {e}")
            return error_response(500, "Internal Server Error")
        return error_response(400, BAD_REQUEST)

    @app.post("/authconfig")
    async def update_config(request: Request) -> Response:
        try:
            config = AuthConfig.model_validate(await _json_object(request))
        except (InvalidRequestError, ValidationError) as e:
            logger.error(f"UpdateConfig: malformed body: {e}")
            return error_response(400, BAD_REQUEST)

        try:
            await server.config_manager.update_config(config)
        except (InvalidRequestError, UnknownProviderError) as e:
            return error_response(400, f"{BAD_REQUEST}: {e}")
        return Response(status_code=200)

    @app.get("/authconfig")
    async def get_config(authorization: str | None = Header(default=None)) -> Any:
        access_token = ""
        if authorization:
            try:
                access_token = bearer_token(authorization)
            except UnauthorizedError:
                return error_response(401, UNAUTHORIZED)

        try:
            config = await server.config_manager.get_config(access_token)
        except CoreasonAuthError as e:
            logger.debug(f"GetConfig failed: {e}")
            return error_response(500, "Failed to get the auth config")
        return config.model_dump(mode="json", by_alias=True)

    @app.post("/reloadconfig")
    async def reload_config() -> Response:
        try:
            await server.config_manager.reload()
        except CoreasonAuthError as e:
            logger.debug(f"Reload failed: {e}")
            return error_response(500, "Failed to reload the auth config")
        return Response(status_code=200)

    return app
