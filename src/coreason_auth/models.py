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
Data models for the coreason-auth package.
"""

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AccessMode(StrEnum):
    UNRESTRICTED = "unrestricted"
    RESTRICTED = "restricted"
    REQUIRED = "required"


class Identity(BaseModel):
    """
    An identity known to the external identity provider (a user, a group, an org...).

    Identities are value objects: two records describing the same
    (external_id, external_id_type) pair are equal, whatever their display fields say.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "user:1234",
                "externalId": "1234",
                "externalIdType": "user",
                "login": "alice",
                "name": "Alice Liddell",
                "type": "identity",
            }
        },
    )

    id: str = Field(..., description="Stable resource identifier, usually '<type>:<externalId>'.")
    external_id: str = Field(..., description="The identifier of the identity inside the provider.")
    external_id_type: str = Field(..., description="The kind of identity, e.g. 'user', 'group', 'org'.")
    login: str = ""
    name: str = ""
    profile_picture: str = ""
    profile_url: str = ""
    kind: Literal["identity"] = Field(default="identity", alias="type")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Identity):
            return NotImplemented
        return (self.external_id, self.external_id_type) == (other.external_id, other.external_id_type)

    def __hash__(self) -> int:
        return hash((self.external_id, self.external_id_type))

    @property
    def allow_list_entry(self) -> str:
        return f"{self.external_id_type}:{self.external_id}"

    @classmethod
    def stub(cls, entry: str, external_id_type: str, external_id: str) -> "Identity":
        """
        Builds an unresolved identity straight from an allow-list entry.

        Args:
            entry: The raw allow-list entry (used verbatim as the id).
            external_id_type: The part of the entry before the first ':'.
            external_id: The part of the entry after the first ':'.
        """
        return cls(id=entry, external_id=external_id, external_id_type=external_id_type)


class AuthConfig(BaseModel):
    """
    The authentication configuration of the control plane.

    Replaced wholesale on every successful update or reload; never mutated in place.

    Attributes:
        provider (str): Name of a registered identity provider.
        enabled (bool): Whether authentication is switched on.
        access_mode (AccessMode): Access policy tag.
        allowed_identities (list[Identity]): Identities allowed to authenticate, in order.
        provider_config (dict[str, str]): Fields owned by the provider named in `provider`.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    provider: str = ""
    enabled: bool = False
    access_mode: AccessMode = AccessMode.UNRESTRICTED
    allowed_identities: list[Identity] = Field(default_factory=list)
    provider_config: dict[str, str] = Field(default_factory=dict)


class ProviderToken(BaseModel):
    """
    What a provider hands back after exchanging a code or revalidating an access token.

    Attributes:
        type (str): The token kind, chosen by the provider (e.g. "oauth2jwt").
        external_account_id (str): The caller's account id inside the provider.
        access_token (str): The provider access token.
        identities (list[Identity]): The caller's identity followed by its memberships.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: str
    external_account_id: str
    access_token: str
    identities: list[Identity] = Field(default_factory=list)
