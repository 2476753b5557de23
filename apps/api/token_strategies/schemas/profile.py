"""Canonical profile schema."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProfileName(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    family_name: str | None = Field(default=None, alias="familyName")
    given_name: str | None = Field(default=None, alias="givenName")


class ProfileValue(BaseModel):
    """Single email or photo descriptor."""

    value: str


class Profile(BaseModel):
    """Normalized identity record handed to the application's verify callback.

    Serializing with ``by_alias=True`` yields the conventional field names
    (``displayName``, ``_raw``, ``_json``...) used by passport-style hosts.
    """

    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(min_length=1)
    id: str = Field(min_length=1)
    username: str = ""
    display_name: str = Field(default="", alias="displayName")
    name: ProfileName | None = None
    emails: list[ProfileValue] = Field(default_factory=list)
    photos: list[ProfileValue] = Field(default_factory=list)
    email_verified: bool = Field(default=False, alias="emailVerified")
    is_private_email: bool = Field(default=False, alias="isPrivateEmail")
    raw: str = Field(default="", alias="_raw")
    parsed: Any = Field(default=None, alias="_json")

    def to_public_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
