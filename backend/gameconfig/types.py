"""Request bodies accepted by the admin API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# JSON values an entry may hold. null is rejected: it cannot be told apart
# from "field omitted" on partial updates.
ConfigValue = str | bool | int | float | list[Any] | dict[str, Any]


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class CreateGameRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str


class UpdateGameRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    active: bool = Field(strict=True)


class CreateConfigRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str
    value: ConfigValue
    description: str | None = None
    active: bool = Field(default=True, strict=True)


class UpdateConfigRequest(BaseModel):
    """Partial update: omitted fields keep their stored value.

    An empty or blank ``description`` clears it.
    """

    model_config = ConfigDict(extra="forbid")

    key: str | None = None
    value: ConfigValue | None = None
    description: str | None = None
    active: bool | None = Field(default=None, strict=True)
