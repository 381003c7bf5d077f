"""Shared validation helpers for settings and configuration entries."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

from shared.errors import InvalidConfigEntry

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

CONFIG_KEY_MAX_LENGTH = 255
CONFIG_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

DESCRIPTION_MAX_LENGTH = 1000

GAME_NAME_MAX_LENGTH = 255


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a string list from an environment variable or config value.

    Accepts a list (returned as-is), a JSON array string ('["a","b"]'),
    or a comma-separated string ('a,b'). Raises ValueError for malformed
    JSON and, unless allow_empty is set, for empty results.
    """
    if isinstance(value, list):
        items = value
    else:
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON array: {e}") from e
            if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
                raise ValueError("JSON value must be an array of strings")
            items = parsed
        else:
            items = [part.strip() for part in stripped.split(",") if part.strip()]

    if not allow_empty and not items:
        raise ValueError("String list value must not be empty")
    return items


def validate_config_key(key: object) -> str:
    """Return key unchanged if it is a valid configuration key."""
    if not isinstance(key, str) or not key:
        raise InvalidConfigEntry("Configuration key is required")
    if len(key) > CONFIG_KEY_MAX_LENGTH:
        raise InvalidConfigEntry(f"Configuration key must be at most {CONFIG_KEY_MAX_LENGTH} characters")
    if not CONFIG_KEY_PATTERN.fullmatch(key):
        raise InvalidConfigEntry("Configuration key may contain only letters, digits, '.', '_' and '-'")
    return key


def _utf8_length(text: str, field: str) -> int:
    """Byte length of text in UTF-8; lone surrogates cannot be stored."""
    try:
        return len(text.encode("utf-8"))
    except UnicodeEncodeError as exc:
        raise InvalidConfigEntry(f"{field} must be valid Unicode text") from exc


def validate_config_value(value: str, *, max_bytes: int) -> str:
    """Reject values that are not valid text or whose UTF-8 encoding exceeds max_bytes."""
    if _utf8_length(value, "Configuration value") > max_bytes:
        raise InvalidConfigEntry(f"Configuration value must not exceed {max_bytes} bytes")
    return value


def validate_description(description: str | None) -> str | None:
    """Blank descriptions are stored as NULL, which is how an admin clears one."""
    if description is None or not description.strip():
        return None
    _utf8_length(description, "Description")
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise InvalidConfigEntry(f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters")
    return description


def validate_game_name(name: object) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidConfigEntry("Game name is required")
    name = name.strip()
    _utf8_length(name, "Game name")
    if len(name) > GAME_NAME_MAX_LENGTH:
        raise InvalidConfigEntry(f"Game name must be at most {GAME_NAME_MAX_LENGTH} characters")
    return name


_STRING_LIST_FIELDS = {"cors_origins"}


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env settings source that passes string-list fields as raw strings to validators.

    pydantic-settings tries to JSON-decode list-typed fields from env vars before
    validators run. This subclass bypasses that for string-list fields so the
    parse_string_list validator handles both JSON and CSV formats.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in _STRING_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
