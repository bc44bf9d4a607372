# jorup/models/settings.py
from __future__ import annotations

import logging
import tomllib
from typing import Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from jorup.models.channel import ChannelDescriptor, InvalidChannelString

logger = logging.getLogger(__name__)


class InvalidSettingsDocument(ValueError):
    """Settings document is not valid TOML or does not match the schema."""


# ============================================================
# SETTINGS MODEL (settings.toml)
# ============================================================
class JorupSettings(BaseModel):
    """
    Persisted user settings.

    Only one key exists today (`default`). Unknown keys are rejected so a
    document written by a newer jorup is never half-understood.
    """

    default: ChannelDescriptor = Field(default_factory=ChannelDescriptor.stable)

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        arbitrary_types_allowed=True,
    )

    @field_validator("default", mode="plain")
    @classmethod
    def validate_default(cls, v: Any) -> ChannelDescriptor:
        if isinstance(v, ChannelDescriptor):
            return v
        if not isinstance(v, str):
            raise ValueError("default channel must be a string")
        try:
            return ChannelDescriptor.parse(v)
        except InvalidChannelString as exc:
            raise ValueError(str(exc)) from exc

    @field_serializer("default")
    def serialize_default(self, v: ChannelDescriptor) -> str:
        return str(v)


def settings_from_toml(text: str) -> JorupSettings:
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise InvalidSettingsDocument(f"settings are not valid TOML: {exc}") from exc
    try:
        return JorupSettings.model_validate(raw)
    except ValidationError as exc:
        raise InvalidSettingsDocument(f"invalid settings: {exc}") from exc


def settings_to_toml(settings: JorupSettings) -> str:
    return tomli_w.dumps(settings.model_dump(mode="json"))
