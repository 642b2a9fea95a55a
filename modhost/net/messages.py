"""Sync protocol messages and their newline-delimited JSON codec."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from modhost.extensions.catalog import MAX_SYNC_NAME_LENGTH


class ProtocolError(Exception):
    """A frame could not be decoded into a known message."""


class PluginSync(BaseModel):
    """Full state, sent once per peer on connect: every shared extension -> enabled."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["plugin_sync"] = "plugin_sync"
    plugins: dict[str, bool] = Field(default_factory=dict)


class PluginEnable(BaseModel):
    """Delta, broadcast on every toggle on the authoritative side."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["plugin_enable"] = "plugin_enable"
    plugin: str = Field(min_length=1, max_length=MAX_SYNC_NAME_LENGTH)
    enabled: bool


SyncMessage = Annotated[Union[PluginSync, PluginEnable], Field(discriminator="kind")]

_adapter: TypeAdapter[PluginSync | PluginEnable] = TypeAdapter(SyncMessage)


def encode(message: PluginSync | PluginEnable) -> bytes:
    return message.model_dump_json().encode("utf-8") + b"\n"


def decode(frame: bytes | str) -> PluginSync | PluginEnable:
    if isinstance(frame, bytes):
        frame = frame.decode("utf-8", errors="replace")
    try:
        return _adapter.validate_json(frame.strip())
    except ValidationError as e:
        raise ProtocolError(f"invalid sync frame: {e}") from e
