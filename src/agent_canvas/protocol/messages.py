from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, TypeAlias, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .constants import BOOTSTRAP_SIZE_KEY


class MalformedCommandError(ValueError):
    """Inbound message that cannot be turned into a command; always dropped."""


class WireModel(BaseModel):
    # camelCase on the wire, snake_case in Python. Unknown keys are kept in
    # `model_extra` so producers can add fields without breaking older peers.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OpenPayload(WireModel):
    """
    Base for command payloads.

    Payloads are an open bag: a known field whose value has an unexpected
    shape (e.g. `animation: "fadeIn"`, `zIndex: 1.5`) is not an error. The
    raw value is moved into `model_extra` under its wire key and the typed
    field keeps its default, so the command still applies and forwards.
    """

    @model_validator(mode="wrap")
    @classmethod
    def _keep_unreadable_fields(cls, data: Any, handler: Any) -> Any:
        try:
            return handler(data)
        except ValidationError as e:
            if not isinstance(data, dict):
                raise
            # wire key or python name -> field name
            keys: dict[str, str] = {}
            for name, info in cls.model_fields.items():
                keys[name] = name
                keys[info.alias or name] = name
            bad = {keys.get(str(err["loc"][0]), str(err["loc"][0])) for err in e.errors() if err["loc"]}
            kept = {k: v for k, v in data.items() if keys.get(k, k) not in bad}
            unreadable = {k: v for k, v in data.items() if keys.get(k, k) in bad}
            model = handler(kept)
            model.__pydantic_extra__.update(unreadable)
            return model


class Position(OpenPayload):
    x: float = 0.0
    y: float = 0.0
    z: Optional[float] = None


class Size(OpenPayload):
    width: float = 100.0
    height: float = 100.0
    depth: Optional[float] = None


class Vector3(OpenPayload):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Animation(OpenPayload):
    type: Optional[str] = None
    duration: Optional[float] = None


class ElementPayload(OpenPayload):
    """Payload of addElement / updateElement. Every field is optional."""

    element_type: Optional[str] = None
    content: Any = None
    url: Optional[str] = None
    model_url: Optional[str] = None
    position: Optional[Position] = None
    size: Optional[Size] = None
    rotation: Optional[Vector3] = None
    scale: Optional[Vector3] = None
    styles: Optional[dict[str, Any]] = None
    opacity: Optional[float] = None
    animation: Optional[Animation] = None
    autoplay: Optional[bool] = None
    loop: Optional[bool] = None
    controls: Optional[bool] = None
    is_interactive: Optional[bool] = None
    is_visible: Optional[bool] = None
    agent_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    z_index: Optional[int] = None


class EmptyPayload(OpenPayload):
    pass


class ScriptPayload(OpenPayload):
    element_type: str = "drawing"
    script_code: str = ""
    is_persistent: bool = False


class FocusPayload(OpenPayload):
    focus_type: Optional[str] = None
    target_position: Optional[Vector3] = None
    animation_duration: Optional[float] = None


class _CommandBase(WireModel):
    model_config = ConfigDict(frozen=True)

    element_id: Annotated[str, Field(min_length=1)]
    timestamp: Optional[str] = None

    @field_validator("payload", mode="before", check_fields=False)
    @classmethod
    def _payload_object(cls, value: Any) -> Any:
        # null or non-object payloads count as empty; only the envelope is a hard contract
        if isinstance(value, (dict, BaseModel)):
            return value
        return {}

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def dumps(self) -> str:
        return json.dumps(self.to_wire(), separators=(",", ":"), ensure_ascii=False)


class AddElement(_CommandBase):
    command_type: Literal["addElement"]
    payload: ElementPayload = Field(default_factory=ElementPayload)


class UpdateElement(_CommandBase):
    command_type: Literal["updateElement"]
    payload: ElementPayload = Field(default_factory=ElementPayload)


class RemoveElement(_CommandBase):
    command_type: Literal["removeElement"]
    payload: EmptyPayload = Field(default_factory=EmptyPayload)


class ExecuteScript(_CommandBase):
    command_type: Literal["executeScript"]
    payload: ScriptPayload = Field(default_factory=ScriptPayload)


class ClearCanvas(_CommandBase):
    command_type: Literal["clearCanvas"]
    payload: EmptyPayload = Field(default_factory=EmptyPayload)


class Set3DFocus(_CommandBase):
    command_type: Literal["set3DFocus"]
    payload: FocusPayload = Field(default_factory=FocusPayload)


Command: TypeAlias = Annotated[
    Union[AddElement, UpdateElement, RemoveElement, ExecuteScript, ClearCanvas, Set3DFocus],
    Field(discriminator="command_type"),
]

# Commands that touch the element store (everything except executeScript).
StoreCommand: TypeAlias = Union[AddElement, UpdateElement, RemoveElement, ClearCanvas, Set3DFocus]

_COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)


def parse_command(raw: str | bytes | dict) -> Command:
    """
    Decode and validate one wire message.

    Only the envelope is a hard contract: commandType must be known and
    elementId present and non-empty. Payload fields are optional; extra
    payload fields are preserved.
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            obj = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedCommandError(f"invalid JSON: {e}") from e
    else:
        obj = raw
    if not isinstance(obj, dict):
        raise MalformedCommandError(f"expected a JSON object, got {type(obj).__name__}")
    if not obj.get("commandType"):
        raise MalformedCommandError("missing commandType")
    try:
        return _COMMAND_ADAPTER.validate_python(obj)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise MalformedCommandError(f"{loc or 'command'}: {first.get('msg')}") from e


def bootstrap_size(command: Command) -> int | None:
    """Number of snapshot commands announced by a relay bootstrap clear, if any."""
    if not isinstance(command, ClearCanvas):
        return None
    size = (command.payload.model_extra or {}).get(BOOTSTRAP_SIZE_KEY)
    if isinstance(size, int) and not isinstance(size, bool) and size >= 0:
        return size
    return None
