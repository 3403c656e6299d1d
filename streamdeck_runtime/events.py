"""Event vocabulary and typed inbound event schemas.

Inbound messages are decoded in two steps: the ``event`` discriminator is
read first, then the ``payload`` object is validated against the schema
registered for that event in :data:`_PAYLOAD_SCHEMAS`. Events outside the
vocabulary keep their payload as a plain ``dict`` so newer hosts do not
break older plugins.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import DecodeError
from .jsonutil import JSONDecodeError, loads


class EventName(str, Enum):
    """Names of the events exchanged with the host."""

    # ─────────────────────────────
    # Received from the host
    # ─────────────────────────────
    DID_RECEIVE_SETTINGS = "didReceiveSettings"
    DID_RECEIVE_GLOBAL_SETTINGS = "didReceiveGlobalSettings"
    KEY_DOWN = "keyDown"
    KEY_UP = "keyUp"
    WILL_APPEAR = "willAppear"
    WILL_DISAPPEAR = "willDisappear"
    TITLE_PARAMETERS_DID_CHANGE = "titleParametersDidChange"
    DEVICE_DID_CONNECT = "deviceDidConnect"
    DEVICE_DID_DISCONNECT = "deviceDidDisconnect"
    APPLICATION_DID_LAUNCH = "applicationDidLaunch"
    APPLICATION_DID_TERMINATE = "applicationDidTerminate"
    SYSTEM_DID_WAKE_UP = "systemDidWakeUp"
    PROPERTY_INSPECTOR_DID_APPEAR = "propertyInspectorDidAppear"
    PROPERTY_INSPECTOR_DID_DISAPPEAR = "propertyInspectorDidDisappear"
    SEND_TO_PLUGIN = "sendToPlugin"

    # ─────────────────────────────
    # Sent to the host
    # ─────────────────────────────
    SET_SETTINGS = "setSettings"
    GET_SETTINGS = "getSettings"
    SET_GLOBAL_SETTINGS = "setGlobalSettings"
    GET_GLOBAL_SETTINGS = "getGlobalSettings"
    OPEN_URL = "openUrl"
    LOG_MESSAGE = "logMessage"
    SET_TITLE = "setTitle"
    SET_IMAGE = "setImage"
    SHOW_ALERT = "showAlert"
    SHOW_OK = "showOk"
    SET_STATE = "setState"
    SWITCH_TO_PROFILE = "switchToProfile"
    SEND_TO_PROPERTY_INSPECTOR = "sendToPropertyInspector"

    def __str__(self) -> str:
        return self.value


class DeviceType(IntEnum):
    STREAM_DECK = 0
    STREAM_DECK_MINI = 1
    STREAM_DECK_XL = 2
    STREAM_DECK_MOBILE = 3
    CORSAIR_G_KEYS = 4


class Target(IntEnum):
    """Where a title or image is displayed."""

    HARDWARE_AND_SOFTWARE = 0
    HARDWARE = 1
    SOFTWARE = 2


class _Schema(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Coordinates(_Schema):
    column: int = 0
    row: int = 0


class DeviceSize(_Schema):
    columns: int = 0
    rows: int = 0


class DeviceInfo(_Schema):
    """Describes a device; sent with ``deviceDidConnect``."""

    name: str = ""
    # Kept as ``int`` so unknown hardware types still decode.
    type: int = DeviceType.STREAM_DECK
    size: DeviceSize = Field(default_factory=DeviceSize)


class TitleParameters(_Schema):
    font_family: str = Field("", alias="fontFamily")
    font_size: int = Field(0, alias="fontSize")
    font_style: str = Field("", alias="fontStyle")
    font_underline: bool = Field(False, alias="fontUnderline")
    show_title: bool = Field(False, alias="showTitle")
    title_alignment: str = Field("", alias="titleAlignment")
    title_color: str = Field("", alias="titleColor")


# ─────────────────────────────
# Inbound payload variants
# ─────────────────────────────


class ActionPayload(_Schema):
    """Payload of key and appearance events for one action instance."""

    settings: Dict[str, Any] = Field(default_factory=dict)
    coordinates: Coordinates = Field(default_factory=Coordinates)
    # Only set when the action defines several states.
    state: Optional[int] = None
    is_in_multi_action: bool = Field(False, alias="isInMultiAction")
    user_desired_state: Optional[int] = Field(None, alias="userDesiredState")


class TitleParametersPayload(ActionPayload):
    title: str = ""
    title_parameters: TitleParameters = Field(
        default_factory=TitleParameters, alias="titleParameters"
    )


class GlobalSettingsPayload(_Schema):
    settings: Dict[str, Any] = Field(default_factory=dict)


class ApplicationPayload(_Schema):
    application: str = ""


class SendToPluginPayload(_Schema):
    """Arbitrary JSON object sent by the property inspector."""

    model_config = ConfigDict(frozen=True, extra="allow")

    @property
    def data(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


InboundPayload = Union[
    ActionPayload,
    TitleParametersPayload,
    GlobalSettingsPayload,
    ApplicationPayload,
    SendToPluginPayload,
    Dict[str, Any],
    None,
]


# ─────────────────────────────
# Event → payload schema registry
# ─────────────────────────────

_PAYLOAD_SCHEMAS: Dict[str, Optional[Type[_Schema]]] = {
    EventName.KEY_DOWN.value: ActionPayload,
    EventName.KEY_UP.value: ActionPayload,
    EventName.WILL_APPEAR.value: ActionPayload,
    EventName.WILL_DISAPPEAR.value: ActionPayload,
    EventName.DID_RECEIVE_SETTINGS.value: ActionPayload,
    EventName.TITLE_PARAMETERS_DID_CHANGE.value: TitleParametersPayload,
    EventName.DID_RECEIVE_GLOBAL_SETTINGS.value: GlobalSettingsPayload,
    EventName.APPLICATION_DID_LAUNCH.value: ApplicationPayload,
    EventName.APPLICATION_DID_TERMINATE.value: ApplicationPayload,
    EventName.SEND_TO_PLUGIN.value: SendToPluginPayload,
    # no payload
    EventName.DEVICE_DID_CONNECT.value: None,
    EventName.DEVICE_DID_DISCONNECT.value: None,
    EventName.SYSTEM_DID_WAKE_UP.value: None,
    EventName.PROPERTY_INSPECTOR_DID_APPEAR.value: None,
    EventName.PROPERTY_INSPECTOR_DID_DISAPPEAR.value: None,
}


def payload_schema(event: str) -> Optional[Type[_Schema]]:
    """Return the payload schema registered for ``event`` or ``None``."""
    return _PAYLOAD_SCHEMAS.get(str(event))


def is_known_event(event: str) -> bool:
    return str(event) in _PAYLOAD_SCHEMAS


class InboundEvent(_Schema):
    """An immutable event received from the host."""

    # The action's unique identifier; tells multi-action plugins which
    # action was triggered.
    action: str = ""
    event: str
    # Opaque value identifying the action instance.
    context: str = ""
    # Opaque value identifying the device.
    device: str = ""
    device_info: Optional[DeviceInfo] = Field(None, alias="deviceInfo")
    payload: Any = None

    @field_validator("action", "context", "device", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def name(self) -> EventName | str:
        """The discriminator as an :class:`EventName` when it is known."""
        try:
            return EventName(self.event)
        except ValueError:
            return self.event


def _decode_payload(event: str, raw: Any) -> InboundPayload:
    if event not in _PAYLOAD_SCHEMAS:
        if raw is None:
            return None
        if not isinstance(raw, dict):
            raise DecodeError(f"payload for {event} must be an object")
        return dict(raw)
    schema = _PAYLOAD_SCHEMAS[event]
    if schema is None or raw is None:
        return None if schema is None else schema()
    if not isinstance(raw, dict):
        raise DecodeError(f"payload for {event} must be an object")
    try:
        return schema.model_validate(raw)
    except ValidationError as exc:
        raise DecodeError(f"invalid payload for {event}: {exc}") from exc


def decode_event(data: Any) -> InboundEvent:
    """Decode one raw WebSocket message into an :class:`InboundEvent`.

    ``data`` may be text, bytes or an already parsed ``dict``. Raises
    :class:`~streamdeck_runtime.errors.DecodeError` when the message is not
    a JSON object, lacks an ``event`` field, or its payload does not match
    the schema for that event.
    """
    if isinstance(data, (str, bytes, bytearray, memoryview)):
        try:
            data = loads(data)
        except JSONDecodeError as exc:
            raise DecodeError(f"malformed JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DecodeError("message must be a JSON object")

    event = data.get("event")
    if not isinstance(event, str) or not event:
        raise DecodeError("message has no event name")

    payload = _decode_payload(event, data.get("payload"))
    fields = {k: v for k, v in data.items() if k != "payload"}
    try:
        return InboundEvent.model_validate({**fields, "payload": payload})
    except ValidationError as exc:
        raise DecodeError(f"invalid {event} message: {exc}") from exc


__all__ = [
    "EventName",
    "DeviceType",
    "Target",
    "Coordinates",
    "DeviceSize",
    "DeviceInfo",
    "TitleParameters",
    "ActionPayload",
    "TitleParametersPayload",
    "GlobalSettingsPayload",
    "ApplicationPayload",
    "SendToPluginPayload",
    "InboundPayload",
    "InboundEvent",
    "payload_schema",
    "is_known_event",
    "decode_event",
]
