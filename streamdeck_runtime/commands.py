"""Outbound events and builders for every command the host understands.

Each builder is a pure function returning an :class:`OutboundEvent`; the
engine's convenience methods build and enqueue in one step.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .events import EventName, Target
from .jsonutil import dumps


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class UrlPayload(_Payload):
    url: str


class LogMessagePayload(_Payload):
    message: str


class TitlePayload(_Payload):
    # ``None`` resets the title to the one set by the user.
    title: Optional[str] = None
    target: Target = Target.HARDWARE_AND_SOFTWARE
    # ``None`` applies the title to all states.
    state: Optional[int] = None


class ImagePayload(_Payload):
    # Base64 data URI or SVG; ``None`` restores the manifest image.
    image: Optional[str] = None
    target: Target = Target.HARDWARE_AND_SOFTWARE
    state: Optional[int] = None


class StatePayload(_Payload):
    state: int = Field(ge=0)


class ProfilePayload(_Payload):
    profile: str


OutboundPayload = Union[
    UrlPayload,
    LogMessagePayload,
    TitlePayload,
    ImagePayload,
    StatePayload,
    ProfilePayload,
    Dict[str, Any],
]


class OutboundEvent(BaseModel):
    """An immutable event sent to the host."""

    model_config = ConfigDict(frozen=True)

    event: str
    action: Optional[str] = None
    # Only used by the registration message.
    uuid: Optional[str] = None
    context: Optional[str] = None
    device: Optional[str] = None
    # One of the payload models above or a free-form JSON object.
    payload: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the wire representation with absent fields omitted."""
        data: Dict[str, Any] = {"event": str(self.event)}
        for key in ("action", "uuid", "context", "device"):
            value = getattr(self, key)
            if value:
                data[key] = value
        payload = self.payload
        if isinstance(payload, BaseModel):
            data["payload"] = payload.model_dump(mode="json", exclude_none=True)
        elif payload is not None:
            data["payload"] = dict(payload)
        return data

    def encode(self) -> str:
        return dumps(self.to_dict())


def register(event: str, uuid: str) -> OutboundEvent:
    return OutboundEvent(event=event, uuid=uuid)


def show_alert(context: str) -> OutboundEvent:
    """Temporarily show an alert icon on the action with ``context``."""
    return OutboundEvent(event=EventName.SHOW_ALERT, context=context)


def show_ok(context: str) -> OutboundEvent:
    """Temporarily show an OK checkmark on the action with ``context``."""
    return OutboundEvent(event=EventName.SHOW_OK, context=context)


def open_url(url: str) -> OutboundEvent:
    return OutboundEvent(event=EventName.OPEN_URL, payload=UrlPayload(url=url))


def log_message(message: str) -> OutboundEvent:
    """Write ``message`` to the host's plugin log file."""
    return OutboundEvent(
        event=EventName.LOG_MESSAGE, payload=LogMessagePayload(message=message)
    )


def set_title(
    context: str,
    title: Optional[str],
    target: Target = Target.HARDWARE_AND_SOFTWARE,
    state: Optional[int] = None,
) -> OutboundEvent:
    return OutboundEvent(
        event=EventName.SET_TITLE,
        context=context,
        payload=TitlePayload(title=title, target=target, state=state),
    )


def set_image(
    context: str,
    image: Optional[str],
    target: Target = Target.HARDWARE_AND_SOFTWARE,
    state: Optional[int] = None,
) -> OutboundEvent:
    return OutboundEvent(
        event=EventName.SET_IMAGE,
        context=context,
        payload=ImagePayload(image=image, target=target, state=state),
    )


def set_state(context: str, state: int) -> OutboundEvent:
    """Switch an action with several states to ``state`` (0-based)."""
    return OutboundEvent(
        event=EventName.SET_STATE, context=context, payload=StatePayload(state=state)
    )


def set_settings(context: str, settings: Mapping[str, Any]) -> OutboundEvent:
    """Persist ``settings`` for the action instance ``context``."""
    return OutboundEvent(
        event=EventName.SET_SETTINGS, context=context, payload=dict(settings)
    )


def get_settings(context: str) -> OutboundEvent:
    return OutboundEvent(event=EventName.GET_SETTINGS, context=context)


def set_global_settings(uuid: str, settings: Mapping[str, Any]) -> OutboundEvent:
    """Persist plugin-wide ``settings``; ``uuid`` is the plugin UUID."""
    return OutboundEvent(
        event=EventName.SET_GLOBAL_SETTINGS, context=uuid, payload=dict(settings)
    )


def get_global_settings(uuid: str) -> OutboundEvent:
    return OutboundEvent(event=EventName.GET_GLOBAL_SETTINGS, context=uuid)


def switch_to_profile(uuid: str, device: str, profile: str) -> OutboundEvent:
    """Switch ``device`` to one of the plugin's read-only profiles."""
    return OutboundEvent(
        event=EventName.SWITCH_TO_PROFILE,
        context=uuid,
        device=device,
        payload=ProfilePayload(profile=profile),
    )


def send_to_property_inspector(
    action: str, context: str, payload: Mapping[str, Any]
) -> OutboundEvent:
    return OutboundEvent(
        event=EventName.SEND_TO_PROPERTY_INSPECTOR,
        action=action,
        context=context,
        payload=dict(payload),
    )


__all__ = [
    "UrlPayload",
    "LogMessagePayload",
    "TitlePayload",
    "ImagePayload",
    "StatePayload",
    "ProfilePayload",
    "OutboundPayload",
    "OutboundEvent",
    "register",
    "show_alert",
    "show_ok",
    "open_url",
    "log_message",
    "set_title",
    "set_image",
    "set_state",
    "set_settings",
    "get_settings",
    "set_global_settings",
    "get_global_settings",
    "switch_to_profile",
    "send_to_property_inspector",
]
