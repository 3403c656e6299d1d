import json

import pytest

from streamdeck_runtime import commands
from streamdeck_runtime.events import Target


def test_register_message():
    event = commands.register("registerPlugin", "uuid-1")
    assert json.loads(event.encode()) == {"event": "registerPlugin", "uuid": "uuid-1"}


@pytest.mark.parametrize(
    "event, expected",
    [
        (commands.show_alert("c1"), {"event": "showAlert", "context": "c1"}),
        (commands.show_ok("c1"), {"event": "showOk", "context": "c1"}),
        (commands.get_settings("c1"), {"event": "getSettings", "context": "c1"}),
        (
            commands.open_url("https://example.com"),
            {"event": "openUrl", "payload": {"url": "https://example.com"}},
        ),
        (
            commands.log_message("hello"),
            {"event": "logMessage", "payload": {"message": "hello"}},
        ),
    ],
)
def test_simple_commands(event, expected):
    assert event.to_dict() == expected
    assert json.loads(event.encode()) == expected


def test_set_title_omits_unset_fields():
    event = commands.set_title("c1", None)
    assert event.to_dict() == {"event": "setTitle", "context": "c1", "payload": {"target": 0}}

    event = commands.set_title("c1", "Go", Target.HARDWARE, state=1)
    assert event.to_dict()["payload"] == {"title": "Go", "target": 1, "state": 1}


def test_set_image_payload():
    event = commands.set_image("c1", "data:image/png;base64,AAAA", Target.SOFTWARE)
    assert event.to_dict()["payload"] == {"image": "data:image/png;base64,AAAA", "target": 2}


def test_set_state_keeps_zero():
    assert commands.set_state("c1", 0).to_dict() == {
        "event": "setState",
        "context": "c1",
        "payload": {"state": 0},
    }


def test_set_state_rejects_negative():
    with pytest.raises(ValueError):
        commands.set_state("c1", -1)


def test_settings_payload_is_copied_verbatim():
    settings = {"url": "https://example.com", "nested": {"a": [1, 2]}}
    event = commands.set_settings("c1", settings)
    settings["url"] = "changed"

    assert event.to_dict() == {
        "event": "setSettings",
        "context": "c1",
        "payload": {"url": "https://example.com", "nested": {"a": [1, 2]}},
    }


def test_plugin_scoped_commands_use_uuid_as_context():
    assert commands.get_global_settings("uuid-1").to_dict() == {
        "event": "getGlobalSettings",
        "context": "uuid-1",
    }
    assert commands.switch_to_profile("uuid-1", "dev1", "Default").to_dict() == {
        "event": "switchToProfile",
        "context": "uuid-1",
        "device": "dev1",
        "payload": {"profile": "Default"},
    }


def test_send_to_property_inspector():
    event = commands.send_to_property_inspector("com.example.a", "c1", {"ok": True})
    assert event.to_dict() == {
        "event": "sendToPropertyInspector",
        "action": "com.example.a",
        "context": "c1",
        "payload": {"ok": True},
    }
