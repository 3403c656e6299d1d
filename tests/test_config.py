import json

import pytest

from streamdeck_runtime.config import Info, load_config, parse_info
from streamdeck_runtime.errors import ConfigurationError

INFO = {
    "application": {"language": "en", "platform": "mac", "version": "6.4.0", "platformVersion": "14.1"},
    "plugin": {"uuid": "com.example.plugin", "version": "1.0.0"},
    "devicePixelRatio": 2,
    "colors": {"highlightColor": "#0078FFFF"},
    "devices": [{"id": "dev1", "name": "Stream Deck", "size": {"columns": 5, "rows": 3}, "type": 0}],
}


def argv(**overrides):
    values = {
        "-port": "28196",
        "-pluginUUID": "ABCD-1234",
        "-registerEvent": "registerPlugin",
        "-info": json.dumps(INFO),
    }
    values.update(overrides)
    out = []
    for flag, value in values.items():
        if value is not None:
            out.extend([flag, value])
    return out


def test_load_config_parses_host_arguments():
    cfg = load_config(argv(), env={})

    assert cfg.port == 28196
    assert cfg.plugin_uuid == "ABCD-1234"
    assert cfg.register_event == "registerPlugin"
    assert cfg.url == "ws://localhost:28196"
    assert cfg.info.application.platform == "mac"
    assert cfg.info.application.platform_version == "14.1"
    assert cfg.info.device_pixel_ratio == 2
    assert cfg.info.colors.highlight_color == "#0078FFFF"
    assert cfg.info.device("dev1").size.columns == 5
    assert cfg.info.device("missing") is None
    assert cfg.inbound_queue_size == cfg.outbound_queue_size == 256
    assert cfg.debug is False


@pytest.mark.parametrize("port", [None, "0"])
def test_missing_port(port):
    with pytest.raises(ConfigurationError, match="missing -port"):
        load_config(argv(**{"-port": port}), env={})


@pytest.mark.parametrize("port", ["abc", "70000", "-5"])
def test_invalid_port(port):
    with pytest.raises(ConfigurationError):
        load_config(["-port=" + port] + argv(**{"-port": None}), env={})


@pytest.mark.parametrize(
    "flag, message",
    [("-pluginUUID", "missing -pluginUUID"), ("-registerEvent", "missing -registerEvent")],
)
def test_missing_identity(flag, message):
    with pytest.raises(ConfigurationError, match=message):
        load_config(argv(**{flag: None}), env={})


@pytest.mark.parametrize("raw", [None, "", "{not json", "[1, 2]"])
def test_missing_or_invalid_info(raw):
    with pytest.raises(ConfigurationError, match="missing or invalid -info"):
        load_config(argv(**{"-info": raw}), env={})


def test_parse_info_ignores_unknown_fields():
    info = parse_info(json.dumps({"application": {"version": "6"}, "future": True}))
    assert isinstance(info, Info)
    assert info.application.version == "6"
    assert info.devices == []


def test_double_dash_flags_and_unknown_arguments():
    args = [
        "--port", "1234",
        "--pluginUUID", "u",
        "--registerEvent", "registerPlugin",
        "--info", "{}",
        "-someFutureFlag", "value",
    ]
    cfg = load_config(args, env={})
    assert cfg.port == 1234
    assert cfg.plugin_uuid == "u"


def test_environment_tunables():
    env = {
        "STREAMDECK_INBOUND_QUEUE_SIZE": "8",
        "STREAMDECK_OUTBOUND_QUEUE_SIZE": "16",
        "STREAMDECK_HOST": "127.0.0.1",
        "STREAMDECK_DEBUG": "yes",
    }
    cfg = load_config(argv(), env=env)
    assert cfg.inbound_queue_size == 8
    assert cfg.outbound_queue_size == 16
    assert cfg.url == "ws://127.0.0.1:28196"
    assert cfg.debug is True


def test_debug_flag_overrides_environment():
    cfg = load_config(argv() + ["--debug"], env={"STREAMDECK_DEBUG": "0"})
    assert cfg.debug is True


@pytest.mark.parametrize("value", ["many", "0"])
def test_invalid_queue_size(value):
    with pytest.raises(ConfigurationError):
        load_config(argv(), env={"STREAMDECK_OUTBOUND_QUEUE_SIZE": value})


def test_config_is_immutable():
    cfg = load_config(argv(), env={})
    with pytest.raises(Exception):
        cfg.port = 1
