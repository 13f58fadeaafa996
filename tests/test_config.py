import pytest

from tellolink.config import TelloConfig, configure, load_config


def test_defaults_match_sdk_ports():
    cfg = TelloConfig()
    assert cfg.command_address == ("192.168.10.1", 8889)
    assert cfg.response_address == ("0.0.0.0", 8889)
    assert cfg.state_address == ("0.0.0.0", 8890)
    assert cfg.video_address == ("0.0.0.0", 11111)
    assert cfg.default_timeout == 5.0
    assert cfg.movement_timeout == 60.0
    assert cfg.maneuver_timeout == 20.0


def test_configure_overrides_and_keeps_base():
    base = TelloConfig()
    cfg = configure(base, drone_ip="10.0.0.2", video_enabled=False)
    assert cfg.drone_ip == "10.0.0.2"
    assert cfg.video_enabled is False
    assert base.drone_ip == "192.168.10.1"


def test_configure_rejects_unknown_key():
    with pytest.raises(TypeError):
        configure(nope=1)


def test_load_config_missing_file_returns_defaults(tmp_path):
    assert load_config(tmp_path / "missing.ini") == TelloConfig()


def test_load_config_reads_section(tmp_path):
    path = tmp_path / "tello.ini"
    path.write_text(
        "[tello]\n"
        "drone_ip = 192.168.10.7\n"
        "state_port = 9890\n"
        "video_enabled = no\n"
        "default_timeout = 2.5\n"
    )
    cfg = load_config(path)
    assert cfg.drone_ip == "192.168.10.7"
    assert cfg.state_port == 9890
    assert cfg.video_enabled is False
    assert cfg.default_timeout == 2.5
    assert cfg.command_port == 8889


def test_load_config_rejects_bad_value(tmp_path):
    path = tmp_path / "tello.ini"
    path.write_text("[tello]\nstate_port = abc\n")
    with pytest.raises(ValueError, match="state_port"):
        load_config(path)
