import dataclasses

import pytest

from camlink.config import ClientConfig, DeviceConfig


def test_defaults_point_at_soft_ap():
    config = DeviceConfig()
    assert config.address == "192.168.4.1"
    assert config.port == 80
    assert config.stream_path == "/stream"
    assert config.stream_url == "http://192.168.4.1:80/stream"


def test_urls_derive_from_address_and_port():
    config = DeviceConfig(address="10.0.0.5", port=8080, stream_path="/mjpeg/1")
    assert config.base_url == "http://10.0.0.5:8080"
    assert config.url_for("/capture") == "http://10.0.0.5:8080/capture"
    assert config.stream_url == "http://10.0.0.5:8080/mjpeg/1"


def test_config_is_immutable():
    config = DeviceConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.port = 81


def test_merged_ignores_none_and_keeps_original():
    config = DeviceConfig(address="10.0.0.5")
    merged = config.merged(port=8080, address=None)
    assert merged.address == "10.0.0.5"
    assert merged.port == 8080
    assert config.port == 80


def test_merged_rejects_unknown_field():
    with pytest.raises(ValueError, match="Unknown config field"):
        DeviceConfig().merged(ip="10.0.0.5")


@pytest.mark.parametrize("port", [0, 65536, -1])
def test_port_out_of_range(port):
    with pytest.raises(ValueError, match="between 1 and 65535"):
        DeviceConfig(port=port)


def test_port_must_be_int():
    with pytest.raises(ValueError, match="integer"):
        DeviceConfig(port="80")


def test_empty_address_rejected():
    with pytest.raises(ValueError, match="address"):
        DeviceConfig(address="  ")


def test_stream_path_needs_leading_slash():
    with pytest.raises(ValueError, match="stream_path"):
        DeviceConfig(stream_path="stream")


def test_client_config_uses_protocol_timeouts():
    config = ClientConfig()
    assert config.probe_timeout == 5.0
    assert config.command_timeout == 3.0
    assert config.capture_timeout == 10.0
    assert config.scan_timeout == 2.0
    assert config.scan_candidates[0] == "192.168.4.1"
    assert len(config.scan_candidates) == 4
    assert all(isinstance(address, str) for address in config.scan_candidates)
