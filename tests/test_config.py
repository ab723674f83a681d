import os

import pytest

from sg_ip_updater import config as config_mod
from sg_ip_updater.config import Config, check_prerequisites, resolve_config
from sg_ip_updater.errors import ConfigurationError, PrerequisiteMissingError


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv(config_mod.STORAGE_ENV, raising=False)
    monkeypatch.delenv(config_mod.GRABBER_ENV, raising=False)
    return tmp_path


def test_defaults(home):
    config = resolve_config(groups=["web-sg"])
    assert config.groups == ("web-sg",)
    assert config.port == 22
    assert config.protocol == "tcp"
    assert config.storage == os.path.join(str(home), ".aws", "lastip")
    assert config.grabber_url == "http://icanhazip.com"
    assert config.backend == "cli"
    assert not config.dry_run


def test_single_group_string():
    assert resolve_config(groups="web-sg").groups == ("web-sg",)


def test_port_string_is_converted():
    assert resolve_config(groups=["a"], port="8080").port == 8080


def test_config_is_frozen():
    config = resolve_config(groups=["a"])
    with pytest.raises(Exception):
        config.port = 80
    assert isinstance(config, Config)


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"groups": []}, "No security group provided"),
        ({"groups": None}, "No security group provided"),
        ({"groups": ["a"], "port": ""}, "No port provided"),
        ({"groups": ["a"], "port": "ssh"}, "Port must be an integer"),
        ({"groups": ["a"], "port": -1}, "Port must be an integer"),
        ({"groups": ["a"], "protocol": "sctp"}, "Protocol must be one of the following: tcp, udp, icmp"),
        ({"groups": ["a"], "grabber_url": ""}, "No IP grabber URL provided"),
        ({"groups": ["a"], "backend": "sdk"}, "Backend must be one of the following"),
        ({"groups": ["a"], "timeout": 0}, "Timeout must be a positive number"),
    ],
)
def test_invalid(kwargs, message):
    with pytest.raises(ConfigurationError) as exc:
        resolve_config(**kwargs)
    assert message in exc.value.message


def test_environment_fallbacks(monkeypatch, tmp_path):
    monkeypatch.setenv(config_mod.STORAGE_ENV, str(tmp_path / "ip"))
    monkeypatch.setenv(config_mod.GRABBER_ENV, "http://ip.test")
    config = resolve_config(groups=["a"])
    assert config.storage == str(tmp_path / "ip")
    assert config.grabber_url == "http://ip.test"


def test_explicit_beats_environment(monkeypatch, tmp_path):
    monkeypatch.setenv(config_mod.GRABBER_ENV, "http://ip.test")
    config = resolve_config(groups=["a"], grabber_url="http://other.test", storage=str(tmp_path / "x"))
    assert config.grabber_url == "http://other.test"
    assert config.storage == str(tmp_path / "x")


def test_missing_aws_dir(home):
    with pytest.raises(PrerequisiteMissingError, match="directory is missing"):
        check_prerequisites(resolve_config(groups=["a"]))


def test_missing_aws_executable(home, monkeypatch):
    (home / ".aws").mkdir()
    monkeypatch.setattr(config_mod.shutil, "which", lambda name: None)
    with pytest.raises(PrerequisiteMissingError, match="'aws' executable"):
        check_prerequisites(resolve_config(groups=["a"]))


def test_boto3_backend_does_not_need_aws_executable(home, monkeypatch):
    (home / ".aws").mkdir()
    monkeypatch.setattr(config_mod.shutil, "which", lambda name: None)
    check_prerequisites(resolve_config(groups=["a"], backend="boto3"))


def test_prerequisites_ok(home, monkeypatch):
    (home / ".aws").mkdir()
    monkeypatch.setattr(config_mod.shutil, "which", lambda name: "/usr/bin/aws")
    check_prerequisites(resolve_config(groups=["a"]))
