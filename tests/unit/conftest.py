"""Pytest configuration and fixtures for salio tests."""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
import yaml

from salio.core.inventory import Snapshot
from tests.fakes import make_instance


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point SALIO_CONFIG at a missing file and clear AWS/salio env overrides.

    Notes
    -----
    Keeps an operator's ~/.salio.yaml or exported AWS_PROFILE from leaking
    into unit tests.
    """
    monkeypatch.setenv("SALIO_CONFIG", str(tmp_path / "missing.yaml"))
    for name in ("AWS_PROFILE", "AWS_REGION", "SALIO_DIAL_TIMEOUT", "SALIO_DEBUG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def aws_credentials() -> Generator[None, None, None]:
    """Fixture to set AWS credentials for testing with proper cleanup.

    Sets mock AWS credentials in environment variables for the duration of the test,
    then restores the original environment state.

    Yields
    ------
    None
        Control back to test after setting credentials
    """
    names = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_DEFAULT_REGION")
    original = {name: os.environ.get(name) for name in names}

    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

    yield

    for name, value in original.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a temporary config file path and point SALIO_CONFIG at it.

    Returns
    -------
    Path
        Path to temporary config file (not yet written)
    """
    config_path = tmp_path / "salio.yaml"
    monkeypatch.setenv("SALIO_CONFIG", str(config_path))
    return config_path


@pytest.fixture
def write_config(config_file: Path):
    """Helper fixture to write config data to file.

    Returns
    -------
    Callable[[dict[str, Any]], Path]
        Function writing a dict as YAML to the config file
    """

    def _write(data: dict[str, Any]) -> Path:
        config_file.write_text(yaml.safe_dump(data))
        return config_file

    return _write


@pytest.fixture
def web_snapshot() -> Snapshot:
    """Snapshot with two web instances, one web bastion and an api cluster.

    The api cluster has no bastion.
    """
    return Snapshot(
        [
            make_instance("i-web-a", "web.prod.a", private_ip="10.0.1.10"),
            make_instance("nat1", "web.prod.nat", role="nat", public_ip="203.0.113.10"),
            make_instance("i-web-b", "web.prod.b", private_ip="10.0.1.11"),
            make_instance("i-api-a", "api.prod.a", private_ip="10.0.2.10"),
        ]
    )
