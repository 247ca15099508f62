"""Tests for the shopickup command line."""

import os

import pytest
import yaml
from typer.testing import CliRunner

from shopickup import __version__
from shopickup.api.dependencies import CONFIG_PATH_ENV
from shopickup.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config_search(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "shopickup-test.yaml"
    path.write_text(yaml.safe_dump({"server": {"port": 9100, "log_level": "debug"}, "batch": {"max_concurrency": 3}}))
    return str(path)


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"Shopickup v{__version__}" in result.output


def test_config_validate(config_file):
    result = runner.invoke(app, ["config", "validate", "--config", config_file])
    assert result.exit_code == 0
    assert "Config is valid." in result.output
    assert "127.0.0.1:9100" in result.output
    assert "Max concurrency: 3" in result.output


def test_config_validate_rejects_bad_values(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"batch": {"max_concurrency": 0}}))
    result = runner.invoke(app, ["config", "validate", "-c", str(path)])
    assert result.exit_code == 1
    assert "Config validation failed" in result.output


def test_config_validate_missing_file(tmp_path):
    result = runner.invoke(app, ["config", "validate", "-c", str(tmp_path / "missing.yaml")])
    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_config_show(config_file):
    result = runner.invoke(app, ["config", "show", "-c", config_file])
    assert result.exit_code == 0
    assert "port: 9100" in result.output
    assert "log_level: debug" in result.output
    assert "max_concurrency: 3" in result.output
    assert "fetch_pickup_points" in result.output


def test_serve_passes_config_to_uvicorn(config_file, monkeypatch):
    calls = []
    monkeypatch.setattr("uvicorn.run", lambda target, **kwargs: calls.append((target, kwargs)))
    monkeypatch.setenv(CONFIG_PATH_ENV, "placeholder")

    result = runner.invoke(app, ["serve", "-c", config_file, "--host", "0.0.0.0"])

    assert result.exit_code == 0
    target, kwargs = calls[0]
    assert target == "shopickup.api.main:app"
    assert kwargs == {"host": "0.0.0.0", "port": 9100, "log_level": "debug", "reload": False}
    assert os.environ[CONFIG_PATH_ENV] == config_file
