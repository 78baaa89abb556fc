"""Shared pytest fixtures."""

import os
from unittest.mock import MagicMock

import pytest
import yaml

from formguard.config import clear_settings_cache
from formguard.forms.session import bind_session_id, reset_session_id


class FakeClock:
    """Settable stand-in for time.time."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture(autouse=True)
def clean_settings(tmp_path, monkeypatch):
    """Run each test against default settings, outside any real app.yaml."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("FORMGUARD_"):
            monkeypatch.delenv(key)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def temp_app_yaml(tmp_path):
    """Create a temporary app.yaml file in the working directory."""
    config_path = tmp_path / "app.yaml"

    def _create_config(config: dict):
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        clear_settings_cache()
        return config_path

    return _create_config


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bound_session():
    """Bind a session id into the request context for the duration of a test."""
    token = bind_session_id("ambient-session")
    yield "ambient-session"
    reset_session_id(token)


@pytest.fixture
def mock_request_factory():
    """Factory fixture that returns mock Litestar requests."""
    def _make(method="GET", form_data=None, query=None, path="/", query_string=""):
        request = MagicMock()
        request.method = method
        request.query_params = query or {}
        request.url.path = path
        request.url.query = query_string

        async def _form():
            return form_data or {}

        request.form = _form
        return request
    return _make
