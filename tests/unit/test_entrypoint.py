"""Unit tests for the `python -m dmv_assistant` runner."""

import pytest

from dmv_assistant import __main__ as entrypoint
from dmv_assistant.core.config import settings


@pytest.mark.unit
class TestEntrypoint:
    def test_main_serves_the_app_with_configured_bind(self, monkeypatch):
        calls = []
        monkeypatch.setattr(entrypoint.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
        monkeypatch.setattr(settings, "api_host", "0.0.0.0")
        monkeypatch.setattr(settings, "api_port", 9000)
        monkeypatch.setattr(settings, "log_level", "INFO")

        entrypoint.main()

        assert calls == [("dmv_assistant.main:app", {"host": "0.0.0.0", "port": 9000, "log_level": "info"})]
