"""Shared fixtures: keep tests away from the user's ~/.donorconnect files."""

from __future__ import annotations

import pytest

from donorconnect.config.settings import settings
from donorconnect.org.context import clear_current_org


@pytest.fixture(autouse=True)
def isolated_state_files(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "ORG_ID_FILE", tmp_path / "current_org")
    monkeypatch.setattr(settings, "SIMULATION_SETTINGS_FILE", tmp_path / "simulation_settings.json")
    clear_current_org()
    yield
    clear_current_org()
