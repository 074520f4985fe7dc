"""Tests for the DonorConnect CLI.

Tests cover:
- Main app options (--help, --version)
- status
- simulate commands (start, pause, stop, stats, generate, quick)
- settings commands (show, set, reset)
- org commands (show, set)
"""

from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from donorconnect import __version__
from donorconnect.cli import app
from donorconnect.config.settings import Settings, settings
from donorconnect.config.simulation_settings import load_simulation_settings
from donorconnect.org import load_persisted_org
from donorconnect.provider import AIProvider
from donorconnect.rpc import AIDataClient


# ===========================================================================
# Fixtures
# ===========================================================================


class Endpoint:
    def __init__(self) -> None:
        self.replies = {
            "aiInitialize": {"success": True, "data": {"summary": {"totalDonors": 3}}},
            "organizationActivity": {"success": True, "data": [
                {"id": "a1", "type": "donation", "donorName": "Ava Lee", "amount": 75},
            ]},
            "startSimulation": {"success": True, "data": {"simulationId": "s1", "donorCount": 9}},
            "getSimulationStats": {"success": True, "data": {"activeDonors": 9, "totalActivities": 4}},
            "generateFakeDonorData": {"success": True, "data": {"donors": [
                {"id": "g1", "firstName": "Noah", "lastName": "Brown", "email": "n@example.org"},
            ]}},
            "quickSimulate": {"success": True, "data": [{"type": "donation", "amount": 10, "id": "q1"}]},
        }
        self.sent: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/donors/bulk":
            return httpx.Response(200, json={"success": True})
        if request.method == "POST":
            body = json.loads(request.content)
        else:
            body = {"method": request.url.params["method"], "params": dict(request.url.params)}
        self.sent.append(body)
        reply = self.replies.get(body["method"], {"success": True, "data": {}})
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint()


@pytest.fixture
def fake_provider(endpoint, tmp_path):
    def build(config=None, *, org_id=None):
        client = AIDataClient(
            "http://dash.test", org_id=org_id, transport=httpx.MockTransport(endpoint)
        )
        return AIProvider(
            client,
            org_id=org_id,
            config=Settings(SIMULATION_SETTINGS_FILE=tmp_path / "sim.json", ACTIVITY_POLL_INTERVAL=3600),
        )

    with patch("donorconnect.cli.AIProvider.from_settings", side_effect=build) as mock:
        yield mock


# ===========================================================================
# Main app
# ===========================================================================


class TestMainApp:
    def test_help(self, runner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "simulate" in result.output
        assert "settings" in result.output

    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


# ===========================================================================
# status
# ===========================================================================


class TestStatus:
    def test_online(self, runner, fake_provider):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "AI Online" in result.output
        assert "Ava Lee" in result.output

    def test_json(self, runner, fake_provider):
        result = runner.invoke(app, ["status", "--format", "json"])
        assert result.exit_code == 0
        assert '"initialized": true' in result.output

    def test_offline_exits_1(self, runner, fake_provider, endpoint):
        endpoint.replies["aiInitialize"] = httpx.Response(503, text="maintenance")
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "AI Offline" in result.output


# ===========================================================================
# simulate
# ===========================================================================


class TestSimulate:
    def test_start_uses_saved_settings_and_overrides(self, runner, fake_provider, endpoint):
        result = runner.invoke(app, ["simulate", "start", "--speed", "8", "--org", "org5"])
        assert result.exit_code == 0
        assert "Simulation started" in result.output
        start = next(b for b in endpoint.sent if b["method"] == "startSimulation")
        assert start["params"]["speed"] == 8
        assert start["params"]["orgId"] == "org5"

    def test_failure_prints_error_and_exits_1(self, runner, fake_provider, endpoint):
        endpoint.replies["stopSimulation"] = {"success": False, "error": "No simulation"}
        result = runner.invoke(app, ["simulate", "stop"])
        assert result.exit_code == 1
        assert "No simulation" in result.output

    def test_pause(self, runner, fake_provider, endpoint):
        result = runner.invoke(app, ["simulate", "pause"])
        assert result.exit_code == 0
        assert any(b["method"] == "pauseSimulation" for b in endpoint.sent)

    def test_stats(self, runner, fake_provider):
        result = runner.invoke(app, ["simulate", "stats"])
        assert result.exit_code == 0
        assert "activeDonors" in result.output

    def test_generate(self, runner, fake_provider):
        result = runner.invoke(app, ["simulate", "generate", "--count", "1", "--save"])
        assert result.exit_code == 0
        assert "Noah Brown" in result.output
        assert "Saved 1 donors" in result.output

    def test_quick(self, runner, fake_provider):
        result = runner.invoke(app, ["simulate", "quick", "--count", "1"])
        assert result.exit_code == 0
        assert "donation" in result.output


# ===========================================================================
# settings
# ===========================================================================


class TestSettingsCommands:
    def test_show_defaults(self, runner):
        result = runner.invoke(app, ["settings", "show"])
        assert result.exit_code == 0
        assert "donorCount" in result.output
        assert "DONATION" in result.output

    def test_set_and_persist(self, runner):
        result = runner.invoke(app, ["settings", "set", "speed", "fast"])
        assert result.exit_code == 0
        assert load_simulation_settings(settings.SIMULATION_SETTINGS_FILE).speed_value == 10

    def test_set_activity_types(self, runner):
        result = runner.invoke(app, ["settings", "set", "activityTypes", "donations,tasks"])
        assert result.exit_code == 0
        saved = load_simulation_settings(settings.SIMULATION_SETTINGS_FILE)
        assert saved.enabled_categories == ["DONATION", "TASK"]

    def test_set_invalid_value(self, runner):
        result = runner.invoke(app, ["settings", "set", "donorCount", "0"])
        assert result.exit_code == 1

    def test_set_unknown_key(self, runner):
        result = runner.invoke(app, ["settings", "set", "colour", "blue"])
        assert result.exit_code == 1

    def test_reset(self, runner):
        runner.invoke(app, ["settings", "set", "donorCount", "99"])
        result = runner.invoke(app, ["settings", "reset"])
        assert result.exit_code == 0
        assert load_simulation_settings(settings.SIMULATION_SETTINGS_FILE).donor_count == 20


# ===========================================================================
# org
# ===========================================================================


class TestOrgCommands:
    def test_show_default(self, runner):
        result = runner.invoke(app, ["org", "show"])
        assert result.exit_code == 0
        assert settings.DEFAULT_ORG_ID in result.output

    def test_set(self, runner):
        result = runner.invoke(app, ["org", "set", "org-42"])
        assert result.exit_code == 0
        assert load_persisted_org() == "org-42"
        assert "org-42" in runner.invoke(app, ["org", "show"]).output
