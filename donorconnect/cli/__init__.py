"""
DonorConnect - Command Line Interface

Drive the donor simulation from a terminal. Built with Typer for the
command surface and Rich for output.

Usage:
    $ donorconnect --help
    $ donorconnect status
    $ donorconnect simulate start --speed 8
    $ donorconnect simulate generate --count 10 --save
    $ donorconnect settings set donorCount 50
    $ donorconnect org set my-org

Sub-command Groups:
    simulate - Start, stop and inspect the donor simulation
    settings - Show and edit the saved simulation settings
    org      - Show or change the current organisation
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
import typer
from pydantic import ValidationError
from rich.panel import Panel

from donorconnect import __version__
from donorconnect.cli.output import (
    console,
    print_error,
    print_json,
    print_key_value,
    print_status,
    print_success,
    print_table,
    print_warning,
)
from donorconnect.config.settings import settings
from donorconnect.config.simulation_settings import (
    SimulationSettings,
    load_simulation_settings,
    save_simulation_settings,
)
from donorconnect.org.context import resolve_org_id, save_persisted_org
from donorconnect.provider import AIProvider
from donorconnect.rpc.errors import RPCError
from donorconnect.simulation.service import SimulationError

T = TypeVar("T")

app = typer.Typer(
    name="donorconnect",
    help="DonorConnect - donor simulation controls",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
)

simulate_app = typer.Typer(
    name="simulate",
    help="Start, stop and inspect the donor simulation",
    no_args_is_help=True,
)

settings_app = typer.Typer(
    name="settings",
    help="Show and edit the saved simulation settings",
    no_args_is_help=True,
)

org_app = typer.Typer(
    name="org",
    help="Show or change the current organisation",
    no_args_is_help=True,
)

app.add_typer(simulate_app, name="simulate")
app.add_typer(settings_app, name="settings")
app.add_typer(org_app, name="org")

# Errors a command reports instead of showing a traceback.
_HANDLED_ERRORS = (RPCError, SimulationError, httpx.HTTPError, ValueError)

OrgOption = typer.Option(None, "--org", "-o", help="Organisation id (defaults to the saved one).")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"DonorConnect version {__version__}")
        raise typer.Exit()


def verbose_callback(value: bool) -> None:
    """Set verbose mode."""
    if value:
        logging.basicConfig(level=logging.DEBUG)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        callback=verbose_callback,
        help="Enable verbose output.",
    ),
) -> None:
    """
    DonorConnect - donor simulation controls

    Talks to the AI data endpoint configured by API_BASE_URL, or runs the
    simulation in-process when SIMULATION_BACKEND=local.
    """


def _with_provider(org_id: Optional[str], action: Callable[[AIProvider], Awaitable[T]]) -> T:
    """Run *action* against a fresh provider, reporting failures and exiting 1."""

    async def runner() -> T:
        async with AIProvider.from_settings(org_id=org_id) as ai:
            return await action(ai)

    try:
        return asyncio.run(runner())
    except _HANDLED_ERRORS as exc:
        print_error(str(exc))
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@app.command()
def status(
    org_id: Optional[str] = OrgOption,
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json."),
) -> None:
    """
    Initialize the AI system and show the simulation status.

    Exits with code 1 when the AI system could not be reached.
    """

    async def action(ai: AIProvider) -> dict[str, Any]:
        await ai.initialize()
        return ai.status.to_dict()

    data = _with_provider(org_id, action)

    if format == "json":
        print_json(data)
    else:
        sim = data["simulation"]
        console.print()
        console.print(Panel.fit(
            "[bold green]AI Online[/bold green]" if data["initialized"] else "[bold red]AI Offline[/bold red]",
            title="DonorConnect",
        ))
        console.print()
        print_status([
            ("AI System", data["initialized"], data["error"] or "connected"),
            ("Activity Feed", data["activityError"] is None, data["activityError"] or "live"),
        ])
        console.print()
        print_key_value([
            ("State", "running" if sim["isRunning"] else "paused" if sim["isPaused"] else "stopped"),
            ("Active donors", sim["activeDonors"]),
            ("Activities", sim["totalActivities"]),
            ("Donations", f"${sim['totalDonations']:,.2f}"),
            ("Bonding sessions", data["bonding"]["activeSessions"]),
        ])
        if data["recentActivity"]:
            console.print()
            print_table(
                "Recent Activity",
                ["Type", "Donor", "Amount", "When"],
                [
                    [
                        str(item.get("type", "")),
                        str(item.get("donorName") or item.get("donor") or ""),
                        str(item.get("amount") or ""),
                        str(item.get("timestamp") or item.get("time") or ""),
                    ]
                    for item in data["recentActivity"][:10]
                ],
                styles=["cyan"],
            )

    if not data["initialized"]:
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# simulate
# ---------------------------------------------------------------------------


@simulate_app.command("start")
def simulate_start(
    org_id: Optional[str] = OrgOption,
    speed: Optional[int] = typer.Option(None, "--speed", "-s", min=1, max=10, help="Speed 1-10."),
    donors: Optional[int] = typer.Option(None, "--donors", "-n", min=1, help="Donor limit."),
    duration: float = typer.Option(
        0.0,
        "--duration",
        "-d",
        min=0.0,
        help="Keep this process alive for N seconds (needed for the local backend).",
    ),
) -> None:
    """Start the simulation with the saved settings."""
    overrides: dict[str, Any] = {}
    if speed is not None:
        overrides["speed"] = speed
    if donors is not None:
        overrides["donor_count"] = donors

    async def action(ai: AIProvider) -> dict[str, Any]:
        options = ai.simulation_settings.model_copy(update=overrides)
        data = await ai.controls.start(options=options)
        if duration:
            await asyncio.sleep(duration)
            data = {**data, "stats": await ai.controls.get_stats()}
        return data

    data = _with_provider(org_id, action)
    print_success("Simulation started")
    print_json(data)


@simulate_app.command("resume")
def simulate_resume(org_id: Optional[str] = OrgOption) -> None:
    """Resume a paused simulation with its last options."""
    _with_provider(org_id, lambda ai: ai.controls.resume())
    print_success("Simulation resumed")


@simulate_app.command("pause")
def simulate_pause(org_id: Optional[str] = OrgOption) -> None:
    """Pause the running simulation."""
    _with_provider(org_id, lambda ai: ai.controls.pause())
    print_success("Simulation paused")


@simulate_app.command("stop")
def simulate_stop(org_id: Optional[str] = OrgOption) -> None:
    """Stop the simulation and reset its counters."""
    _with_provider(org_id, lambda ai: ai.controls.stop())
    print_success("Simulation stopped")


@simulate_app.command("stats")
def simulate_stats(org_id: Optional[str] = OrgOption) -> None:
    """Show simulation statistics."""
    stats = _with_provider(org_id, lambda ai: ai.controls.get_stats())
    print_key_value(sorted(stats.items()), title="Simulation Stats")


@simulate_app.command("generate")
def simulate_generate(
    org_id: Optional[str] = OrgOption,
    count: Optional[int] = typer.Option(None, "--count", "-c", min=1, help="Donors to generate."),
    save: Optional[bool] = typer.Option(
        None,
        "--save/--no-save",
        help="Bulk-create the donors (defaults to the autoSave setting).",
    ),
) -> None:
    """Generate synthetic donors, optionally saving them."""

    async def action(ai: AIProvider) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        donors = await ai.generate_test_data(count, auto_save=save)
        return donors, ai.generated.progress.to_dict()

    donors, progress = _with_provider(org_id, action)
    print_table(
        f"Generated {len(donors)} donors",
        ["Name", "Email", "City", "Status"],
        [
            [
                f"{d.get('firstName', '')} {d.get('lastName', '')}".strip(),
                str(d.get("email", "")),
                str(d.get("city", "")),
                str(d.get("status", "")),
            ]
            for d in donors
        ],
        styles=["cyan"],
    )
    if progress["status"] == "completed":
        print_success(f"Saved {progress['processed']} donors")


@simulate_app.command("quick")
def simulate_quick(
    org_id: Optional[str] = OrgOption,
    count: int = typer.Option(5, "--count", "-c", min=1, help="Activities to produce."),
) -> None:
    """Run a one-shot burst of simulated activity."""
    activities = _with_provider(org_id, lambda ai: ai.controls.quick_simulate(count=count))
    print_json(activities)


# ---------------------------------------------------------------------------
# settings
# ---------------------------------------------------------------------------


def _parse_value(key: str, raw: str) -> Any:
    if key == "activityTypes":
        return [name.strip() for name in raw.split(",") if name.strip()]
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@settings_app.command("show")
def settings_show(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json."),
) -> None:
    """Show the saved simulation settings."""
    blob = load_simulation_settings(settings.SIMULATION_SETTINGS_FILE).to_blob()
    if format == "json":
        print_json(blob)
        return
    items = []
    for key, value in blob.items():
        if key == "activityTypes":
            value = ", ".join(t["type"] for t in value if t["enabled"]) or "(none)"
        items.append((key, value))
    print_key_value(items, title="Simulation Settings")


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="speed, donorCount, realism, activityTypes, autoGenerate or autoSave."),
    value: str = typer.Argument(..., help="New value; activityTypes takes a comma-separated list."),
) -> None:
    """Change one simulation setting."""
    current = load_simulation_settings(settings.SIMULATION_SETTINGS_FILE)
    blob = current.to_blob()
    if key not in blob:
        print_error(f"Unknown setting: {key}", hint=f"Choose one of: {', '.join(blob)}")
        raise typer.Exit(1)

    blob[key] = _parse_value(key, value)
    try:
        updated = SimulationSettings.model_validate(blob)
    except ValidationError as exc:
        print_error(f"Invalid value for {key}", hint=str(exc.errors()[0]["msg"]))
        raise typer.Exit(1)

    save_simulation_settings(updated, settings.SIMULATION_SETTINGS_FILE)
    print_success(f"{key} updated", details=str(updated.to_blob()[key]))


@settings_app.command("reset")
def settings_reset() -> None:
    """Restore the default simulation settings."""
    save_simulation_settings(SimulationSettings(), settings.SIMULATION_SETTINGS_FILE)
    print_success("Simulation settings reset to defaults")


# ---------------------------------------------------------------------------
# org
# ---------------------------------------------------------------------------


@org_app.command("show")
def org_show() -> None:
    """Show the organisation used for outgoing calls."""
    console.print(resolve_org_id())


@org_app.command("set")
def org_set(org_id: str = typer.Argument(..., help="Organisation id to use from now on.")) -> None:
    """Persist the current organisation."""
    try:
        save_persisted_org(org_id)
    except ValueError as exc:
        print_error(str(exc))
        raise typer.Exit(1)
    print_success(f"Current organisation set to {org_id.strip()}")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to."),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to."),
) -> None:
    """Serve the HTTP and WebSocket API."""
    import uvicorn

    if settings.SIMULATION_BACKEND == "local":
        print_warning("Local backend: the simulation lives in this server process")
    console.print(Panel.fit(
        f"Starting DonorConnect on [cyan]http://{host}:{port}[/cyan]",
        title="Server",
    ))
    uvicorn.run("donorconnect.main:app", host=host, port=port)
