"""CLI entrypoint — Typer-based command interface.

Commands:
    calmaint serve       — Start the FastAPI server
    calmaint status      — Show mode and the active/next event
    calmaint schedule    — Print the schedule report
    calmaint end         — End maintenance mode
    calmaint sync        — Poll the calendar now
    calmaint show-state  — Print the persisted state file (offline)

status, schedule, end and sync talk to a running server with the admin key.
"""

from __future__ import annotations

import asyncio

import httpx
import typer

app = typer.Typer(
    name="calmaint",
    help="calmaint — calendar-driven maintenance mode for a game server proxy",
)

DEFAULT_URL = "http://127.0.0.1:8000"

UrlOption = typer.Option(DEFAULT_URL, "--url", envvar="CALMAINT_URL", help="Base URL of the running server")
AdminKeyOption = typer.Option(..., "--admin-key", envvar="ADMIN_API_KEY", help="Admin API key")


def _client(url: str, admin_key: str) -> httpx.Client:
    return httpx.Client(
        base_url=url,
        headers={"Authorization": f"Bearer {admin_key}"},
        timeout=10.0,
    )


def _call(url: str, admin_key: str, method: str, path: str, **kwargs: object) -> dict:
    """Perform one admin request, exiting with code 1 on any failure."""
    try:
        with _client(url, admin_key) as client:
            response = client.request(method, path, **kwargs)  # type: ignore[arg-type]
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as exc:
        detail = exc.response.json().get("detail", exc.response.text) if exc.response.content else ""
        typer.echo(f"Error: {exc.response.status_code} {detail}", err=True)
        raise typer.Exit(code=1) from exc
    except httpx.RequestError as exc:
        typer.echo(f"Error: cannot reach {url} ({exc})", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="API server host"),
    port: int = typer.Option(8000, help="API server port"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the calmaint FastAPI API server."""
    import uvicorn

    uvicorn.run(
        "calmaint.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def status(url: str = UrlOption, admin_key: str = AdminKeyOption) -> None:
    """Show the current mode and the active and next events."""
    data = _call(url, admin_key, "GET", "/maintenance/status")

    typer.echo(f"Mode:      {data['mode']}")
    current = data.get("current_event")
    typer.echo(f"Current:   {current['title']} ({current['id']})" if current else "Current:   -")
    upcoming = data.get("next_event")
    typer.echo(f"Next:      {upcoming['title']} at {upcoming['start_time']}" if upcoming else "Next:      -")
    typer.echo(f"Scheduled: {data['scheduled_count']}")


@app.command()
def schedule(
    url: str = UrlOption,
    admin_key: str = AdminKeyOption,
    limit: int = typer.Option(5, min=1, max=5, help="Number of entries"),
) -> None:
    """Print the upcoming maintenance schedule."""
    data = _call(url, admin_key, "GET", "/maintenance/schedule", params={"limit": limit})
    typer.echo(data["rendered"])


@app.command()
def end(url: str = UrlOption, admin_key: str = AdminKeyOption) -> None:
    """End maintenance mode."""
    data = _call(url, admin_key, "POST", "/maintenance/end")
    if data["ended"]:
        typer.echo("Maintenance ended.")
    else:
        typer.echo("Maintenance mode is not active.")


@app.command()
def sync(url: str = UrlOption, admin_key: str = AdminKeyOption) -> None:
    """Poll the calendar now and print what changed."""
    data = _call(url, admin_key, "POST", "/maintenance/sync")
    for outcome in ("added", "updated", "cancelled", "unchanged", "stale", "expired"):
        ids = data.get(outcome, [])
        typer.echo(f"{outcome.capitalize():<10} {len(ids)}" + (f"  {', '.join(ids)}" if ids else ""))


@app.command()
def show_state(
    state_file: str = typer.Option(
        "./data/maintenance-state.json",
        "--state-file",
        envvar="STATE_FILE_PATH",
        help="Path to the persisted state file",
    ),
) -> None:
    """Print the persisted state file without contacting the server."""

    async def _run() -> None:
        from calmaint.maintenance.state_store import StateStore

        state = await StateStore(state_file).load()
        if state is None:
            typer.echo(f"No state at {state_file}")
            raise typer.Exit(code=1)

        typer.echo(f"Maintenance active: {state.maintenance_mode_active}")
        typer.echo(f"Events:             {len(state.events)}")
        for event in state.events:
            announced = "announced" if state.notification_sent_map.get(event.id) else "not announced"
            typer.echo(
                f"  {event.id}  {event.start_time.isoformat()} -> {event.end_time.isoformat()}"
                f"  {event.title} [{announced}]"
            )

    asyncio.run(_run())


if __name__ == "__main__":
    app()
