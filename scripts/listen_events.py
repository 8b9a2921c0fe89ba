#!/usr/bin/env python3
"""
Command-line client for a running monitoring service.

Usage:
    # Stream vital updates and critical events
    python scripts/listen_events.py listen --patient-id patient-1

    # Force a critical reading for a patient
    python scripts/listen_events.py simulate --patient-id patient-1

    # Show engine status and open alerts
    python scripts/listen_events.py status
"""

import asyncio
import json
from datetime import datetime

import httpx
import typer

app = typer.Typer()

BASE_URL = "http://localhost:8000"
MONITORING_URL = f"{BASE_URL}/api/v1/monitoring"


@app.command()
def listen(
    patient_id: str = typer.Option(None, help="Only print events for this patient"),
    critical_only: bool = typer.Option(False, help="Only print critical events"),
):
    """Listen to the SSE event stream."""
    asyncio.run(_listen(patient_id, critical_only))


async def _listen(patient_id: str | None, critical_only: bool) -> None:
    url = f"{MONITORING_URL}/stream"
    typer.echo(f"📡 Connecting to SSE stream: {url}")
    typer.echo("⏳ Waiting for events... (Press Ctrl+C to stop)\n")

    try:
        async with httpx.AsyncClient(timeout=None) as client:
            async with client.stream("GET", url) as response:
                if response.status_code != 200:
                    typer.echo(f"❌ Connection failed: {response.status_code}", err=True)
                    return

                async for line in response.aiter_lines():
                    if not line or line.startswith(":"):
                        continue
                    if not line.startswith("data:"):
                        continue
                    try:
                        event = json.loads(line[5:].strip())
                    except json.JSONDecodeError:
                        typer.echo(f"📨 {line}")
                        continue
                    if patient_id and event.get("patientId") != patient_id:
                        continue
                    if critical_only and event.get("event") != "critical_event":
                        continue
                    _print_event(event)
    except KeyboardInterrupt:
        typer.echo("\n👋 Disconnected by user")


def _print_event(event: dict) -> None:
    stamp = datetime.now().strftime("%H:%M:%S")
    kind = event.get("event")
    if kind == "vital_update":
        vitals = event.get("vitals", {})
        typer.echo(
            f"[{stamp}] {event.get('patientId')}: "
            f"HR {vitals.get('heartRate')} | "
            f"BP {vitals.get('bloodPressureSystolic')}/{vitals.get('bloodPressureDiastolic')} | "
            f"T {vitals.get('temperature')} | "
            f"SpO2 {vitals.get('oxygenSaturation')} | "
            f"RR {vitals.get('respiratoryRate')}"
        )
    elif kind == "critical_event":
        typer.echo(
            f"[{stamp}] 🚨 CRITICAL {event.get('patientId')}: "
            f"{', '.join(event.get('criticalMetrics', []))}"
        )
    else:
        typer.echo(f"[{stamp}] {kind}: {event}")


@app.command()
def simulate(patient_id: str = typer.Option(..., help="Patient ID")):
    """Trigger a simulated critical event."""
    response = httpx.post(f"{MONITORING_URL}/patients/{patient_id}/simulate-critical")
    if response.status_code != 200:
        typer.echo(f"❌ Simulation failed: {response.status_code} {response.text}", err=True)
        raise typer.Exit(1)
    for alert in response.json()["alerts"]:
        typer.echo(f"⚠️  [{alert['severity']}] {alert['message']}")


@app.command()
def status():
    """Print engine status and open alerts."""
    with httpx.Client(base_url=MONITORING_URL) as client:
        state = client.get("/status").json()
        typer.echo(json.dumps(state, indent=2))
        for alert in client.get("/alerts", params={"acknowledged": False}).json():
            typer.echo(f"{alert['timestamp']} {alert['patientId']} {alert['message']}")


if __name__ == "__main__":
    app()
