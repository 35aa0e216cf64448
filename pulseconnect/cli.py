"""CLI tools for PulseConnect administration."""

import asyncio
import json
from datetime import date

import click

from pulseconnect.db.base import Base
from pulseconnect.db.enums import NotarizationStatus
from pulseconnect.db.models import Donation
from pulseconnect.db.session import SessionLocal, engine
from pulseconnect.services import appointment_service, directory_service, notarization_service
from pulseconnect.services.errors import CoreServiceError


@click.group()
def cli():
    """PulseConnect CLI tools."""
    pass


@cli.command("init-db")
def init_db():
    """
    Create all tables directly from the models.

    For local SQLite runs; deployed databases use `alembic upgrade head`.
    """
    import pulseconnect.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo("✓ Tables created")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def seed(path: str):
    """
    Load hospitals and donors from a JSON file.

    Expected shape: {"hospitals": [{...}], "donors": [{...}]} with the
    fields accepted by the directory service.

    Example:
        pulseconnect seed directory.json
    """
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)

    db = SessionLocal()
    try:
        for entry in data.get("hospitals", []):
            hospital = directory_service.create_hospital(db, **entry)
            click.echo(f"✓ Hospital {hospital.name}: {hospital.id}")
        for entry in data.get("donors", []):
            if entry.get("last_donation_date"):
                entry["last_donation_date"] = date.fromisoformat(entry["last_donation_date"])
            donor = directory_service.create_donor(db, **entry)
            click.echo(f"✓ Donor {donor.name} ({donor.blood_group}): {donor.id}")
    except (CoreServiceError, TypeError) as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command("send-reminders")
@click.option(
    "--date",
    "on_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Appointment date (default: tomorrow)",
)
def send_reminders(on_date):
    """Notify donors about their upcoming appointments."""
    db = SessionLocal()
    try:
        count = appointment_service.send_reminders(
            db, on_date=on_date.date() if on_date else None
        )
        click.echo(f"✓ Sent {count} reminder(s)")
    finally:
        db.close()


@cli.command("notarize-pending")
def notarize_pending():
    """Retry ledger registration for donations still pending or failed."""
    db = SessionLocal()
    try:
        donation_ids = [
            donation_id
            for (donation_id,) in db.query(Donation.id).filter(
                Donation.notarization_status.in_(
                    [NotarizationStatus.PENDING.value, NotarizationStatus.FAILED.value]
                )
            )
        ]
    finally:
        db.close()

    async def run() -> dict[str, int]:
        outcomes: dict[str, int] = {}
        for donation_id in donation_ids:
            status = await notarization_service.notarize_donation(donation_id)
            outcomes[status.value] = outcomes.get(status.value, 0) + 1
        return outcomes

    outcomes = asyncio.run(run())
    summary = ", ".join(f"{k}={v}" for k, v in sorted(outcomes.items())) or "nothing to do"
    click.echo(f"✓ Notarization: {summary}")


if __name__ == "__main__":
    cli()
