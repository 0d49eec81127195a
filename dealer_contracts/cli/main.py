"""Main CLI application"""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dealer_contracts.cli.init_cmd import init_command
from dealer_contracts.exceptions import ContractError

app = typer.Typer(
    name="dealer-contracts",
    help="Koopcontracten voor voertuigen: prijsberekening, ondertekening en archief",
    add_completion=False,
)

console = Console(force_terminal=True)


@app.callback()
def main():
    """Configure logging from LOG_LEVEL"""
    from dealer_contracts.utils.config import get_settings

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _load_options(vehicle_id: str, contract_type: str, options_json: Optional[str]):
    """Vehicle snapshot and validated options from CLI arguments"""
    from dealer_contracts.models import coerce_contract_type, parse_options
    from dealer_contracts.services.vehicles import VehicleLookup

    data = json.loads(options_json) if options_json else {}
    data["contract_type"] = coerce_contract_type(contract_type)
    options = parse_options(data)
    vehicle = VehicleLookup().get_vehicle(vehicle_id)
    return vehicle, options


def _fail(e: Exception):
    console.print(f"[red]Error: {e}[/red]")
    raise typer.Exit(code=1)


@app.command("init")
def init():
    """Initialize database and contract storage"""
    init_command()


@app.command("db")
def db_command(
    action: str = typer.Argument(..., help="Action: migrate, status"),
):
    """Manage database connection and schema"""
    from dealer_contracts.db.supabase import get_database
    from dealer_contracts.utils.config import get_settings

    settings = get_settings()

    if action == "migrate":
        if settings.db_mode == "supabase":
            migration_path = Path(__file__).parent.parent / "db" / "migrations" / "001_contracts.sql"
            console.print(f"[blue]SQL migration file:[/blue] {migration_path}")
            console.print("\n[yellow]Run this SQL in Supabase SQL Editor to create tables.[/yellow]")
            console.print("Then run [cyan]python -m dealer_contracts db status[/cyan] to verify.")
        else:
            from dealer_contracts.db.sqlite import init_db

            init_db()
            console.print("[green]SQLite database initialized.[/green]")

    elif action == "status":
        db = get_database()
        status = db.get_status()
        table = Table(title=f"Database Status ({status['mode']})")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")
        for k, v in status.items():
            table.add_row(str(k), str(v))
        console.print(table)

    else:
        console.print(f"[red]Unknown action: {action}[/red]")
        console.print("Available actions: migrate, status")


@app.command("add-sample")
def add_sample():
    """Add a sample vehicle and customer for trying things out (SQLite only)"""
    from dealer_contracts.db.sqlite import init_db, upsert_contact, upsert_vehicle

    init_db()
    upsert_contact({
        "id": "demo-contact",
        "name": "Jan de Vries",
        "email": "jan@example.nl",
        "address": "Kerkstraat 12, 1017 GC Amsterdam",
    })
    upsert_vehicle({
        "id": "demo-vehicle",
        "vin": "WVWZZZ1KZAW000001",
        "license_number": "AB-123-C",
        "brand": "Volkswagen",
        "model": "Golf",
        "color": "Grijs",
        "year": 2019,
        "mileage": 84500,
        "selling_price": 20000,
        "customer_id": "demo-contact",
        "sales_status": "verkocht_b2c",
    })
    console.print("[green][OK] Added vehicle demo-vehicle (AB-123-C) with customer demo-contact[/green]")


@app.command("price")
def price(
    vehicle_id: str = typer.Argument(..., help="Vehicle ID"),
    contract_type: str = typer.Option("b2c", "--type", "-t", help="b2b or b2c"),
    options_json: Optional[str] = typer.Option(None, "--options", "-o", help="Contract options as JSON"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Show the price breakdown for a vehicle"""
    from dealer_contracts.services.pricing import compute_pricing

    try:
        vehicle, options = _load_options(vehicle_id, contract_type, options_json)
        pricing = compute_pricing(vehicle, options)
    except (ContractError, json.JSONDecodeError) as e:
        _fail(e)

    if json_output:
        console.print_json(pricing.model_dump_json())
        return

    table = Table(title=f"Prijsopbouw {vehicle.brand} {vehicle.model} ({options.contract_type.value.upper()})")
    table.add_column("Post", style="cyan")
    table.add_column("Bedrag", justify="right", style="green")
    table.add_row("Verkoopprijs", str(pricing.base_price))
    if options.is_b2b:
        table.add_row("Excl. BTW", str(pricing.price_excl_vat))
        table.add_row("BTW 21%", str(pricing.vat_amount))
    else:
        table.add_row("Afleverpakket", str(pricing.delivery_package_price))
        table.add_row("Inruil", f"-{pricing.trade_in_price}")
        table.add_row(f"Aanbetaling ({pricing.down_payment_percentage}%)", str(pricing.down_payment_amount))
    table.add_row("[bold]Totaal[/bold]", f"[bold]{pricing.final_price}[/bold]")
    console.print(table)


@app.command("preview")
def preview(
    vehicle_id: str = typer.Argument(..., help="Vehicle ID"),
    contract_type: str = typer.Option("b2c", "--type", "-t", help="b2b or b2c"),
    options_json: Optional[str] = typer.Option(None, "--options", "-o", help="Contract options as JSON"),
    pdf: Optional[str] = typer.Option(None, "--pdf", help="Also write the PDF to this path"),
):
    """Render a contract to the terminal without storing it"""
    from dealer_contracts.services.pdf_generator import materialize
    from dealer_contracts.services.pricing import compute_pricing
    from dealer_contracts.services.renderer import company_from_settings, render_contract

    try:
        vehicle, options = _load_options(vehicle_id, contract_type, options_json)
        contract = render_contract(vehicle, options, compute_pricing(vehicle, options), company_from_settings())
        console.print(Panel(contract.text, title=contract.file_name, border_style="blue"))
        if pdf:
            Path(pdf).write_bytes(materialize(contract))
            console.print(f"[green][OK] PDF written to {pdf}[/green]")
    except (ContractError, json.JSONDecodeError, OSError) as e:
        _fail(e)


@app.command("archive")
def archive(
    vehicle_id: str = typer.Argument(..., help="Vehicle ID"),
    contract_type: str = typer.Option("b2c", "--type", "-t", help="b2b or b2c"),
    options_json: Optional[str] = typer.Option(None, "--options", "-o", help="Contract options as JSON"),
):
    """Generate a contract PDF and store it in the vehicle archive"""
    from dealer_contracts.services.archive import ContractArchive

    try:
        vehicle, options = _load_options(vehicle_id, contract_type, options_json)
        handle = ContractArchive().save(vehicle, options.contract_type, options)
    except (ContractError, json.JSONDecodeError) as e:
        _fail(e)
    console.print(f"[green][OK] Archived {handle.file_name}[/green] (id: {handle.id})")
    console.print(f"   {handle.artifact_url}")


@app.command("contracts")
def contracts(
    vehicle_id: str = typer.Argument(..., help="Vehicle ID"),
):
    """List archived contracts of a vehicle, newest first"""
    from dealer_contracts.services.archive import ContractArchive

    try:
        handles = ContractArchive().list_all(vehicle_id)
    except ContractError as e:
        _fail(e)

    if not handles:
        console.print("[yellow]No contracts archived for this vehicle[/yellow]")
        return

    table = Table(title=f"Contracts for {vehicle_id}")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Nummer", style="green")
    table.add_column("Bestand")
    table.add_column("Opgeslagen")
    table.add_column("Getekend", justify="center")
    for h in handles:
        table.add_row(
            h.id[:8],
            h.metadata.contract_type.value.upper(),
            h.metadata.contract_number,
            h.file_name,
            h.created_at.strftime("%d-%m-%Y %H:%M"),
            "ja" if h.metadata.session_token else "",
        )
    console.print(table)


@app.command("delete-contract")
def delete_contract(
    contract_id: str = typer.Argument(..., help="Archived contract ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete an archived contract and its PDF"""
    from dealer_contracts.services.archive import ContractArchive

    if not yes and not typer.confirm(f"Delete contract {contract_id}?"):
        raise typer.Abort()
    try:
        result = ContractArchive().delete(contract_id)
    except ContractError as e:
        _fail(e)
    if result.partial:
        console.print(f"[yellow]Record deleted, PDF could not be removed: {result.artifact_error}[/yellow]")
    else:
        console.print("[green][OK] Contract deleted[/green]")


@app.command("sign-link")
def sign_link(
    vehicle_id: str = typer.Argument(..., help="Vehicle ID"),
    contract_type: str = typer.Option("b2c", "--type", "-t", help="b2b or b2c"),
    options_json: Optional[str] = typer.Option(None, "--options", "-o", help="Contract options as JSON"),
):
    """Open a signature session and print the link for the customer"""
    from dealer_contracts.services.signature import SignatureSessionManager

    manager = SignatureSessionManager()
    try:
        vehicle, options = _load_options(vehicle_id, contract_type, options_json)
        session = manager.create_session(vehicle, options.contract_type, options)
    except (ContractError, json.JSONDecodeError) as e:
        _fail(e)
    console.print(f"[green][OK] Signature link (valid until {session.expires_at:%d-%m-%Y %H:%M} UTC):[/green]")
    console.print(manager.signature_url(session.token))


@app.command("sessions")
def sessions(
    vehicle_id: str = typer.Argument(..., help="Vehicle ID"),
):
    """List signature sessions of a vehicle"""
    from datetime import datetime, timezone

    from dealer_contracts.services.signature import SignatureSessionManager

    try:
        items = SignatureSessionManager().list_sessions(vehicle_id)
    except ContractError as e:
        _fail(e)

    if not items:
        console.print("[yellow]No signature sessions for this vehicle[/yellow]")
        return

    now = datetime.now(timezone.utc)
    table = Table(title=f"Signature sessions for {vehicle_id}")
    table.add_column("Token", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Aangemaakt")
    table.add_column("Verloopt")
    table.add_column("Ondertekend door")
    for s in items:
        status = s.status.value
        if status == "pending" and s.is_expired_at(now):
            status = "expired (timeout)"
        table.add_row(
            s.token[:12] + "...",
            s.contract_type.value.upper(),
            status,
            s.created_at.strftime("%d-%m-%Y %H:%M"),
            s.expires_at.strftime("%d-%m-%Y %H:%M"),
            getattr(s.state, "signer_name", ""),
        )
    console.print(table)


@app.command("invalidate")
def invalidate(
    token: str = typer.Argument(..., help="Session token"),
):
    """Invalidate a pending signature link"""
    from dealer_contracts.services.signature import SignatureSessionManager

    try:
        session = SignatureSessionManager().invalidate_session(token)
    except ContractError as e:
        _fail(e)
    console.print(f"[green][OK] Session is now {session.status.value}[/green]")


@app.command("templates")
def templates():
    """List email templates"""
    from dealer_contracts.services.email_templates import TemplateStore

    try:
        items = TemplateStore().list()
    except ContractError as e:
        _fail(e)

    if not items:
        console.print("[yellow]No email templates[/yellow]")
        return

    table = Table(title="Email templates")
    table.add_column("ID", style="dim")
    table.add_column("Naam", style="cyan")
    table.add_column("Type")
    table.add_column("Onderwerp")
    table.add_column("Actief", justify="center")
    for t in items:
        table.add_row(t.id[:8], t.name, t.template_type.value, t.subject, "ja" if t.is_active else "nee")
    console.print(table)


@app.command("template-add")
def template_add(
    name: str = typer.Option(..., "--name", "-n", help="Template name"),
    subject: str = typer.Option(..., "--subject", "-s", help="Subject, may contain {{placeholders}}"),
    body_file: Path = typer.Option(..., "--body", "-b", help="File with the message body"),
    template_type: str = typer.Option("general", "--type", "-t", help="contract_send, signature_request, ..."),
):
    """Add an email template"""
    from dealer_contracts.models import EmailTemplate
    from dealer_contracts.services.email_templates import TemplateStore

    try:
        template = EmailTemplate(
            name=name, subject=subject, body=body_file.read_text(encoding="utf-8"),
            template_type=template_type,
        )
        saved = TemplateStore().upsert(template)
    except (ContractError, OSError, ValueError) as e:
        _fail(e)
    console.print(f"[green][OK] Saved template {saved.name}[/green] (id: {saved.id})")


@app.command("send-contract")
def send_contract(
    vehicle_id: str = typer.Argument(..., help="Vehicle ID"),
    template_id: str = typer.Option(..., "--template", help="Email template ID"),
    to: Optional[str] = typer.Option(None, "--to", help="Send to this address instead of the customer"),
    contract_type: str = typer.Option("b2c", "--type", "-t", help="b2b or b2c"),
    options_json: Optional[str] = typer.Option(None, "--options", "-o", help="Contract options as JSON"),
):
    """Email a contract PDF using a stored template"""
    from dealer_contracts.models import ByVehicleId, Explicit
    from dealer_contracts.services.email_templates import TemplateStore
    from dealer_contracts.services.mailer import ContractMailer
    from dealer_contracts.services.pdf_generator import materialize
    from dealer_contracts.services.pricing import compute_pricing
    from dealer_contracts.services.renderer import company_from_settings, render_contract

    try:
        vehicle, options = _load_options(vehicle_id, contract_type, options_json)
        contract = render_contract(vehicle, options, compute_pricing(vehicle, options), company_from_settings())
        resolution = Explicit(email=to) if to else ByVehicleId(vehicle_id=vehicle_id)
        mailer = ContractMailer()
        message = mailer.compose(
            resolution, contract, TemplateStore().get(template_id),
            vehicle=vehicle, pdf=materialize(contract),
        )
        mailer.send(message)
    except (ContractError, json.JSONDecodeError) as e:
        _fail(e)
    console.print(f"[green][OK] Sent {contract.file_name} to {message.to_email}[/green]")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
):
    """Run the HTTP API"""
    import uvicorn

    uvicorn.run("dealer_contracts.api.app:create_app", host=host, port=port, factory=True)


if __name__ == "__main__":
    app()
