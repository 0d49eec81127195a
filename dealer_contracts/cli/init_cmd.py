"""Init command implementation"""

from pathlib import Path

from rich.console import Console
from rich.panel import Panel

from dealer_contracts.db.sqlite import init_db
from dealer_contracts.utils.config import get_settings

console = Console()


def init_command():
    """Initialize database and local contract storage"""
    console.print(Panel.fit(
        "[bold blue]Initializing Dealer Contracts[/bold blue]",
        border_style="blue"
    ))
    settings = get_settings()

    console.print("\n[yellow]1. Initializing SQLite database...[/yellow]")
    try:
        init_db()
        console.print(f"[green]   [OK] SQLite database initialized at {settings.database_path}[/green]")
    except Exception as e:
        console.print(f"[red]   [FAIL] Failed to initialize SQLite: {e}[/red]")
        return

    console.print("\n[yellow]2. Preparing contract storage...[/yellow]")
    try:
        Path(settings.storage_path).mkdir(parents=True, exist_ok=True)
        console.print(f"[green]   [OK] Storage directory {settings.storage_path}[/green]")
    except OSError as e:
        console.print(f"[red]   [FAIL] Failed to create storage directory: {e}[/red]")
        return

    console.print(Panel.fit(
        "[bold green][OK] Initialization complete![/bold green]\n\n"
        "Next steps:\n"
        "1. Add a sample vehicle: [cyan]python -m dealer_contracts add-sample[/cyan]\n"
        "2. Preview a contract: [cyan]python -m dealer_contracts preview demo-vehicle[/cyan]",
        border_style="green"
    ))
