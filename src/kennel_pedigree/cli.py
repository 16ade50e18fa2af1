"""CLI interface for Kennel Pedigree."""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

app = typer.Typer(
    name="kennel-pedigree",
    help="Ancestry records and registry pedigree sync for a dog kennel",
    add_completion=False,
)
console = Console()


def get_settings():
    """Load settings from the environment (and .env) and configure logging."""
    from .config import load_settings
    from .logging import configure_logging

    settings = load_settings()
    configure_logging(settings.log_level)
    return settings


def get_database(settings):
    from .store import KennelDatabase

    return KennelDatabase(settings.db_path)


@app.command("init-db")
def init_db():
    """Create the local database and its tables."""
    settings = get_settings()
    get_database(settings)
    console.print(f"[green]Database ready at {settings.db_path}[/green]")


@app.command()
def login(
    username: str = typer.Option(None, "--username", "-u", help="Registry username"),
    password: str = typer.Option(None, "--password", "-p", help="Registry password", hide_input=True),
    credentials_file: Path = typer.Option(
        None, "--credentials-file", help="JSON file with registry_username/registry_password"
    ),
):
    """Reuse a valid registry session or log in to create one."""
    from .errors import RegistryAuthError
    from .registry import RegistryAuthenticator, RegistryCredentials, SessionManager
    from .registry.auth import DEFAULT_CREDENTIALS_FILE

    settings = get_settings()
    sessions = SessionManager(get_database(settings), settings.session_ttl_minutes)
    creds = RegistryCredentials.from_sources(
        username, password, credentials_file or DEFAULT_CREDENTIALS_FILE
    )
    if creds is None:
        console.print(
            "[red]Error: No registry credentials. Pass --username/--password "
            "or set REGISTRY_USERNAME/REGISTRY_PASSWORD.[/red]"
        )
        raise typer.Exit(1)

    async def run():
        async with RegistryAuthenticator(settings, sessions, creds) as auth:
            return await auth.create_session()

    try:
        session = asyncio.run(run())
    except RegistryAuthError as e:
        console.print(f"[red]Login failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"Session: {session.session_id}\n"
            f"Method: {session.login_method.value}\n"
            f"Expires: {session.expires_at.isoformat()}",
            title="Registry session",
        )
    )


@app.command("sessions")
def list_sessions(
    active: bool = typer.Option(False, "--active", help="Only show active sessions"),
):
    """List stored registry sessions."""
    from .registry import SessionManager

    settings = get_settings()
    sessions = SessionManager(get_database(settings), settings.session_ttl_minutes)
    rows = sessions.list_sessions(active_only=active)
    if not rows:
        console.print("[yellow]No sessions stored[/yellow]")
        return

    table = Table(title="Registry Sessions")
    table.add_column("Session", style="cyan")
    table.add_column("Method")
    table.add_column("Created")
    table.add_column("Expires")
    table.add_column("Status")
    for s in rows:
        status = "[green]valid[/green]" if s.is_valid else (
            "[dim]expired[/dim]" if s.is_active else "[red]inactive[/red]"
        )
        table.add_row(
            s.session_id,
            s.login_method.value,
            s.created_at.strftime("%Y-%m-%d %H:%M"),
            s.expires_at.strftime("%Y-%m-%d %H:%M"),
            status,
        )
    console.print(table)


@app.command("invalidate-session")
def invalidate_session(session_id: str = typer.Argument(..., help="Session to deactivate")):
    """Deactivate one registry session."""
    from .registry import SessionManager

    settings = get_settings()
    sessions = SessionManager(get_database(settings), settings.session_ttl_minutes)
    if not sessions.invalidate_session(session_id):
        console.print(f"[yellow]No active session {session_id}[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]Session {session_id} invalidated[/green]")


@app.command("expire-sessions")
def expire_sessions():
    """Deactivate every session whose expiry has passed."""
    from .registry import SessionManager

    settings = get_settings()
    sessions = SessionManager(get_database(settings), settings.session_ttl_minutes)
    count = sessions.invalidate_expired_sessions()
    console.print(f"[green]Invalidated {count} expired sessions[/green]")


@app.command()
def sync(
    session_id: str = typer.Option(None, "--session-id", help="Session to use (default: newest valid)"),
    generations: int = typer.Option(None, "--generations", "-g", help="Pedigree depth to import"),
    all_dogs: bool = typer.Option(False, "--all-dogs", help="Sync every dog with both parents, not just the kennel"),
):
    """Import registry pedigree trees into the local database."""
    from .errors import NoValidSessionError
    from .registry import RegistryClient, SessionManager
    from .store import DogStore, RelationshipStore
    from .sync import PedigreeSyncEngine

    settings = get_settings()
    db = get_database(settings)
    sessions = SessionManager(db, settings.session_ttl_minutes)

    async def run():
        async with RegistryClient(settings) as client:
            engine = PedigreeSyncEngine(
                DogStore(db), RelationshipStore(db), sessions, client, settings
            )
            return await engine.run(
                session_id=session_id, generations=generations, kennel_only=not all_dogs
            )

    try:
        with console.status("Syncing pedigree trees..."):
            report = asyncio.run(run())
    except NoValidSessionError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    stats = report.stats
    table = Table(title="Pedigree Sync")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    for key, value in stats.to_dict().items():
        if key == "errors":
            continue
        table.add_row(key.replace("_", " ").title(), str(value))
    table.add_row("Errors", str(len(stats.errors)))
    console.print(table)
    console.print(report.summary)
    console.print(f"[dim]Session {report.session_id} ({report.login_method})[/dim]")

    if stats.errors:
        console.print("\n[bold]Errors:[/bold]")
        for err in stats.errors:
            console.print(f"  • {err}")
    if report.session_expired:
        console.print("[yellow]Session expired during sync. Run 'login' and sync again.[/yellow]")
        raise typer.Exit(2)


@app.command()
def tree(
    dog_id: str = typer.Argument(..., help="Registration number of the descendant"),
    side: str = typer.Option(None, "--side", "-s", help="father or mother (default: both)"),
    depth: int = typer.Option(None, "--depth", "-d", help="Generations to show"),
    as_json: bool = typer.Option(False, "--json", help="Print the tree as JSON"),
):
    """Show a dog's ancestors."""
    from .pedigree import PedigreeSide, TreeBuilder
    from .store import DogStore, RelationshipStore

    settings = get_settings()
    db = get_database(settings)
    dogs = DogStore(db)
    dog = dogs.get_dog(dog_id)
    if dog is None:
        console.print(f"[red]Error: Dog not found: {dog_id}[/red]")
        raise typer.Exit(1)

    try:
        sides = [PedigreeSide(side)] if side else list(PedigreeSide)
    except ValueError:
        console.print(f"[red]Invalid side. Choose from: {[s.value for s in PedigreeSide]}[/red]")
        raise typer.Exit(1)

    builder = TreeBuilder(RelationshipStore(db), dogs, settings.tree_max_depth)
    trees = {s.value: builder.build_tree(dog_id, s, depth) for s in sides}

    if as_json:
        data = {k: (v.to_dict() if v else None) for k, v in trees.items()}
        typer.echo(json.dumps({"dog_id": dog_id, "trees": data}, indent=2))
        return

    root = Tree(f"[bold]{dog.name}[/bold] ({dog.id})")
    for name, node in trees.items():
        if node is None:
            root.add(f"[dim]{name.title()}: unknown[/dim]")
            continue
        _add_branch(root, node)
    console.print(root)


def _add_branch(parent: Tree, node) -> None:
    card = node.payload
    text = f"[cyan]{card.relation}[/cyan]: {card.name} ({card.dog_id})"
    if card.titles:
        text += f" [green]{' '.join(card.titles)}[/green]"
    if card.is_placeholder:
        text += " [dim](placeholder)[/dim]"
    branch = parent.add(text)
    for child in node.children:
        _add_branch(branch, child)


@app.command()
def label(path: str = typer.Argument(..., help="Lineage path such as 01")):
    """Explain a lineage path."""
    from .errors import InvalidPathError
    from .pedigree import describe_path, generation_of, label_of, relationship_kind_of

    try:
        console.print(
            f"{path}: {label_of(path)} "
            f"[dim](generation {generation_of(path)}, {relationship_kind_of(path).value}, "
            f"{describe_path(path)})[/dim]"
        )
    except InvalidPathError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
