"""Command line interface for Sandpit."""

import json
import sys
import uuid
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sandpit.config import Config
from sandpit.errors import GenerationError
from sandpit.generation import GenerationService
from sandpit.llm import LLM
from sandpit.materializer.pipeline import MaterializedProject, materialize
from sandpit.oneshot import OneShotGenerator
from sandpit.store import InMemoryStore, JsonFileStore
from sandpit.utils.logging import setup_logging

app = typer.Typer(help="Sandpit - prompt to runnable React preview")
console = Console()


def _load_config(sandbox: Optional[str] = None, max_iter: Optional[int] = None) -> Config:
    try:
        config = Config.load(Path.cwd())
    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    if sandbox:
        config.sandbox_provider = sandbox.lower()
    if max_iter:
        config.max_iterations = max_iter

    setup_logging(config.log_level)
    return config


def _require_valid(config: Config) -> None:
    errors = config.validate()
    if errors:
        console.print("[red]Configuration errors:[/red]")
        for error in errors:
            console.print(f"  - {error}")
        sys.exit(1)


def _open_store(config: Config):
    if config.store_path:
        return JsonFileStore(Path(config.store_path))
    return InMemoryStore()


def _write_project(files: dict[str, str], out: Path) -> None:
    for path, content in files.items():
        target = out / path.lstrip("/")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    console.print(f"[green]Wrote {len(files)} file(s) to {out}[/green]")


def _show_project(project: MaterializedProject) -> None:
    table = Table(title="Project files")
    table.add_column("Path", style="cyan")
    table.add_column("Lines", justify="right")
    for path, content in project.files.items():
        marker = " [yellow](placeholder)[/yellow]" if path in project.placeholders else ""
        table.add_row(path + marker, str(content.count("\n") + 1))
    console.print(table)

    deps = ", ".join(f"{name}@{version}" for name, version in project.dependencies.items())
    console.print(f"[dim]Dependencies: {deps}[/dim]")
    if project.skipped:
        console.print(f"[dim]Skipped: {', '.join(project.skipped)}[/dim]")


@app.command()
def generate(
    prompt: str = typer.Argument(..., help="What to build"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project ID (default: new)"),
    sandbox: Optional[str] = typer.Option(None, "--sandbox", "-s", help="Sandbox provider: local or e2b"),
    max_iter: Optional[int] = typer.Option(None, "--max-iter", help="Maximum agent iterations"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the project to this directory"),
) -> None:
    """Run the agent loop for a prompt and show the result."""
    config = _load_config(sandbox, max_iter)
    _require_valid(config)

    project_id = project or uuid.uuid4().hex[:12]
    service = GenerationService(config, _open_store(config), log_dir=Path.cwd())

    console.print(Panel.fit(
        f"[bold cyan]Sandpit[/bold cyan]\n"
        f"Project: {project_id}\n"
        f"Model: {config.default_model}\n"
        f"Sandbox: {config.sandbox_provider}",
        border_style="cyan",
    ))

    try:
        with console.status("Generating..."):
            future = service.start_generation(prompt, project_id)
            result = future.result()
    except KeyboardInterrupt:
        service.cancel(project_id)
        console.print("[yellow]Cancelling...[/yellow]")
        service.shutdown(wait=True)
        sys.exit(130)
    finally:
        service.shutdown(wait=False)

    if result.is_error:
        console.print(f"[red]Generation failed: {result.error}[/red]")
        sys.exit(1)

    console.print(f"\n[bold]{result.title}[/bold]")
    console.print(result.response)
    console.print(f"[dim]Preview: {result.preview_handle}[/dim]")
    console.print(f"[dim]{len(result.files)} file(s) after {result.iterations} iteration(s)[/dim]")

    if out:
        _write_project(result.files, out)


@app.command()
def status(project: str = typer.Argument(..., help="Project ID")) -> None:
    """Show the latest message and artifact of a project."""
    config = _load_config()
    if not config.store_path:
        console.print("[red]Set SANDPIT_STORE_PATH to query stored projects[/red]")
        sys.exit(1)

    store = JsonFileStore(Path(config.store_path))
    messages = store.find_messages(project)
    if not messages:
        console.print(f"[yellow]No messages for project {project}[/yellow]")
        return

    table = Table(title=f"Project {project}")
    table.add_column("When", style="dim")
    table.add_column("Role")
    table.add_column("Type")
    table.add_column("Content")
    for message in messages:
        table.add_row(
            message.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            message.role,
            message.type,
            message.content[:80],
        )
    console.print(table)

    artifact = store.find_latest_artifact(project)
    if artifact:
        console.print(
            f"Latest artifact: [bold]{artifact.title}[/bold] "
            f"({len(artifact.files)} files) {artifact.preview_handle}"
        )


@app.command(name="materialize")
def materialize_command(
    source: Path = typer.Argument(..., help="JSON file: a file map or a code-generation response"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the project to this directory"),
    sandpack: bool = typer.Option(False, "--sandpack", help="Print the Sandpack payload as JSON"),
) -> None:
    """Normalize a generated file map into a runnable project."""
    config = _load_config()

    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read {source}: {e}[/red]")
        sys.exit(1)

    files = data.get("files", data) if isinstance(data, dict) else None
    if not isinstance(files, dict):
        console.print("[red]Expected a JSON object of files[/red]")
        sys.exit(1)

    project = materialize(files, config.extra_packages)

    if sandpack:
        console.print_json(data=project.to_sandpack())
    else:
        _show_project(project)

    if out:
        _write_project(project.files, out)


@app.command()
def oneshot(
    prompt: str = typer.Argument(..., help="What to build"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the project to this directory"),
) -> None:
    """Generate a project with a single structured model call."""
    config = _load_config()
    if not config.anthropic_api_key:
        console.print("[red]No API key found. Set ANTHROPIC_API_KEY[/red]")
        sys.exit(1)

    try:
        llm = LLM(LLM.parse_model_string(config.default_model), config.anthropic_api_key)
        generator = OneShotGenerator(llm, config.extra_packages)
        with console.status("Generating..."):
            result = generator.generate(prompt)
    except (GenerationError, ValueError) as e:
        console.print(f"[red]Generation failed: {e}[/red]")
        sys.exit(1)

    console.print(f"\n[bold]{result.title}[/bold]")
    if result.explanation:
        console.print(result.explanation)
    _show_project(result.project)

    if out:
        _write_project(result.project.files, out)


@app.command()
def models() -> None:
    """List supported models."""
    table = Table(title="Supported models")
    table.add_column("Model", style="cyan")
    for name in LLM.list_models():
        table.add_row(name)
    console.print(table)


if __name__ == "__main__":
    app()
