"""CLI commands for oneshot using Typer and Rich.

Implements:
- create: Create a project and run all six steps
- step: Run a single step for an existing project
- status: Show derived project status
- list: List all projects in a table
- serve: Start the API server
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from oneshot import validate_dependencies
from oneshot.config import settings
from oneshot.logging_setup import configure_logging
from oneshot.orchestrator.pipeline import create_movie, execute_step
from oneshot.orchestrator.run_registry import RunRegistry
from oneshot.orchestrator.state import LAST_STEP, STEP_NAMES, detect_status
from oneshot.services.artifact_store import INPUT_FILE, MOVIE_FILE, ArtifactStore
from oneshot.services.providers import build_generation_services

app = typer.Typer(name="oneshot", help="Generate a continuous-take video from a text description")
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    configure_logging("DEBUG" if verbose else None)


@app.command()
def create(
    description: list[str] = typer.Argument(..., help="Describe your movie"),
):
    """Create a new project and run the full pipeline.

    Runs input, script, character, keyframes, segments and stitch in order.
    """
    text = " ".join(description).strip()
    if not text:
        console.print("[red]Error:[/red] description must not be empty")
        raise typer.Exit(code=1)

    # Fail-fast dependency validation
    try:
        validate_dependencies()
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)

    console.print(f"\nCreating movie: [bold]\"{text}\"[/bold]\n")
    asyncio.run(_create_async(text))


async def _create_async(description: str):
    store = ArtifactStore()
    services = build_generation_services()
    project_id = store.new_project_id()
    try:
        with console.status("[bold green]Running pipeline...") as status:
            def callback_wrapper(msg: str):
                status.update(f"[bold green]{msg}")

            await create_movie(
                description,
                services,
                store=store,
                progress_callback=callback_wrapper,
                project_id=project_id,
            )
    except Exception as e:
        console.print()
        console.print(f"[red]✗ Pipeline failed:[/red] {str(e)}")
        console.print(f"[yellow]Continue with:[/yellow] python -m oneshot step <n> --id {project_id}")
        raise typer.Exit(code=1)
    finally:
        await services.aclose()

    console.print("[green]✓[/green] Pipeline complete!")
    console.print(f"[green]Output:[/green] {store.project_path(project_id) / MOVIE_FILE}")


@app.command()
def step(
    step_num: int = typer.Argument(..., help="Step number 1-6"),
    project_id: str = typer.Option(..., "--id", help="Project id (directory name)"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description (step 1 only)"),
):
    """Run a single pipeline step for an existing project."""
    asyncio.run(_step_async(step_num, project_id, description))


async def _step_async(step_num: int, project_id: str, description: Optional[str]):
    store = ArtifactStore()
    services = build_generation_services() if 2 <= step_num <= 5 else None
    step_name = STEP_NAMES.get(step_num, "?")
    try:
        with console.status(f"[bold green]Step {step_num} ({step_name})..."):
            progress = await execute_step(
                store, RunRegistry(), project_id, step_num, services, description=description
            )
    except Exception as e:
        console.print(f"[red]✗ Step {step_num} failed:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        if services is not None:
            await services.aclose()

    console.print(
        f"[green]✓[/green] Step {step_num} ({step_name}) done. "
        f"Completed step: {progress.completed_step}/{LAST_STEP}"
    )


@app.command()
def status(
    project_id: str = typer.Argument(..., help="Project id"),
):
    """Show derived project status and artifacts."""
    store = ArtifactStore()
    try:
        project = store.project(project_id)
    except ValueError:
        console.print(f"[red]Error:[/red] Invalid project id: {project_id}")
        raise typer.Exit(code=1)

    if not project.exists():
        console.print(f"[red]Error:[/red] Project not found: {project_id}")
        raise typer.Exit(code=1)

    progress = detect_status(project.path)
    description = project.file(INPUT_FILE).read_text(encoding="utf-8") if project.has(INPUT_FILE) else ""
    if len(description) > 80:
        description = description[:77] + "..."

    step_color = "green" if progress.completed_step == LAST_STEP else "yellow"
    step_name = STEP_NAMES.get(progress.completed_step, "none")
    info_lines = [
        f"[bold]ID:[/bold] {project_id}",
        f"[bold]Description:[/bold] {description}",
        f"[bold]Completed Step:[/bold] [{step_color}]{progress.completed_step}/{LAST_STEP} ({step_name})[/{step_color}]",
        f"[bold]Artifacts:[/bold] {', '.join(progress.artifacts) or '-'}",
    ]
    if project.has(MOVIE_FILE):
        info_lines.append(f"[bold]Output:[/bold] [green]{project.file(MOVIE_FILE)}[/green]")

    console.print(Panel("\n".join(info_lines), title="[bold]Project Status[/bold]", border_style="blue"))


@app.command(name="list")
def list_projects():
    """List all projects, newest first."""
    store = ArtifactStore()
    project_ids = store.list_project_ids()
    if not project_ids:
        console.print("[yellow]No projects found[/yellow]")
        return

    table = Table(title="Projects")
    table.add_column("ID", style="cyan")
    table.add_column("Step", justify="right")
    table.add_column("Description")

    for project_id in project_ids:
        project = store.project(project_id)
        description = project.file(INPUT_FILE).read_text(encoding="utf-8") if project.has(INPUT_FILE) else ""
        if len(description) > 60:
            description = description[:57] + "..."
        table.add_row(project_id, f"{detect_status(project.path).completed_step}/{LAST_STEP}", description)

    console.print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port"),
):
    """Start the API server."""
    import uvicorn

    uvicorn.run(
        "oneshot.api.app:create_app",
        factory=True,
        host=host or settings.server.host,
        port=port or settings.server.port,
        reload=False,
    )
