"""
CLI for translate-cms-ai.

Provides commands for queueing translations, running the worker,
inspecting jobs and logs, previewing extraction, and publishing.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from translate_cms_ai.config import Settings, create_default_config, load_config
from translate_cms_ai.content import ExtractedContent, extract_content
from translate_cms_ai.database import Database, JobStatus
from translate_cms_ai.errors import TranslateCMSError
from translate_cms_ai.logging_setup import setup_logging
from translate_cms_ai.translation.service import create_translation_service

app = typer.Typer(
    name="translate-cms",
    help="Translate WordPress posts built with page builders, and publish them.",
    add_completion=False,
)

console = Console()

STATUS_STYLES = {
    JobStatus.PENDING: "yellow",
    JobStatus.PROCESSING: "blue",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
    JobStatus.PUBLISHED: "magenta",
}


def _display_config(settings: Settings, config_path: Path | None) -> None:
    """Display the configuration being used."""
    config_source = str(config_path) if config_path else "default (config.yaml or built-in)"

    config_table = Table(show_header=False, box=None, padding=(0, 2))
    config_table.add_column("Key", style="cyan")
    config_table.add_column("Value", style="green")

    config_table.add_row("Config file", config_source)
    config_table.add_row("Site", settings.cms.base_url or "[red]not set[/red]")
    config_table.add_row("", "")
    config_table.add_row("Translation Settings", "", style="bold cyan")
    config_table.add_row("  Provider", settings.translation.provider.value)
    config_table.add_row("  Model", settings.translation.default_model)
    config_table.add_row("  Source language", settings.translation.source_language)
    config_table.add_row("  API key", "configured" if settings.provider_api_key else "[red]not set[/red]")
    config_table.add_row("", "")
    config_table.add_row("Queue", "", style="bold cyan")
    config_table.add_row("  Concurrency", str(settings.queue.concurrency))
    config_table.add_row(
        "  Retries",
        f"{settings.queue.max_retries} (base delay {settings.queue.retry_base_delay}s)",
    )

    console.print(
        Panel(config_table, title="[bold blue]translate-cms-ai[/bold blue]", border_style="blue")
    )


def get_settings(config_path: Path | None = None) -> Settings:
    """Load settings from config file or defaults, and set up logging."""
    settings = load_config(config_path)
    setup_logging(settings.logging, console=Console(stderr=True))
    return settings


def get_database(settings: Settings) -> Database:
    """Get database instance."""
    return Database(settings.paths.database_path)


def _status_cell(status: JobStatus) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def _make_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("{task.fields[detail]}", style="dim"),
        TimeElapsedColumn(),
        console=console,
    )


def _progress_callback(progress: Progress, tasks: dict[str, TaskID]):
    def report(job_id: str, percent: int, message: str) -> None:
        task_id = tasks.get(job_id)
        if task_id is None:
            task_id = tasks[job_id] = progress.add_task(job_id[:8], total=100, detail="")
        if percent < 0:
            progress.update(task_id, detail=f"[red]{message[:60]}[/red]")
        else:
            progress.update(task_id, completed=percent, detail=message[:60])

    return report


def _print_job_summary(db: Database, job_ids: list[str]) -> None:
    table = Table(title="Jobs")
    table.add_column("Job", style="dim")
    table.add_column("Entity", justify="right")
    table.add_column("Lang")
    table.add_column("Status")
    table.add_column("Tokens", justify="right")
    table.add_column("Error", style="red")

    for job_id in job_ids:
        job = db.get_job(job_id)
        if job is None:
            continue
        table.add_row(
            job_id[:8],
            str(job.entity_id),
            job.target_language,
            _status_cell(job.status),
            str(job.tokens_used),
            (job.error_message or "")[:50],
        )
    console.print(table)


def _print_extraction(extracted: ExtractedContent) -> None:
    formats = ", ".join(f.label for f in extracted.formats) or "none"
    console.print(
        Panel(
            f"Primary format: {extracted.primary_format.label}\n"
            f"Formats found: {formats}\n"
            f"Blocks: {len(extracted.blocks)}\n"
            f"Characters: {len(extracted.combined_text)}",
            title="Extraction Preview",
        )
    )

    table = Table()
    table.add_column("#", justify="right", style="dim")
    table.add_column("Format", style="magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Text")

    for index, block in enumerate(extracted.blocks):
        table.add_row(
            str(index),
            block.format.label,
            "/".join(str(part) for part in block.field_path),
            block.text[:80].replace("\n", " "),
        )
    console.print(table)


@app.command()
def init(
    output_path: Path = typer.Option(
        Path("config.yaml"),
        "--output",
        "-o",
        help="Output path for config file",
    ),
) -> None:
    """Generate a default configuration file."""
    if output_path.exists():
        overwrite = typer.confirm(f"{output_path} already exists. Overwrite?")
        if not overwrite:
            raise typer.Abort()

    create_default_config(output_path)
    console.print(f"[green]Created config file: {output_path}[/green]")
    console.print("\nEdit the file and set your site and API keys, then run:")
    console.print("  translate-cms translate 42 --config config.yaml")


@app.command()
def translate(
    entity_id: int = typer.Argument(..., help="Post or page ID"),
    languages: list[str] | None = typer.Option(
        None, "--lang", "-l", help="Target language (repeatable, default: from config)"
    ),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Queue translations of an entity and run them."""
    settings = get_settings(config)
    db = get_database(settings)
    _display_config(settings, config)

    async def run() -> list[str]:
        tasks: dict[str, TaskID] = {}
        with _make_progress() as progress:
            service = create_translation_service(
                settings, db, progress_callback=_progress_callback(progress, tasks)
            )
            try:
                job_ids = await service.enqueue_all(entity_id, languages)
                for job_id in job_ids:
                    if job_id not in tasks:
                        tasks[job_id] = progress.add_task(job_id[:8], total=100, detail="queued")
                await service.queue.join()
            finally:
                await service.close()
        return job_ids

    try:
        job_ids = asyncio.run(run())
    except TranslateCMSError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    _print_job_summary(db, job_ids)


@app.command()
def worker(
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Resume PENDING and PROCESSING jobs left by a previous run."""
    settings = get_settings(config)
    db = get_database(settings)

    async def run() -> int:
        tasks: dict[str, TaskID] = {}
        with _make_progress() as progress:
            service = create_translation_service(
                settings, db, progress_callback=_progress_callback(progress, tasks)
            )
            try:
                count = await service.queue.recover()
                await service.queue.join()
            finally:
                await service.close()
        return count

    try:
        count = asyncio.run(run())
    except TranslateCMSError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    if count == 0:
        console.print("[yellow]No unfinished jobs[/yellow]")
    else:
        console.print(f"[green]Processed {count} recovered job(s)[/green]")


@app.command()
def jobs(
    status: str | None = typer.Option(None, "--status", "-s", help="Filter by status"),
    entity_id: int | None = typer.Option(None, "--entity", "-e", help="Filter by entity"),
    limit: int = typer.Option(50, "--limit", "-n", help="Max jobs to show"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """List translation jobs."""
    settings = get_settings(config)
    db = get_database(settings)

    try:
        status_filter = JobStatus(status.lower()) if status else None
    except ValueError:
        console.print(f"[red]Invalid status: {status}[/red]")
        console.print(f"Valid options: {', '.join(s.value for s in JobStatus)}")
        raise typer.Exit(1) from None

    job_list = db.get_jobs(status_filter, entity_id=entity_id, limit=limit)
    if not job_list:
        console.print("[yellow]No jobs found[/yellow]")
        return

    table = Table(title="Translation Jobs")
    table.add_column("ID", style="dim")
    table.add_column("Entity", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Lang")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Format", style="magenta")
    table.add_column("Published", justify="right")

    for job in job_list:
        table.add_row(
            job.id or "",
            str(job.entity_id),
            job.entity_title[:30],
            job.target_language,
            _status_cell(job.status),
            f"{job.progress}%",
            job.content_type or "",
            str(job.published_entity_id or ""),
        )

    console.print(table)


@app.command()
def logs(
    job_id: str | None = typer.Option(None, "--job", "-j", help="Filter by job"),
    level: str | None = typer.Option(None, "--level", "-l", help="Filter by level"),
    stage: str | None = typer.Option(None, "--stage", help="Filter by stage"),
    limit: int = typer.Option(50, "--limit", "-n", help="Max entries to show"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """View the job audit log."""
    settings = get_settings(config)
    db = get_database(settings)

    entries = db.get_logs(job_id=job_id, level=level, stage=stage, limit=limit)
    if not entries:
        console.print("[yellow]No log entries found[/yellow]")
        return

    table = Table(title="Processing Logs")
    table.add_column("Time", style="dim")
    table.add_column("Level")
    table.add_column("Stage", style="cyan")
    table.add_column("Message")
    table.add_column("Job", style="dim")

    for entry in entries:
        lvl = entry["level"]
        level_style = {
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
        }.get(lvl, "white")

        table.add_row(
            str(entry["created_at"])[:19],
            f"[{level_style}]{lvl}[/{level_style}]",
            entry["stage"] or "",
            (entry["message"] or "")[:70],
            (entry["job_id"] or "")[:8],
        )

    console.print(table)


@app.command()
def publish(
    job_id: str = typer.Argument(..., help="Completed job to publish"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Restore a completed translation into its builder format and publish it."""
    settings = get_settings(config)
    db = get_database(settings)

    async def run() -> int:
        service = create_translation_service(settings, db)
        try:
            return await service.publish(job_id)
        finally:
            await service.close()

    try:
        published_id = asyncio.run(run())
    except TranslateCMSError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from None

    console.print(f"[green]Published job {job_id} as entity {published_id}[/green]")


@app.command()
def preview(
    entity_id: int | None = typer.Argument(None, help="Post or page ID"),
    file: Path | None = typer.Option(
        None, "--file", "-f", help='JSON file with {"content": ..., "meta": {...}}'
    ),
    show_text: bool = typer.Option(False, "--text", help="Print the combined text"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Dry-run extraction for an entity or a local JSON document."""
    settings = get_settings(config)

    if file is not None:
        if not file.exists():
            console.print(f"[red]File not found: {file}[/red]")
            raise typer.Exit(1)
        document = json.loads(file.read_text(encoding="utf-8"))
        extraction = settings.extraction
        extracted = extract_content(
            document.get("content", ""),
            document.get("meta") or {},
            max_depth=extraction.max_depth,
            max_nodes=extraction.max_nodes,
            min_text_length=extraction.min_text_length,
            detect_tables=extraction.detect_tables,
            min_table_rows=extraction.min_table_rows,
        )
    elif entity_id is not None:
        db = get_database(settings)

        async def run() -> ExtractedContent:
            service = create_translation_service(settings, db)
            try:
                return await service.preview(entity_id)
            finally:
                await service.close()

        try:
            extracted = asyncio.run(run())
        except TranslateCMSError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1) from None
    else:
        console.print("[red]Specify an entity ID or --file[/red]")
        raise typer.Exit(1)

    _print_extraction(extracted)
    if show_text:
        console.print(Panel(extracted.combined_text, title="Combined Text"))


@app.command()
def stats(
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Show job statistics."""
    settings = get_settings(config)
    db = get_database(settings)

    stats_data = db.get_statistics()

    console.print(
        Panel(
            f"""
Jobs: {stats_data["total_jobs"]}
  - Pending: {stats_data["pending_jobs"]}
  - Processing: {stats_data["processing_jobs"]}
  - Completed: {stats_data["completed_jobs"]}
  - Published: {stats_data["published_jobs"]}
  - Failed: {stats_data["failed_jobs"]}

Tokens used: {stats_data["tokens_used"]}
Errors logged: {stats_data["errors"]}
        """.strip(),
            title="Translation Statistics",
        )
    )


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
