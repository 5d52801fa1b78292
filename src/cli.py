"""CLI interface for inkpress."""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from inkpress.config import InkpressConfig, load_config, merge_cli_overrides
from inkpress.content import (
    BuildMode,
    ContentStore,
    DraftStatus,
    ReferenceImage,
    Topic,
    TopicSource,
    TopicStatus,
)
from inkpress.generation.models import EditKind
from inkpress.pipeline import FlowResult, PublishAction, SchedulerOrchestrator, TickResult
from inkpress.pipeline.scheduler import build_orchestrator
from inkpress.shared.errors import InkpressError

app = typer.Typer(
    name="inkpress",
    help="Write blog drafts with Gemini and publish them to a GitHub repository.",
)

console = Console()

_state: dict[str, object] = {"config_path": None, "database_url": None}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from inkpress import __version__

        console.print(f"inkpress {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging.")
    ] = False,
    config_path: Annotated[
        Optional[Path], typer.Option("--config", "-c", help="Path to a .inkpress.toml file.")
    ] = None,
    database_url: Annotated[
        Optional[str], typer.Option("--database-url", help="Override DATABASE_URL.")
    ] = None,
) -> None:
    """inkpress - content pipeline from topic to committed article."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _state["config_path"] = config_path
    _state["database_url"] = database_url


def _config() -> InkpressConfig:
    config = load_config(_state["config_path"])  # type: ignore[arg-type]
    return merge_cli_overrides(config, database_url=_state["database_url"])


def _store(config: InkpressConfig) -> ContentStore:
    try:
        store = ContentStore.from_url(config.database.url)
    except InkpressError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)
    store.init_schema()
    return store


def _orchestrator(config: InkpressConfig) -> SchedulerOrchestrator:
    return build_orchestrator(config, _store(config))


def _print_flow(result: FlowResult) -> None:
    if result.outcome == "processed":
        console.print(f"[green]✓[/green] {result.message}")
        if result.slug:
            console.print(f"  slug: {result.slug}")
        if result.commit_url:
            console.print(f"  commit: {result.commit_url}")
        if result.pr_url:
            console.print(f"  pull request: {result.pr_url}")
    elif result.outcome == "no_work":
        console.print(f"[dim]{result.message}[/dim]")
    else:
        console.print(f"[red]✗[/red] {result.flow} failed ({result.error_kind}): {result.error}")


def _parse_when(value: str) -> datetime:
    try:
        when = datetime.fromisoformat(value)
    except ValueError:
        console.print(f"[red]Error:[/red] Not an ISO date/time: {value}")
        raise typer.Exit(1)
    return when if when.tzinfo else when.replace(tzinfo=UTC)


@app.command("init-db")
def init_db() -> None:
    """Create the database tables."""
    store = _store(_config())
    store.init_schema()
    console.print("[green]✓[/green] Database schema is up to date")


@app.command("add-topic")
def add_topic(
    title: Annotated[str, typer.Argument(help="Working title of the article.")],
    description: Annotated[str, typer.Option("--description", "-d", help="Scope of the article.")] = "",
    keyword: Annotated[
        Optional[list[str]], typer.Option("--keyword", "-k", help="Search keyword (repeatable).")
    ] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Research notes.")] = None,
    image: Annotated[
        Optional[list[str]], typer.Option("--image", help="Reference image URL (repeatable).")
    ] = None,
    priority: Annotated[int, typer.Option("--priority", "-p", help="Higher is written first.")] = 0,
    ready: Annotated[
        bool, typer.Option("--ready/--preparing", help="Queue immediately or keep preparing.")
    ] = True,
) -> None:
    """Add a topic to the queue."""
    store = _store(_config())
    topic = store.add_topic(
        Topic(
            title=title,
            description=description,
            keywords=keyword or [],
            research_notes=notes,
            reference_images=[ReferenceImage(url=u) for u in image or []],
            priority=priority,
            status=TopicStatus.READY if ready else TopicStatus.PREPARING,
        )
    )
    console.print(f"[green]✓[/green] Added topic {topic.id} ({topic.status})")


@app.command("ready")
def mark_ready(topic_id: Annotated[str, typer.Argument(help="Topic id.")]) -> None:
    """Move a preparing topic into the write queue."""
    store = _store(_config())
    if not store.set_topic_status(topic_id, TopicStatus.READY, expected=[TopicStatus.PREPARING]):
        console.print(f"[red]Error:[/red] Topic {topic_id} is not preparing")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Topic {topic_id} is ready")


@app.command("topics")
def list_topics(
    status: Annotated[
        Optional[TopicStatus], typer.Option("--status", "-s", help="Only this status.")
    ] = None,
) -> None:
    """List topics in claim order."""
    store = _store(_config())
    topics = store.list_topics(status)
    if not topics:
        console.print("[dim]No topics.[/dim]")
        return

    table = Table(title="Topics")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Priority", justify="right")
    table.add_column("Progress", style="dim")
    for topic in topics:
        table.add_row(
            topic.id,
            topic.title,
            topic.status.value,
            str(topic.priority),
            topic.progress_status or "",
        )
    console.print(table)


@app.command("drafts")
def list_drafts(
    status: Annotated[
        Optional[DraftStatus], typer.Option("--status", "-s", help="Only this status.")
    ] = None,
) -> None:
    """List drafts, most recently updated first."""
    store = _store(_config())
    drafts = store.list_drafts(status)
    if not drafts:
        console.print("[dim]No drafts.[/dim]")
        return

    table = Table(title="Drafts")
    table.add_column("ID", style="dim")
    table.add_column("Slug")
    table.add_column("Status")
    table.add_column("Scheduled")
    table.add_column("Complete", justify="right")
    for draft in drafts:
        scheduled = draft.scheduled_publish_at.strftime("%Y-%m-%d %H:%M") if draft.scheduled_publish_at else ""
        table.add_row(
            draft.id,
            draft.slug,
            draft.status.value,
            scheduled,
            f"{draft.completeness.overall}%",
        )
    console.print(table)


@app.command("write")
def write(
    topic_id: Annotated[
        Optional[str], typer.Argument(help="Topic to write. Defaults to the next ready topic.")
    ] = None,
    schedule_at: Annotated[
        Optional[str], typer.Option("--schedule-at", help="Schedule the draft (ISO date/time).")
    ] = None,
    publish_now: Annotated[
        bool, typer.Option("--publish-now", help="Commit the draft right after writing it.")
    ] = False,
) -> None:
    """Write a draft for one topic."""
    orchestrator = _orchestrator(_config())

    if topic_id is None:
        result = orchestrator.run_write_flow()
    else:
        action = PublishAction.DRAFT
        when = None
        if publish_now:
            action = PublishAction.PUBLISH_NOW
        elif schedule_at:
            action = PublishAction.SCHEDULE
            when = _parse_when(schedule_at)
        result = orchestrator.write_topic(topic_id, action, when)

    _print_flow(result)
    if publish_now and result.draft_id and result.outcome == "processed":
        result = orchestrator.publish_draft(result.draft_id)
        _print_flow(result)
    if not result.ok:
        raise typer.Exit(1)


@app.command("publish")
def publish(
    draft_id: Annotated[
        Optional[str], typer.Argument(help="Draft to publish. Defaults to the next due draft.")
    ] = None,
) -> None:
    """Commit a draft to the site repository."""
    orchestrator = _orchestrator(_config())
    result = orchestrator.run_publish_flow() if draft_id is None else orchestrator.publish_draft(draft_id)
    _print_flow(result)
    if not result.ok:
        raise typer.Exit(1)


@app.command("schedule")
def schedule(
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
    when: Annotated[str, typer.Argument(help="Publish time, ISO date/time (UTC if no offset).")],
) -> None:
    """Schedule a draft for the publish flow."""
    store = _store(_config())
    publish_at = _parse_when(when)
    if not store.schedule_draft(draft_id, publish_at):
        console.print(f"[red]Error:[/red] Draft {draft_id} not found or already published")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Draft {draft_id} scheduled for {publish_at.isoformat()}")


@app.command("tick")
def tick() -> None:
    """Run one scheduler tick: the write flow, then the publish flow."""
    orchestrator = _orchestrator(_config())
    result: TickResult = orchestrator.run_tick()
    _print_flow(result.write)
    _print_flow(result.publish)
    if not result.ok:
        raise typer.Exit(1)


@app.command("mode")
def mode(
    value: Annotated[
        Optional[BuildMode], typer.Argument(help="manual or cron. Omit to show the current mode.")
    ] = None,
) -> None:
    """Show or set the article build mode."""
    orchestrator = _orchestrator(_config())
    if value is not None:
        orchestrator.set_build_mode(value)
    console.print(f"Build mode: [bold]{orchestrator.build_mode().value}[/bold]")


@app.command("ideas")
def ideas(
    count: Annotated[int, typer.Option("--count", "-n", help="How many ideas.")] = 8,
) -> None:
    """Brainstorm topic ideas."""
    config = _config()
    orchestrator = _orchestrator(config)
    try:
        suggestions = orchestrator.generator.suggest_topic_ideas(count)
    except InkpressError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)
    for idea in suggestions:
        console.print(f"• {idea}")


@app.command("investigate")
def investigate(
    idea: Annotated[str, typer.Argument(help="Rough idea to expand.")],
    save: Annotated[bool, typer.Option("--save", help="Queue the result as a ready topic.")] = False,
) -> None:
    """Expand a rough idea into a topic proposal."""
    orchestrator = _orchestrator(_config())
    try:
        result = orchestrator.generator.investigate_topic(idea)
    except InkpressError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    console.print(f"[bold]{result.suggested_title}[/bold]")
    if result.description:
        console.print(result.description)
    if result.keywords:
        console.print(f"[dim]Keywords: {', '.join(result.keywords)}[/dim]")

    if save:
        topic = orchestrator.store.add_topic(
            Topic(
                title=result.suggested_title,
                description=result.description,
                keywords=result.keywords,
                source=TopicSource.AI,
                status=TopicStatus.READY,
            )
        )
        console.print(f"[green]✓[/green] Saved as topic {topic.id}")


@app.command("edit")
def edit(
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
    instruction: Annotated[str, typer.Argument(help="What to change, or a question about the draft.")],
    save: Annotated[bool, typer.Option("--save", help="Write the revised body back to the draft.")] = False,
) -> None:
    """Revise a draft body with an editing instruction."""
    orchestrator = _orchestrator(_config())
    draft = orchestrator.store.get_draft(draft_id)
    if draft is None:
        console.print(f"[red]Error:[/red] Draft {draft_id} not found")
        raise typer.Exit(1)
    try:
        result = orchestrator.generator.edit_article(
            draft.body, instruction, title=draft.title, meta_description=draft.meta_description
        )
    except (InkpressError, ValueError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    if result.kind == EditKind.NOTE:
        console.print(f"[bold]Note:[/bold] {result.content}")
        return

    console.print(result.content)
    if save:
        orchestrator.store.save_draft(draft.model_copy(update={"body": result.content}))
        console.print(f"[green]✓[/green] Saved revised body to draft {draft_id}")


@app.command("serve")
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Bind port.")] = 8000,
) -> None:
    """Serve the HTTP triggers (requires the api extra)."""
    import uvicorn

    from inkpress.api import create_app

    config = _config()
    uvicorn.run(create_app(config, _orchestrator(config)), host=host, port=port)


if __name__ == "__main__":
    app()
