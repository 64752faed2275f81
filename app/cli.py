from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from app.config import AppSettings, load_settings
from app.wiring import build_engine, build_story_repository
from domain.models import Story
from domain.ports.repositories import StoryRepository
from domain.services.connect_targets import describe_move, node_label
from domain.services.story_engine import ActionResult, StoryEngine
from domain.services.story_validation import find_story_issues

app = typer.Typer(no_args_is_help=True)
console = Console()

MEDIA_KINDS = ("picture", "annotation", "event")


@dataclass
class CliState:
    settings: AppSettings
    story_path: Path
    repository: StoryRepository

    def load_engine(self) -> StoryEngine:
        engine = build_engine(self.settings)
        result = engine.replace_story(self.repository.load(self.story_path), skip_history=True)
        if not result.ok:
            console.print(f"[red]Invalid story file {self.story_path}:[/] {escape(str(result.error))}")
            raise typer.Exit(code=1)
        return engine

    def save(self, engine: StoryEngine) -> None:
        self.repository.save(engine.get_current_story(), self.story_path)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _state(ctx: typer.Context) -> CliState:
    state: CliState = ctx.obj
    return state


def _finish(state: CliState, engine: StoryEngine, result: ActionResult, done: str) -> None:
    if not result.ok:
        reason = escape(str(result.error)) if result.error else "nothing to do"
        console.print(f"[red]Failed:[/] {reason}")
        raise typer.Exit(code=1)
    state.save(engine)
    suffix = f" {result.node_id}" if result.node_id else ""
    console.print(f"[green]{done}[/]{suffix}")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, help="YAML settings file."),
    story: Path | None = typer.Option(None, help="Story JSON file; overrides engine.story_path."),
) -> None:
    settings = load_settings(config)
    _configure_logging(settings.engine.log_level)
    ctx.obj = CliState(
        settings=settings,
        story_path=story or settings.engine.story_path,
        repository=build_story_repository(settings),
    )


@app.command("new")
def new_story(
    ctx: typer.Context,
    title: str = typer.Option("Untitled Story", help="Story title."),
    force: bool = typer.Option(False, help="Overwrite an existing story file."),
) -> None:
    state = _state(ctx)
    if state.story_path.exists() and not force:
        console.print(f"[red]Story already exists:[/] {state.story_path}")
        raise typer.Exit(code=1)
    state.repository.save(Story.blank(title), state.story_path)
    console.print(f"[green]Wrote[/] {state.story_path}")


def _outline(story: Story) -> Tree:
    tree = Tree(f"[bold]{escape(story.title)}[/]")
    seen: set[str] = set()

    def add(branch: Tree, node_id: str) -> None:
        if node_id in seen:
            return
        seen.add(node_id)
        node = story.node_map[node_id]
        label = escape(node_label(node))
        child = branch.add(
            f"[cyan]{node.type}[/] {label} [dim]{node.id} "
            f"({node.position.x:g}, {node.position.y:g})[/]"
        )
        for child_id in story.children_order.get(node_id, []):
            if child_id in story.node_map:
                add(child, child_id)

    for chapter_id in story.order:
        if chapter_id in story.node_map:
            add(tree, chapter_id)
    return tree


@app.command("show")
def show(ctx: typer.Context) -> None:
    state = _state(ctx)
    console.print(_outline(state.repository.load(state.story_path)))


@app.command("validate")
def validate(ctx: typer.Context) -> None:
    state = _state(ctx)
    issues = find_story_issues(state.repository.load(state.story_path))
    if not issues:
        console.print(f"[green]Valid story:[/] {state.story_path}")
        return
    table = Table("code", "node", "message")
    for issue in issues:
        table.add_row(issue.code, issue.node_id, issue.message)
    console.print(table)
    raise typer.Exit(code=1)


@app.command("add-chapter")
def add_chapter(
    ctx: typer.Context,
    title: str = typer.Argument("New Chapter"),
    after: str | None = typer.Option(None, help="Insert after this chapter id."),
    description: str | None = typer.Option(None),
) -> None:
    state = _state(ctx)
    engine = state.load_engine()
    result = engine.create_chapter(title, after, description=description)
    _finish(state, engine, result, "Created chapter")


@app.command("add-scene")
def add_scene(
    ctx: typer.Context,
    chapter_id: str = typer.Argument(...),
    title: str = typer.Argument("New Scene"),
    after: str | None = typer.Option(None, help="Insert after this scene id."),
    at_start: bool = typer.Option(False, help="Insert as the first scene."),
    description: str | None = typer.Option(None),
) -> None:
    state = _state(ctx)
    engine = state.load_engine()
    result = engine.create_scene(chapter_id, title, after, at_start, description=description)
    _finish(state, engine, result, "Created scene")


@app.command("add-text")
def add_text(
    ctx: typer.Context,
    scene_id: str = typer.Argument(...),
    text: str = typer.Argument(""),
    after: str | None = typer.Option(None, help="Insert after this text id."),
    at_start: bool = typer.Option(False, help="Insert as the first text."),
    summary: str | None = typer.Option(None),
    tag: list[str] = typer.Option([], help="Tag; repeat for more."),
) -> None:
    state = _state(ctx)
    engine = state.load_engine()
    result = engine.create_text(scene_id, after, at_start, text=text, summary=summary, tags=tag)
    _finish(state, engine, result, "Created text")


@app.command("add-media")
def add_media(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="picture, annotation or event."),
    parent_id: str = typer.Argument(...),
    text: str = typer.Option("", help="Annotation text."),
    description: str | None = typer.Option(None, help="Picture or event description."),
    url: str | None = typer.Option(None, help="Picture url."),
    title: str = typer.Option("", help="Event title."),
    year: int | None = typer.Option(None, help="Event year."),
    month: int | None = typer.Option(None),
    day: int | None = typer.Option(None),
) -> None:
    state = _state(ctx)
    if kind not in MEDIA_KINDS:
        console.print(f"[red]Unknown media kind:[/] {kind}")
        raise typer.Exit(code=1)
    engine = state.load_engine()
    if kind == "picture":
        result = engine.create_picture(parent_id, description=description or "", url=url)
    elif kind == "annotation":
        result = engine.create_annotation(parent_id, text=text)
    else:
        result = engine.create_event(
            parent_id,
            year=year,
            month=month,
            day=day,
            title=title,
            description=description,
        )
    _finish(state, engine, result, f"Created {kind}")


@app.command("delete")
def delete(ctx: typer.Context, node_id: str = typer.Argument(...)) -> None:
    state = _state(ctx)
    engine = state.load_engine()
    _finish(state, engine, engine.delete_node(node_id), "Deleted")


@app.command("move")
def move(
    ctx: typer.Context,
    node_id: str = typer.Argument(...),
    parent: str | None = typer.Option(None, help="New parent id; omit for top level."),
    after: str | None = typer.Option(None, help="Insert after this sibling id."),
    at_start: bool = typer.Option(False, help="Insert as the first child."),
) -> None:
    state = _state(ctx)
    engine = state.load_engine()
    _finish(state, engine, engine.move_node(node_id, parent, after, at_start), "Moved")


@app.command("reorder")
def reorder(ctx: typer.Context, chapter_ids: list[str] = typer.Argument(...)) -> None:
    state = _state(ctx)
    engine = state.load_engine()
    _finish(state, engine, engine.reorder_chapters(chapter_ids), "Reordered chapters")


@app.command("targets")
def targets(ctx: typer.Context, source_id: str = typer.Argument(...)) -> None:
    state = _state(ctx)
    engine = state.load_engine()
    found = engine.connect_targets(source_id)
    if not found:
        console.print(f"[yellow]No valid targets for[/] {source_id}")
        return
    story = engine.get_current_story()
    table = Table("target", "parent", "after", "start", "prompt")
    for target_id, spec in found.items():
        table.add_row(
            target_id,
            spec.new_parent_id or "-",
            spec.insert_after_id or "-",
            "yes" if spec.at_start else "no",
            describe_move(story, source_id, target_id) or "",
        )
    console.print(table)


if __name__ == "__main__":
    app()
