"""Main CLI entry point using Typer."""
import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..models.results import OperationResult
from ..workspace import Workspace


app = typer.Typer(
    name="inkwell",
    help="Inkwell - a local writing workspace with git and AI assistance",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)
chapter_app = typer.Typer(help="Create, edit and remove chapters", no_args_is_help=True)
settings_app = typer.Typer(help="Show and change settings", no_args_is_help=True)
git_app = typer.Typer(help="Version control for a project", no_args_is_help=True)
charset_app = typer.Typer(help="Characters and world settings of a project", no_args_is_help=True)
app.add_typer(chapter_app, name="chapter")
app.add_typer(settings_app, name="settings")
app.add_typer(git_app, name="git")
app.add_typer(charset_app, name="charset")

console = Console()

_workspace: Optional[Workspace] = None


def get_workspace() -> Workspace:
    """Workspace shared by every command in this process."""
    global _workspace
    if _workspace is None:
        _workspace = Workspace()
    return _workspace


def unwrap(result: OperationResult) -> Any:
    """Return the payload, or print the error in red and exit with status 1."""
    if not result.success:
        console.print(f"[red]Error: {result.error}[/red]")
        raise typer.Exit(1)
    return result.data


def read_content(content: Optional[str], file: Optional[Path]) -> str:
    if content is not None:
        return content
    if file is not None:
        return file.read_text(encoding='utf-8')
    return typer.get_text_stream("stdin").read()


def dotted_update(key: str, value: Any) -> Dict[str, Any]:
    """Turn ``a.b.c`` and a value into ``{'a': {'b': {'c': value}}}``."""
    update: Dict[str, Any] = value
    for part in reversed(key.split('.')):
        update = {part: update}
    return update


# --- Projects ---


@app.command(help="Create a new writing project")
def new(
    name: str = typer.Argument(..., help="Project name (also its directory name)"),
    description: str = typer.Option("", "--description", "-d", help="Short description"),
    author: str = typer.Option("", "--author", "-a", help="Author name"),
    genre: str = typer.Option("", "--genre", "-g", help="Genre"),
    word_goal: int = typer.Option(0, "--word-goal", help="Target word count"),
    git: bool = typer.Option(True, "--git/--no-git", help="Initialize a git repository")
):
    """Create a new writing project."""
    creation = unwrap(get_workspace().create_project({
        'name': name,
        'description': description,
        'author': author,
        'genre': genre,
        'word_goal': word_goal,
        'use_git': git,
    }))
    console.print(f"[green]✓ Created project: {name}[/green]")
    console.print(f"[dim]Location: {creation.path}[/dim]")
    if creation.git_error:
        console.print(f"[yellow]{creation.git_error}[/yellow]")


@app.command(name="list", help="List projects, most recently modified first")
def list_projects():
    summaries = unwrap(get_workspace().list_projects())
    if not summaries:
        console.print("[yellow]No projects found[/yellow]")
        console.print("[dim]Create one with: inkwell new <name>[/dim]")
        return

    table = Table(title="Projects")
    table.add_column("Id", style="cyan")
    table.add_column("Title")
    table.add_column("Genre")
    table.add_column("Words", justify="right")
    table.add_column("Modified")

    for summary in summaries:
        table.add_row(
            summary.directory_name,
            summary.title,
            summary.genre or "—",
            f"{summary.word_count:,}" if summary.word_count > 0 else "—",
            summary.last_modified[:19].replace('T', ' ')
        )

    console.print(table)


@app.command(help="Show a project and its chapters")
def show(project: str = typer.Argument(..., help="Project id or path")):
    loaded = unwrap(get_workspace().load_project(project))
    manifest = loaded.manifest

    console.print(f"[bold cyan]{manifest.name}[/bold cyan]")
    for label, value in (("Author", manifest.author), ("Genre", manifest.genre), ("Description", manifest.description)):
        if value:
            console.print(f"[dim]{label}:[/dim] {value}")
    goal = manifest.settings.word_goal
    words = f"{loaded.word_count:,}" + (f" / {goal:,}" if goal else "")
    console.print(f"[dim]Words:[/dim] {words}")

    if not loaded.chapters:
        console.print("[yellow]No chapters yet[/yellow]")
        return

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Id", style="cyan")
    table.add_column("Title")
    table.add_column("Words", justify="right")
    for index, chapter in enumerate(loaded.chapters, 1):
        table.add_row(str(index), chapter.id, chapter.title, f"{chapter.word_count:,}")
    console.print(table)


@app.command(help="Delete a project directory")
def delete(
    project: str = typer.Argument(..., help="Project id or path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation")
):
    if not yes and not typer.confirm(f"Delete project '{project}' and all its chapters?"):
        raise typer.Exit(1)
    unwrap(get_workspace().delete_project(project))
    console.print(f"[green]✓ Deleted project: {project}[/green]")


@app.command(name="import", help="Import a project from a zip archive")
def import_project(archive: Path = typer.Argument(..., help="Zip archive to import")):
    path = unwrap(get_workspace().import_project(archive))
    console.print(f"[green]✓ Imported project: {path.name}[/green]")
    console.print(f"[dim]Location: {path}[/dim]")


@app.command(help="Export a project as a zip archive or a manuscript")
def export(
    project: str = typer.Argument(..., help="Project id or path"),
    fmt: str = typer.Option("zip", "--format", "-f", help="zip, md or txt"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Directory (zip) or file (md/txt)")
):
    path = unwrap(get_workspace().export_project(project, fmt=fmt, destination=output))
    console.print(f"[green]✓ Exported to {path}[/green]")


# --- Chapters ---


@chapter_app.command("list", help="List a project's chapters")
def chapter_list(project: str = typer.Argument(..., help="Project id or path")):
    chapters = unwrap(get_workspace().list_chapters(project))
    if not chapters:
        console.print("[yellow]No chapters yet[/yellow]")
        return
    table = Table()
    table.add_column("Id", style="cyan")
    table.add_column("Title")
    table.add_column("Words", justify="right")
    table.add_column("Modified")
    for chapter in chapters:
        table.add_row(chapter.id, chapter.title, f"{chapter.word_count:,}", chapter.last_modified[:19].replace('T', ' '))
    console.print(table)


@chapter_app.command("add", help="Create a new (empty) chapter")
def chapter_add(
    project: str = typer.Argument(..., help="Project id or path"),
    title: str = typer.Argument(..., help="Chapter title")
):
    chapter = unwrap(get_workspace().create_chapter(project, title))
    console.print(f"[green]✓ Created chapter {chapter.id}: {title}[/green]")


@chapter_app.command("save", help="Save chapter content (from --content, --file or stdin)")
def chapter_save(
    project: str = typer.Argument(..., help="Project id or path"),
    chapter_id: str = typer.Argument(..., help="Chapter id"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Chapter title"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="Chapter text"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read chapter text from a file")
):
    workspace = get_workspace()
    if title is None:
        existing = workspace.load_chapter(project, chapter_id)
        title = existing.data.title if existing.success else ""

    unwrap(workspace.save_chapter(project, chapter_id, title, read_content(content, file)))
    chapter = unwrap(workspace.load_chapter(project, chapter_id))
    console.print(f"[green]✓ Saved {chapter.id} ({chapter.word_count:,} words)[/green]")


@chapter_app.command("show", help="Print a chapter's content")
def chapter_show(
    project: str = typer.Argument(..., help="Project id or path"),
    chapter_id: str = typer.Argument(..., help="Chapter id")
):
    chapter = unwrap(get_workspace().load_chapter(project, chapter_id))
    console.print(f"[bold cyan]{chapter.title}[/bold cyan] [dim]({chapter.word_count:,} words)[/dim]")
    console.print(chapter.content, markup=False, highlight=False, soft_wrap=True)


@chapter_app.command("edit", help="Edit a chapter in $EDITOR")
def chapter_edit(
    project: str = typer.Argument(..., help="Project id or path"),
    chapter_id: str = typer.Argument(..., help="Chapter id")
):
    chapter = unwrap(get_workspace().edit_chapter(
        project, chapter_id, lambda text: typer.edit(text, extension=".md")
    ))
    console.print(f"[green]✓ {chapter.id} has {chapter.word_count:,} words[/green]")


@chapter_app.command("rename", help="Change a chapter's title")
def chapter_rename(
    project: str = typer.Argument(..., help="Project id or path"),
    chapter_id: str = typer.Argument(..., help="Chapter id"),
    title: str = typer.Argument(..., help="New title")
):
    unwrap(get_workspace().rename_chapter(project, chapter_id, title))
    console.print(f"[green]✓ Renamed {chapter_id} to: {title}[/green]")


@chapter_app.command("delete", help="Delete a chapter")
def chapter_delete(
    project: str = typer.Argument(..., help="Project id or path"),
    chapter_id: str = typer.Argument(..., help="Chapter id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation")
):
    if not yes and not typer.confirm(f"Delete chapter '{chapter_id}'?"):
        raise typer.Exit(1)
    unwrap(get_workspace().delete_chapter(project, chapter_id))
    console.print(f"[green]✓ Deleted chapter {chapter_id}[/green]")


# --- Characters and world settings ---


KIND_HELP = "Record kind: character or setting"


@charset_app.command("list", help="List characters (or world settings with --kind setting)")
def charset_list(
    project: str = typer.Argument(..., help="Project id or path"),
    kind: str = typer.Option("character", "--kind", "-k", help=KIND_HELP)
):
    entries = unwrap(get_workspace().list_charset(project, kind))
    if not entries:
        console.print(f"[yellow]No {kind}s yet[/yellow]")
        return
    table = Table()
    table.add_column("Id", style="cyan")
    table.add_column("Name")
    table.add_column("Bio" if kind == 'character' else "Content")
    for entry in entries:
        text = entry.bio if kind == 'character' else entry.content
        table.add_row(entry.id, entry.name, text.splitlines()[0] if text else "")
    console.print(table)


@charset_app.command("save", help="Add a record, or update the one with --id")
def charset_save(
    project: str = typer.Argument(..., help="Project id or path"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Name (required for new records)"),
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Character bio or setting content"),
    entry_id: Optional[str] = typer.Option(None, "--id", help="Id of the record to update"),
    kind: str = typer.Option("character", "--kind", "-k", help=KIND_HELP)
):
    fields = {'id': entry_id, 'name': name, 'bio' if kind == 'character' else 'content': text}
    entry = unwrap(get_workspace().save_charset_entry(project, kind, fields))
    console.print(f"[green]✓ Saved {kind} {entry.id}: {entry.name}[/green]")


@charset_app.command("delete", help="Delete a character or world setting")
def charset_delete(
    project: str = typer.Argument(..., help="Project id or path"),
    entry_id: str = typer.Argument(..., help="Record id"),
    kind: str = typer.Option("character", "--kind", "-k", help=KIND_HELP)
):
    unwrap(get_workspace().delete_charset_entry(project, kind, entry_id))
    console.print(f"[green]✓ Deleted {kind} {entry_id}[/green]")


# --- Settings ---


@settings_app.command("show", help="Print settings as YAML (API keys hidden)")
def settings_show(section: Optional[str] = typer.Argument(None, help="Only this section (ai, editor, git, general)")):
    data = unwrap(get_workspace().get_settings()).to_json()
    if section:
        if section not in data:
            console.print(f"[red]Unknown settings section: {section}[/red]")
            raise typer.Exit(1)
        data = {section: data[section]}
    text = yaml.safe_dump(data, allow_unicode=True, sort_keys=False)
    console.print(text, markup=False, highlight=False, soft_wrap=True)


@settings_app.command("set", help="Set one value, e.g. editor.fontSize 18")
def settings_set(
    key: str = typer.Argument(..., help="Dotted key (section.field)"),
    value: str = typer.Argument(..., help="New value (parsed as YAML)")
):
    parsed = yaml.safe_load(value) if value.strip() else ""
    unwrap(get_workspace().update_settings(dotted_update(key, parsed)))
    console.print(f"[green]✓ Set {key}[/green]")


@settings_app.command("reset", help="Restore default settings")
def settings_reset(yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation")):
    if not yes and not typer.confirm("Reset all settings to defaults?"):
        raise typer.Exit(1)
    unwrap(get_workspace().reset_settings())
    console.print("[green]✓ Settings reset[/green]")


@settings_app.command("export", help="Write settings to a file (API keys hidden)")
def settings_export(path: Path = typer.Argument(..., help="Output JSON file")):
    written = unwrap(get_workspace().export_settings(path))
    console.print(f"[green]✓ Settings exported to {written}[/green]")


@settings_app.command("import", help="Merge settings from an exported file")
def settings_import(path: Path = typer.Argument(..., help="Settings JSON file")):
    unwrap(get_workspace().import_settings(path))
    console.print(f"[green]✓ Settings imported from {path}[/green]")


# --- Git ---


@git_app.command("init", help="Put a project under version control")
def git_init(project: str = typer.Argument(..., help="Project id or path")):
    unwrap(get_workspace().git_init(project))
    console.print("[green]✓ Initialized git repository[/green]")


@git_app.command("status", help="Show uncommitted changes")
def git_status(project: str = typer.Argument(..., help="Project id or path")):
    status = unwrap(get_workspace().git_status(project))
    console.print(f"[dim]On branch[/dim] [cyan]{status['branch']}[/cyan]")
    changes = status['changes'].rstrip()
    console.print(changes if changes else "[green]Nothing to commit[/green]", highlight=False)


@git_app.command("commit", help="Commit all changes")
def git_commit(
    project: str = typer.Argument(..., help="Project id or path"),
    message: str = typer.Option(..., "--message", "-m", help="Commit message")
):
    entry = unwrap(get_workspace().git_commit(project, message))
    console.print(f"[green]✓ {entry.strip() or 'Nothing to commit'}[/green]")


@git_app.command("log", help="Show recent commits")
def git_log(
    project: str = typer.Argument(..., help="Project id or path"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of commits")
):
    log = unwrap(get_workspace().git_log(project, limit=limit))
    console.print(log.rstrip() or "[yellow]No commits yet[/yellow]", highlight=False)


@git_app.command("diff", help="Show changes against the last commit or between revisions")
def git_diff(
    project: str = typer.Argument(..., help="Project id or path"),
    first: Optional[str] = typer.Argument(None, help="First revision"),
    second: Optional[str] = typer.Argument(None, help="Second revision")
):
    diff = unwrap(get_workspace().git_diff(project, first, second))
    console.print(diff.rstrip(), markup=False, highlight=False, soft_wrap=True)


@git_app.command("branches", help="List local branches")
def git_branches(project: str = typer.Argument(..., help="Project id or path")):
    info = unwrap(get_workspace().git_branches(project))
    for branch in info['branches']:
        marker = "*" if branch == info['current'] else " "
        console.print(f"{marker} {branch}", markup=False, highlight=False)


@git_app.command("push", help="Push to a remote")
def git_push(
    project: str = typer.Argument(..., help="Project id or path"),
    remote: Optional[str] = typer.Option(None, "--remote", "-r", help="Remote (defaults to git.defaultRemote)"),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch (defaults to the current one)")
):
    output = unwrap(get_workspace().git_push(project, remote, branch)).rstrip()
    if output:
        console.print(output, markup=False, highlight=False)
    console.print("[green]✓ Pushed[/green]")


@git_app.command("pull", help="Pull from a remote")
def git_pull(
    project: str = typer.Argument(..., help="Project id or path"),
    remote: Optional[str] = typer.Option(None, "--remote", "-r", help="Remote (defaults to git.defaultRemote)"),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Branch (defaults to the current one)")
):
    output = unwrap(get_workspace().git_pull(project, remote, branch)).rstrip()
    if output:
        console.print(output, markup=False, highlight=False)
    console.print("[green]✓ Pulled[/green]")


# --- AI ---


@app.command(help="Generate text with the configured AI engine")
def generate(
    prompt: str = typer.Argument(..., help="Instruction for the model"),
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Project id or path"),
    chapter_id: Optional[str] = typer.Option(None, "--chapter", "-c", help="Use this chapter as context"),
    apply: Optional[str] = typer.Option(None, "--apply", help="Write the result into the chapter: replace or append"),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help="Engine name (defaults to the selected one)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model override")
):
    workspace = get_workspace()
    if (chapter_id or apply) and not (project and chapter_id):
        console.print("[red]--chapter and --apply need both --project and --chapter[/red]")
        raise typer.Exit(1)

    context = None
    if chapter_id:
        context = unwrap(workspace.load_chapter(project, chapter_id)).content or None

    async def _generate():
        try:
            return await workspace.generate(prompt, context=context, provider=engine, model=model)
        finally:
            await workspace.context.aclose()

    console.print("[cyan]Generating...[/cyan]")
    text = unwrap(asyncio.run(_generate()))
    console.print(text, markup=False, highlight=False, soft_wrap=True)

    if apply:
        chapter = unwrap(workspace.apply_generated_text(project, chapter_id, text, mode=apply))
        console.print(f"[green]✓ Applied to {chapter.id} ({chapter.word_count:,} words)[/green]")


@app.command("test-ai", help="Check that an AI engine answers")
def ai_test(engine: Optional[str] = typer.Option(None, "--engine", "-e", help="Engine name (defaults to the selected one)")):
    workspace = get_workspace()

    async def _test():
        try:
            return await workspace.test_ai_connection(engine)
        finally:
            await workspace.context.aclose()

    reply = unwrap(asyncio.run(_test()))
    console.print(f"[green]✓ {reply['provider']} answered:[/green] {reply['response']}", highlight=False)


@app.command(help="Serve the remote-access HTTP mirror")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Port")
):
    from ..remote import serve as serve_remote

    serve_remote(get_workspace().context, host=host, port=port)


@app.callback(invoke_without_command=True)
def main(
    version: bool = typer.Option(
        False,
        "--version", "-v",
        help="Show version",
        is_eager=True
    )
):
    """
    Inkwell - a local writing workspace.

    Projects live under the projects directory from settings (general.projectsDir).
    """
    if version:
        console.print(f"[cyan]Inkwell v{__version__}[/cyan]")
        raise typer.Exit()


if __name__ == "__main__":
    app()
