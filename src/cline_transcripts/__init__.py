"""Convert a Cline conversation directory to a self-contained HTML page."""

import json
import shutil
import tempfile
import webbrowser
from datetime import datetime
from pathlib import Path

import click
from click_default_group import DefaultGroup
import questionary

from .config import Config, ExportOptions
from .grouping import group_tool_runs
from .images import ImageExtractor
from .parser import (
    ConversationFormatError,
    UI_MESSAGES_FILE,
    get_task_summary,
    load_conversation,
)
from .paths import collect_absolute_paths, derive_project_root
from .render import FILTERS, RenderContext, render_events
from .templating import (
    format_cost,
    format_duration,
    format_timestamp,
    format_tokens,
    get_template,
)

TEMPLATES_DIR = Path(__file__).parent / "templates"
STATIC_ASSETS = ("style.css", "script.js")


def render_page(conversation, units):
    """Assemble the final HTML document from the summary and render units."""
    page_template = get_template("page.html")
    hidden_classes = " ".join(
        f"hide-{key}" for key, _, visible in FILTERS if not visible
    )
    return page_template.render(
        summary=conversation.summary,
        filters=[(key, label) for key, label, _ in FILTERS],
        hidden_classes=hidden_classes,
        units_html="\n".join(unit.html for unit in units if not unit.is_empty),
    )


def resolve_options(conversation, options):
    """Fill in the project root when absolute paths are to be stripped."""
    options = options or ExportOptions()
    if options.strip_absolute_paths and options.project_root is None:
        options.project_root = derive_project_root(
            collect_absolute_paths(conversation.messages, conversation.metadata)
        )
    return options


def generate_html(conversation_dir, output_dir, options=None):
    """Export a Cline conversation directory to ``output_dir/index.html``.

    Everything is rendered in memory first; the output directory is only
    created and written once the whole page rendered successfully.

    Returns the ParsedConversation.
    """
    output_dir = Path(output_dir)
    conversation = load_conversation(conversation_dir)
    options = resolve_options(conversation, options)

    context = RenderContext(options=options, images=ImageExtractor())
    units = render_events(conversation.messages, context)
    units = group_tool_runs(conversation.messages, units, options)
    page_content = render_page(conversation, units)

    output_dir.mkdir(parents=True, exist_ok=True)
    index_path = output_dir / "index.html"
    index_path.write_text(page_content, encoding="utf-8")
    context.images.write(output_dir)
    for asset in STATIC_ASSETS:
        shutil.copy(TEMPLATES_DIR / asset, output_dir / asset)

    print(
        f"Generated {index_path.resolve()} "
        f"({conversation.summary.message_count} messages, "
        f"{conversation.summary.api_request_count} API requests, "
        f"{len(context.images.pending)} images)"
    )
    return conversation


def find_local_tasks(folder, limit=10):
    """Find recent Cline task directories in the given folder.

    Returns a list of (Path, summary) tuples sorted by modification time,
    most recent first. Tasks without a readable task message are skipped.
    """
    folder = Path(folder)
    if not folder.exists():
        return []

    results = []
    for messages_file in folder.glob(f"*/{UI_MESSAGES_FILE}"):
        summary = get_task_summary(messages_file.parent)
        if summary == "(no summary)":
            continue
        results.append((messages_file.parent, summary))

    results.sort(
        key=lambda x: (x[0] / UI_MESSAGES_FILE).stat().st_mtime, reverse=True
    )
    return results[:limit]


def _export(conversation_dir, output, options, open_browser):
    output = Path(output)
    try:
        generate_html(conversation_dir, output, options)
    except ConversationFormatError as e:
        raise click.ClickException(str(e))
    except OSError as e:
        raise click.ClickException(f"Failed to write {output}: {e}")

    click.echo(f"Output: {output.resolve()}")

    if open_browser:
        index_url = (output / "index.html").resolve().as_uri()
        webbrowser.open(index_url)


def export_options(function):
    """Shared flags controlling what is included in the export."""
    function = click.option(
        "--no-file-contents",
        "hide_file_contents",
        is_flag=True,
        help="Hide the contents of created and edited files.",
    )(function)
    function = click.option(
        "--no-full-paths",
        "strip_absolute_paths",
        is_flag=True,
        help="Show file paths relative to the detected project root.",
    )(function)
    function = click.option(
        "--no-commands",
        "suppress_commands",
        is_flag=True,
        help="Leave terminal commands and their output out of the export.",
    )(function)
    return function


@click.group(
    cls=DefaultGroup,
    default="export",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(None, "-v", "--version", package_name="cline-transcripts")
def cli():
    """Convert Cline conversations to a browsable HTML page."""
    pass


@cli.command("export")
@click.argument("conversation_dir", type=click.Path())
@click.option(
    "-o",
    "--output",
    type=click.Path(),
    help="Output directory (default: $CLINE_TRANSCRIPTS_OUTPUT or ./cline-export-output).",
)
@export_options
@click.option(
    "--open",
    "open_browser",
    is_flag=True,
    help="Open the generated index.html in your default browser.",
)
def export_cmd(
    conversation_dir,
    output,
    suppress_commands,
    strip_absolute_paths,
    hide_file_contents,
    open_browser,
):
    """Convert a Cline task directory (containing ui_messages.json) to HTML."""
    config = Config()
    click.echo(f"Reading conversation from: {conversation_dir}")
    options = ExportOptions(
        suppress_commands=suppress_commands,
        strip_absolute_paths=strip_absolute_paths,
        hide_file_contents=hide_file_contents,
    )
    _export(conversation_dir, output or config.output_dir, options, open_browser)


@cli.command("summary")
@click.argument("conversation_dir", type=click.Path())
@click.option("--json", "as_json", is_flag=True, help="Output the summary as JSON.")
def summary_cmd(conversation_dir, as_json):
    """Show cost, token and duration statistics for a conversation."""
    try:
        conversation = load_conversation(conversation_dir)
    except ConversationFormatError as e:
        raise click.ClickException(str(e))
    summary = conversation.summary

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return

    click.echo(f"Task:         {summary.task_preview or '(none)'}")
    click.echo(f"Model:        {summary.model_id} ({summary.provider_id}, {summary.mode})")
    click.echo(f"Started:      {format_timestamp(summary.start_timestamp)}")
    click.echo(f"Duration:     {format_duration(summary.duration_ms)}")
    click.echo(f"Cost:         {format_cost(summary.total_cost)}")
    click.echo(
        f"Tokens:       {format_tokens(summary.total_tokens_in)} in, "
        f"{format_tokens(summary.total_tokens_out)} out"
    )
    click.echo(
        f"Cache:        {format_tokens(summary.total_cache_reads)} reads, "
        f"{format_tokens(summary.total_cache_writes)} writes"
    )
    click.echo(f"Messages:     {summary.message_count}")
    click.echo(f"API requests: {summary.api_request_count}")


@cli.command("local")
@click.option(
    "-o",
    "--output",
    type=click.Path(),
    help="Output directory. If not specified, writes to temp dir and opens in browser.",
)
@export_options
@click.option(
    "--open",
    "open_browser",
    is_flag=True,
    help="Open the generated index.html in your default browser (default if no -o specified).",
)
@click.option(
    "--limit",
    type=int,
    default=None,
    help="Maximum number of tasks to show (default: $CLINE_TRANSCRIPTS_LIMIT or 10).",
)
def local_cmd(
    output,
    suppress_commands,
    strip_absolute_paths,
    hide_file_contents,
    open_browser,
    limit,
):
    """Select and convert a local Cline task to HTML."""
    config = Config()
    tasks_folder = Path(config.tasks_dir)

    if not tasks_folder.exists():
        click.echo(f"Tasks folder not found: {tasks_folder}")
        click.echo("No local Cline tasks available.")
        return

    click.echo("Loading local tasks...")
    results = find_local_tasks(tasks_folder, limit=limit or config.local_limit)

    if not results:
        click.echo("No local tasks found.")
        return

    choices = []
    for task_dir, summary in results:
        mod_time = datetime.fromtimestamp((task_dir / UI_MESSAGES_FILE).stat().st_mtime)
        date_str = mod_time.strftime("%Y-%m-%d %H:%M")
        if len(summary) > 60:
            summary = summary[:57] + "..."
        display = f"{date_str}  {summary}"
        choices.append(questionary.Choice(title=display, value=task_dir))

    selected = questionary.select(
        "Select a task to convert:",
        choices=choices,
    ).ask()

    if selected is None:
        click.echo("No task selected.")
        return

    # If no -o specified, use temp dir and open browser by default
    auto_open = output is None
    if output is None:
        output = Path(tempfile.gettempdir()) / f"cline-task-{Path(selected).name}"

    options = ExportOptions(
        suppress_commands=suppress_commands,
        strip_absolute_paths=strip_absolute_paths,
        hide_file_contents=hide_file_contents,
    )
    _export(selected, output, options, open_browser or auto_open)


def main():
    cli()
