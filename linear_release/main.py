"""linear-release CLI: runs plugin hooks outside a release host."""

import json
from pathlib import Path
from typing import Annotated, Any

import tomlkit
import typer
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from linear_release.errors import ConfigError
from linear_release.extract import extract_issue_ids
from linear_release.logging import configure_logging
from linear_release.models import ExecuteRequest, ReleaseContext
from linear_release.plugin import LinearPlugin
from linear_release.providers.base import Deadline
from linear_release.settings import API_KEY_PREFIX, parse_config

app = typer.Typer(help="linear-release: link releases to Linear issues", no_args_is_help=True)

ConfigOpt = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Plugin config TOML (keys as in the host's plugin block)"),
]


def get_plugin() -> LinearPlugin:
    return LinearPlugin()


def load_config(path: Path | None) -> dict[str, Any]:
    """Load a plugin config TOML file; no path means an empty map (env fallback only)."""
    if path is None:
        return {}
    if not path.exists():
        rprint(f"[red]Config file {path} not found[/red]")
        raise typer.Exit(1)
    return tomlkit.load(path.open()).unwrap()


def load_context(path: Path | None) -> ReleaseContext:
    if path is None:
        return ReleaseContext()
    if not path.exists():
        rprint(f"[red]Context file {path} not found[/red]")
        raise typer.Exit(1)
    return ReleaseContext.model_validate_json(path.read_text())


@app.callback()
def main(
    log_level: Annotated[str, typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR")] = "WARNING",
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Emit logs as JSON lines")] = False,
) -> None:
    configure_logging(level=log_level, json_output=json_logs)


@app.command("info")
def info() -> None:
    """Show plugin metadata and supported hooks."""
    plugin_info = get_plugin().get_info()

    table = Table(title=f"{plugin_info.name} {plugin_info.version}")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Description", plugin_info.description)
    table.add_row("Author", plugin_info.author)
    table.add_row("Hooks", ", ".join(plugin_info.hooks))

    rprint(table)


@app.command("validate")
def validate(config: ConfigOpt = None) -> None:
    """Validate plugin config and check the API key against Linear."""
    result = get_plugin().validate(load_config(config))

    if result.valid:
        rprint("[green]✓[/green] Configuration is valid")
        return

    table = Table(title="Configuration errors")
    table.add_column("Field", style="cyan")
    table.add_column("Problem")
    for issue in result.errors:
        table.add_row(escape(issue.field), escape(issue.message))

    rprint(table)
    raise typer.Exit(1)


@app.command("run")
def run(
    hook: Annotated[str, typer.Argument(help="Hook name (post-plan, post-publish, on-error)")],
    config: ConfigOpt = None,
    context: Annotated[
        Path | None,
        typer.Option("--context", help="Release context JSON file"),
    ] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Render and report without calling Linear")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the full response as JSON")] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", min=0.0, help="Overall deadline in seconds for all Linear calls"),
    ] = None,
) -> None:
    """Execute a plugin hook."""
    request = ExecuteRequest(
        hook=hook,
        config=load_config(config),
        context=load_context(context),
        dry_run=dry_run,
    )
    deadline = Deadline.after(timeout) if timeout is not None else None
    response = get_plugin().execute(request, deadline=deadline)

    if as_json:
        typer.echo(json.dumps(response.model_dump(), indent=2))
    elif response.success:
        rprint(f"[green]✓[/green] {escape(response.message)}")
    else:
        rprint(f"[red]✗ {escape(response.error or '')}[/red]")

    if not response.success:
        raise typer.Exit(1)


@app.command("extract")
def extract(
    messages: Annotated[list[str], typer.Argument(help="Commit messages to scan")],
    prefix: Annotated[str, typer.Option("--prefix", "-p", help="Only keep identifiers with this team prefix")] = "",
) -> None:
    """Print Linear identifiers referenced in commit messages, one per line."""
    for identifier in extract_issue_ids(messages, prefix):
        typer.echo(identifier)


@app.command("config-show")
def config_show(config: ConfigOpt = None) -> None:
    """Show resolved configuration (masks credentials)."""
    try:
        cfg = parse_config(load_config(config))
    except ConfigError as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)

    def unset(val: str) -> str:
        return escape(val) if val else "[dim](not set)[/dim]"

    api_key = cfg.api_key_value
    if not api_key:
        masked = "[dim](not set)[/dim]"
    elif len(api_key) <= 10:
        masked = "***"
    else:
        shown = API_KEY_PREFIX if api_key.startswith(API_KEY_PREFIX) else ""
        masked = escape(f"{shown}...{api_key[-5:]}")

    table = Table(title="linear-release configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("api_key", masked)
    table.add_row("team_id", unset(cfg.team_id))
    table.add_row("team_key", unset(cfg.team_key))
    table.add_row("project_id", unset(cfg.project_id))
    table.add_row("issue_prefix", unset(cfg.issue_prefix))
    table.add_row("released_state", escape(cfg.released_state))
    table.add_row("create_release_issue", str(cfg.create_release_issue))
    table.add_row("update_linked_issues", str(cfg.update_linked_issues))
    table.add_row("add_release_comment", str(cfg.add_release_comment))
    table.add_row("comment_template", escape(cfg.comment_template))
    table.add_row("release_issue.title", escape(cfg.release_issue.title))
    table.add_row("release_issue.priority", str(cfg.release_issue.priority))
    table.add_row("release_issue.labels", escape(", ".join(cfg.release_issue.labels)) or "none")

    rprint(table)
