# === NAVMAP v1 ===
# {
#   "module": "GraphDataGuard.DataProtocols.cli",
#   "purpose": "graphguard command line: resolve, resolve-spec, link, parse, schemes",
#   "sections": [
#     {"id": "state", "name": "CLI State", "anchor": "class-clistate", "kind": "class"},
#     {"id": "callback", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "commands", "name": "Commands", "anchor": "CMD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Command line access to the protocol engine.

Useful for checking what a graph's data reference would resolve to under a
given configuration, and for validating captured upstream responses::

    graphguard --config graphguard.yaml resolve "wikiraw://example.org/Page"
    graphguard resolve-spec '{"type": "wikidatasparql", "query": "SELECT 1"}'
    graphguard parse response.json --kind tabular

Rejected references and malformed responses exit with status 2.
"""

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, NoReturn, Optional

import typer

from .engine import ProtocolEngine
from .errors import DataProtocolError
from .logging_utils import setup_logging
from .schemes import default_schemes, iter_definitions
from .settings import EngineSettings, load_settings

app = typer.Typer(
    name="graphguard",
    help="Resolve graph data references to allowlisted URLs and validate responses",
    no_args_is_help=True,
)

ERROR_EXIT_CODE = 2


@dataclass
class CliState:
    settings: EngineSettings

    def engine(self) -> ProtocolEngine:
        return ProtocolEngine.from_settings(self.settings)


def _fail(exc: DataProtocolError) -> NoReturn:
    typer.echo(f"❌ {exc.error_code.value}: {exc.message}", err=True)
    raise typer.Exit(code=ERROR_EXIT_CODE)


def _run(call: Callable[[], Any]) -> Any:
    try:
        return call()
    except DataProtocolError as exc:
        _fail(exc)


def _emit(value: Any, as_json: bool) -> None:
    if as_json or not isinstance(value, str):
        typer.echo(json.dumps(value, indent=2, ensure_ascii=False))
    else:
        typer.echo(value)


# ============================================================================
# main callback
# ============================================================================


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML configuration file",
    ),
    default_host: Optional[str] = typer.Option(
        None,
        "--default-host",
        help="Host of the page embedding the graph (used for relative references)",
    ),
    trusted: Optional[bool] = typer.Option(
        None,
        "--trusted/--untrusted",
        help="Override the configured trust level",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Load configuration shared by every command."""

    try:
        settings = load_settings(config)
    except DataProtocolError as exc:
        _fail(exc)

    overrides: dict = {}
    if default_host is not None:
        overrides["default_host"] = default_host
    if trusted is not None:
        overrides["trusted"] = trusted
    if log_level is not None:
        overrides["logging"] = {**settings.logging.model_dump(), "level": log_level}
    if overrides:
        try:
            settings = EngineSettings.model_validate({**settings.model_dump(), **overrides})
        except ValueError as exc:
            typer.echo(f"❌ Invalid option: {exc}", err=True)
            raise typer.Exit(code=ERROR_EXIT_CODE) from exc

    setup_logging(
        level=settings.logging.level,
        emit_json_logs=settings.logging.emit_json_logs,
        stream=sys.stderr,
    )
    ctx.obj = CliState(settings=settings)


# ============================================================================
# Commands
# ============================================================================


@app.command("resolve")
def resolve_command(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Data URL as written in a graph, e.g. wikiraw:///Page"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Resolve a data URL to the sanitized URL that would be fetched."""

    state: CliState = ctx.obj
    result = _run(lambda: state.engine().resolve_url(url))
    if json_output:
        _emit({"url": result.url, "kind": result.kind, "add_cors_origin": result.add_cors_origin}, True)
    else:
        _emit(result.url, False)


@app.command("resolve-spec")
def resolve_spec_command(
    ctx: typer.Context,
    spec: str = typer.Argument(..., help='JSON object, e.g. {"type": "wikiraw", "title": "Page"}'),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Resolve a structured data reference given as a JSON object."""

    try:
        reference = json.loads(spec)
    except json.JSONDecodeError as exc:
        typer.echo(f"❌ Invalid JSON: {exc.msg}", err=True)
        raise typer.Exit(code=ERROR_EXIT_CODE) from exc
    if not isinstance(reference, dict):
        typer.echo("❌ Data reference must be a JSON object", err=True)
        raise typer.Exit(code=ERROR_EXIT_CODE)

    state: CliState = ctx.obj
    result = _run(lambda: state.engine().resolve(reference))
    if json_output:
        _emit({"url": result.url, "kind": result.kind, "add_cors_origin": result.add_cors_origin}, True)
    else:
        _emit(result.url, False)


@app.command("link")
def link_command(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Link target, e.g. wikititle:///Main_Page"),
) -> None:
    """Resolve a link to a wiki page."""

    state: CliState = ctx.obj
    result = _run(lambda: state.engine().resolve_link(url))
    _emit(result.url, False)


@app.command("parse")
def parse_command(
    ctx: typer.Context,
    source: Path = typer.Argument(..., help="File holding the raw response ('-' for stdin)"),
    kind: str = typer.Option(..., "--kind", "-k", help="Kind the response was fetched for"),
) -> None:
    """Validate a captured response and print its normalized form as JSON."""

    if str(source) == "-":
        payload = sys.stdin.read()
    else:
        try:
            payload = source.read_text(encoding="utf-8")
        except OSError as exc:
            typer.echo(f"❌ Cannot read {source}: {exc.strerror}", err=True)
            raise typer.Exit(code=ERROR_EXIT_CODE) from exc

    state: CliState = ctx.obj
    result = _run(lambda: state.engine().parse(payload, kind))
    _emit(result, True)


@app.command("schemes")
def schemes_command(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List the registered data protocol kinds."""

    rows = [
        {
            "kind": definition.name,
            "family": definition.host_family or "general",
            "trusted_only": definition.requires_trusted,
            "cors": definition.cors,
            "required": sorted(definition.required),
            "description": definition.description,
        }
        for definition in iter_definitions(default_schemes())
    ]
    if json_output:
        _emit(rows, True)
        return

    width = max(len(row["kind"]) for row in rows)
    for row in rows:
        flags = []
        if row["trusted_only"]:
            flags.append("trusted")
        if row["cors"]:
            flags.append("cors")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        typer.echo(f"{row['kind']:<{width}}  {row['family']:<7}  {row['description']}{suffix}")


if __name__ == "__main__":  # pragma: no cover
    app()
