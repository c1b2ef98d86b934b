# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.cli",
#   "purpose": "Typer CLI for browsing cached catalogs and pruning the cache",
#   "sections": [
#     {"id": "clicontext", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "commands", "name": "Commands", "anchor": "CMD", "kind": "commands"}
#   ]
# }
# === /NAVMAP ===

"""Typer CLI for the catalog browser.

Provides:
- Global options (--cache-root, --base-url, --kind, --insecure, -v/-vv, --format)
- Query commands: packages, schemas, objects, get, icon
- Maintenance: prune

The CLI has no orchestration API to ask about catalog phases, so every
catalog is treated as unpacked.

Exit codes: 0 success, 1 internal error, 2 not found, 3 not ready.

Example:
    $ catalog-browser --base-url https://localhost:8443 packages operatorhubio
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .bootstrap import CatalogService, build_service
from .core import CatalogRef
from .errors import CatalogBrowserError, ConfigurationError, NotFoundError, NotReadyError
from .gc import prune_cache
from .locks import LOCK_DIR_NAME, CatalogLocks
from .logging_config import setup_logging
from .settings import CatalogSettings, load_settings

EXIT_ERROR = 1
EXIT_NOT_FOUND = 2
EXIT_NOT_READY = 3

_console = Console()
_err_console = Console(stderr=True)


class CliContext:
    """Shared state handed to commands via ``ctx.obj``."""

    def __init__(self, settings: CatalogSettings, format_output: str = "table") -> None:
        self.settings = settings
        self.format_output = format_output

    def parse_ref(self, catalog: str) -> CatalogRef:
        """Accept ``name`` or ``kind/name``."""
        try:
            if "/" in catalog:
                kind, name = catalog.split("/", 1)
                return CatalogRef(name=name, kind=kind)
            return CatalogRef(name=catalog, kind=self.settings.catalog_kind)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc


app = typer.Typer(
    name="catalog-browser",
    help="Browse catalog content through a local, conditionally refreshed cache.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    cache_root: Optional[Path] = typer.Option(
        None, "--cache-root", help="Root directory for cached catalog data"
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Base URL of the catalog server"
    ),
    kind: Optional[str] = typer.Option(
        None, "--kind", help="Catalog resource kind used when CATALOG has no kind/ prefix"
    ),
    insecure: bool = typer.Option(
        False, "--insecure", help="Skip TLS certificate verification"
    ),
    verbosity: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase verbosity (-v for INFO, -vv for DEBUG)"
    ),
    format_output: str = typer.Option(
        "table", "--format", "-f", help="Output format: table, json"
    ),
) -> None:
    """Catalog browser CLI. Global options go before the subcommand."""
    if format_output not in ("table", "json"):
        raise typer.BadParameter("format must be 'table' or 'json'", param_hint="--format")
    try:
        settings = load_settings(
            cache_root=cache_root,
            base_url=base_url,
            catalog_kind=kind,
            verify_tls=False if insecure else None,
        )
    except ConfigurationError as exc:
        _err_console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise typer.Exit(EXIT_ERROR) from exc

    level = {0: settings.log_level.value, 1: "INFO"}.get(verbosity, "DEBUG")
    setup_logging(level, settings.log_format.value, settings.log_dir)
    ctx.obj = CliContext(settings, format_output)


@contextmanager
def _service(cli: CliContext) -> Iterator[CatalogService]:
    service = build_service(cli.settings)
    try:
        yield service
    except NotFoundError as exc:
        _err_console.print(f"[yellow]Not found:[/yellow] {exc}")
        raise typer.Exit(EXIT_NOT_FOUND) from exc
    except NotReadyError as exc:
        _err_console.print(f"[yellow]Unavailable:[/yellow] {exc}")
        raise typer.Exit(EXIT_NOT_READY) from exc
    except CatalogBrowserError as exc:
        _err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(EXIT_ERROR) from exc
    finally:
        service.close()


def _emit_names(cli: CliContext, title: str, names: List[str]) -> None:
    if cli.format_output == "json":
        typer.echo(json.dumps(names))
        return
    table = Table(title=title)
    table.add_column("name")
    for name in names:
        table.add_row(name)
    _console.print(table)


@app.command("packages")
def packages_cmd(
    ctx: typer.Context,
    catalog: str = typer.Argument(..., help="Catalog name or kind/name"),
) -> None:
    """List packages in a catalog."""
    cli: CliContext = ctx.obj
    ref = cli.parse_ref(catalog)
    with _service(cli) as service:
        _emit_names(cli, f"{ref} packages", service.query.list_packages(ref))


@app.command("schemas")
def schemas_cmd(
    ctx: typer.Context,
    catalog: str = typer.Argument(..., help="Catalog name or kind/name"),
    package: str = typer.Argument(..., help="Package name (or __global)"),
) -> None:
    """List schemas present for a package."""
    cli: CliContext = ctx.obj
    ref = cli.parse_ref(catalog)
    with _service(cli) as service:
        _emit_names(cli, f"{ref} {package} schemas", service.query.list_schemas(ref, package))


@app.command("objects")
def objects_cmd(
    ctx: typer.Context,
    catalog: str = typer.Argument(..., help="Catalog name or kind/name"),
    package: str = typer.Argument(..., help="Package name (or __global)"),
    schema: str = typer.Argument(..., help="Schema, e.g. olm.bundle"),
) -> None:
    """List objects for a package and schema."""
    cli: CliContext = ctx.obj
    ref = cli.parse_ref(catalog)
    with _service(cli) as service:
        names = service.query.list_objects(ref, package, schema)
        _emit_names(cli, f"{ref} {package} {schema}", names)


@app.command("get")
def get_cmd(
    ctx: typer.Context,
    catalog: str = typer.Argument(..., help="Catalog name or kind/name"),
    package: str = typer.Argument(..., help="Package name (or __global)"),
    schema: str = typer.Argument(..., help="Schema, e.g. olm.bundle"),
    name: str = typer.Argument(..., help="Object name"),
) -> None:
    """Print one object's raw JSON."""
    cli: CliContext = ctx.obj
    ref = cli.parse_ref(catalog)
    with _service(cli) as service:
        raw = service.query.get_object(ref, package, schema, name)
    typer.echo(raw.decode("utf-8"))


@app.command("icon")
def icon_cmd(
    ctx: typer.Context,
    catalog: str = typer.Argument(..., help="Catalog name or kind/name"),
    package: str = typer.Argument(..., help="Package name"),
    output: Path = typer.Option(..., "--output", "-o", help="File to write the icon to"),
) -> None:
    """Save a package's icon and print its media type."""
    cli: CliContext = ctx.obj
    ref = cli.parse_ref(catalog)
    with _service(cli) as service:
        icon = service.query.get_package_icon(ref, package)
    output.write_bytes(icon.data)
    if cli.format_output == "json":
        typer.echo(json.dumps({"media_type": icon.media_type, "bytes": len(icon.data), "path": str(output)}))
    else:
        _console.print(f"{icon.media_type} ({len(icon.data)} bytes) -> {output}")


@app.command("prune")
def prune_cmd(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Only report what would be removed"),
) -> None:
    """Remove snapshots not referenced by any active pointer."""
    cli: CliContext = ctx.obj
    cache_root = cli.settings.cache_root
    locks = CatalogLocks(cache_root / LOCK_DIR_NAME, timeout=cli.settings.lock_timeout_s)
    try:
        stats = prune_cache(cache_root, locks=locks, dry_run=dry_run)
    except (CatalogBrowserError, OSError) as exc:
        _err_console.print(f"[red]Prune failed:[/red] {exc}")
        raise typer.Exit(EXIT_ERROR) from exc
    if cli.format_output == "json":
        typer.echo(
            json.dumps(
                {
                    "removed": [str(p) for p in stats.removed],
                    "bytes_freed": stats.bytes_freed,
                    "dry_run": dry_run,
                }
            )
        )
    else:
        verb = "Would remove" if dry_run else "Removed"
        _console.print(f"{verb} {len(stats.removed)} entries ({stats.bytes_freed} bytes)")


__all__ = ["app", "CliContext"]
