"""Command line interface for the CMDB topology service."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from .bootstrap import build_context
from .engine import EngineResult


def _print(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _emit(result: EngineResult) -> None:
    if result.ok:
        _print(result.payload)
        return
    _print({"error": result.error, "code": result.code})
    raise click.exceptions.Exit(1)


def _page(start: int, limit: int, sort: str | None) -> dict:
    page = {"start": start, "limit": limit}
    if sort:
        page["sort"] = sort
    return page


@click.group(help="CMDB host topology tools")
@click.option("--base-dir", type=click.Path(file_okay=False, path_type=Path), default=None, help="Directory holding .env and cmdb-data/.")
@click.pass_context
def cli(ctx: click.Context, base_dir: Path | None) -> None:
    ctx.obj = build_context(base_dir)


@cli.command("init-db")
@click.pass_obj
def init_db(obj) -> None:
    """Create the tables (idempotent)."""
    obj.database.create_all()
    click.echo(f"database ready: {obj.config.database_url}")


@cli.command("load-fixture")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def load_fixture(obj, path: Path) -> None:
    """Load hosts, sets, modules and relations from a JSON file."""
    data = json.loads(path.read_text(encoding="utf-8"))
    _emit(obj.engine.load_fixture(data))


@cli.command("list-hosts")
@click.option("--biz-id", type=int, default=None, help="Business id; omit to list hosts of every business.")
@click.option("--module-id", "module_ids", type=int, multiple=True)
@click.option("--set-id", "set_ids", type=int, multiple=True)
@click.option("--start", type=int, default=0, show_default=True)
@click.option("--limit", type=int, default=50, show_default=True)
@click.option("--sort", default=None, help="Field to sort by, prefix with '-' for descending.")
@click.option("--filter", "property_filter", default=None, help="host_property_filter as JSON.")
@click.pass_obj
def list_hosts(obj, biz_id, module_ids, set_ids, start, limit, sort, property_filter) -> None:
    payload: dict = {"page": _page(start, limit, sort)}
    if property_filter:
        payload["host_property_filter"] = json.loads(property_filter)
    if biz_id is None:
        _emit(obj.engine.list_hosts_without_biz(payload))
        return
    if set_ids:
        payload["bk_set_ids"] = list(set_ids)
    if module_ids:
        payload["bk_module_ids"] = list(module_ids)
    _emit(obj.engine.list_biz_hosts(biz_id, payload))


@cli.command("list-hosts-topo")
@click.option("--biz-id", type=int, required=True)
@click.option("--start", type=int, default=0, show_default=True)
@click.option("--limit", type=int, default=50, show_default=True)
@click.option("--sort", default=None)
@click.option("--field", "fields", multiple=True, help="Host field to return; repeatable.")
@click.pass_obj
def list_hosts_topo(obj, biz_id, start, limit, sort, fields) -> None:
    """Show hosts of a business with their set/module placement."""
    payload = {"page": _page(start, limit, sort), "fields": list(fields)}
    _emit(obj.engine.list_biz_hosts_topo(biz_id, payload))


@cli.command("upgrade")
@click.option("--version", default=None, help="Run a single upgrade instead of all of them.")
@click.pass_obj
def upgrade(obj, version: str | None) -> None:
    """Apply the data upgrades; safe to re-run."""
    _emit(obj.engine.upgrade(version))


@cli.command("runserver")
@click.option("--host", default=None)
@click.option("--port", type=int, default=None)
@click.pass_obj
def runserver(obj, host: str | None, port: int | None) -> None:
    from .app import create_app

    app = create_app(context=obj)
    app.run(host=host or obj.config.server.host, port=port or obj.config.server.port)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
