"""Operator commands for inspecting and editing stored settings."""

from __future__ import annotations

import click

from .config import BaseConfig
from .exceptions import ConfigurationError
from .logging_config import setup_logging


def _bound_store(ctx: click.Context):
    """Bind a store lazily so ``--help`` never touches the database."""

    from .infra.database import bootstrap_store

    state = ctx.ensure_object(dict)
    if "store" not in state:
        try:
            engine, store = bootstrap_store(state["config"])
        except ConfigurationError as exc:
            raise click.ClickException(str(exc)) from exc
        ctx.call_on_close(engine.dispose)
        state["store"] = store
    return state["store"]


@click.group()
@click.option("--database-url", default=None, help="SQLAlchemy URL (overrides SETTINGSTORE_DATABASE_URL)")
@click.option("--auto-id", is_flag=True, default=False, help="Generate row ids instead of autoincrement")
@click.option("--postgres", is_flag=True, default=False, help="Force PostgreSQL statements")
@click.pass_context
def cli(ctx: click.Context, database_url: str | None, auto_id: bool, postgres: bool) -> None:
    """Read and write named settings."""

    try:
        config = BaseConfig()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    if database_url:
        config.DATABASE_URL = database_url
    if auto_id:
        config.AUTO_ID = True
    if postgres:
        config.POSTGRES = True
    setup_logging(config)
    ctx.ensure_object(dict)["config"] = config


@cli.command("init-schema")
@click.pass_context
def init_schema(ctx: click.Context) -> None:
    """Create the settings table if missing and verify its columns."""

    store = _bound_store(ctx)
    click.echo(f"Settings table ready ({store.dialect.name} statements).")


@cli.command("get")
@click.argument("name")
@click.pass_context
def get_setting(ctx: click.Context, name: str) -> None:
    """Print the value stored for NAME."""

    value = _bound_store(ctx).get(name)
    if value == "":
        raise click.ClickException(f"Setting {name!r} not found")
    click.echo(value)


@cli.command("set")
@click.argument("name")
@click.argument("value")
@click.pass_context
def set_setting(ctx: click.Context, name: str, value: str) -> None:
    """Store VALUE under NAME."""

    result = _bound_store(ctx).set(name, value)
    if not result:
        raise click.ClickException(str(result.error))
    click.echo(f"{name} {result.action}")


@cli.command("delete")
@click.argument("name")
@click.pass_context
def delete_setting(ctx: click.Context, name: str) -> None:
    """Remove NAME."""

    result = _bound_store(ctx).delete(name)
    if not result:
        raise click.ClickException(str(result.error))
    click.echo(f"{name} deleted ({result.rowcount} row(s))")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":  # pragma: no cover
    main()
