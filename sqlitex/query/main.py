"""sqlitex CLI entrypoint."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Any

import click
import yaml

from sqlitex.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context
from sqlitex.shared.database import connect, exec_sql

from . import executor, render
from .render import OUTPUT_FORMATS

_SCALARS = (str, int, float, bool, date)


@click.group(help="Run SQL against a SQLite database.")
@common_cli_options
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for sqlitex commands."""
    cli_ctx.logger.debug(f"sqlitex using database {cli_ctx.target}")


@cli.command("query")
@click.argument("sql", type=str)
@click.option(
    "-b",
    "--bind",
    "bind_values",
    multiple=True,
    metavar="VALUE",
    help="Bind the next positional parameter; parsed as a YAML scalar (1, true, null, 2012-10-14).",
)
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMATS),
)
@pass_cli_context
@handle_cli_errors
def run_query(
    cli_ctx: CLIContext,
    sql: str,
    bind_values: Iterable[str],
    output_format: str,
) -> None:
    """Run one statement and print its rows."""
    _log_subcommand_entry(cli_ctx, "query")
    if not sql.strip():
        raise click.ClickException("Query text must not be empty.")

    values = [parse_bind_value(raw) for raw in bind_values]
    with connect(cli_ctx.config) as connection:
        result = executor.run_with_columns(connection, sql, values)
    render.render_query_result(result, output_format=output_format, logger=cli_ctx.logger)


@cli.command("exec")
@click.argument("sql", type=str)
@pass_cli_context
@handle_cli_errors
def run_exec(cli_ctx: CLIContext, sql: str) -> None:
    """Run a script of one or more statements."""
    _log_subcommand_entry(cli_ctx, "exec")
    if not sql.strip():
        raise click.ClickException("SQL text must not be empty.")

    with connect(cli_ctx.config) as connection:
        exec_sql(connection, sql)
    cli_ctx.logger.success("Statements executed.")


def parse_bind_value(raw: str) -> Any:
    """Interpret a CLI bind value as a YAML scalar, keeping the raw text otherwise."""
    if raw == "":
        return raw
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    if value is None or isinstance(value, _SCALARS):
        return value
    return raw


def _log_subcommand_entry(cli_ctx: CLIContext, command: str) -> None:
    cli_ctx.logger.debug(f"sqlitex {command} invoked against {cli_ctx.target}")


def main() -> None:
    """Entry point for console_scripts."""
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
