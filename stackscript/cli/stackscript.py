import logging
import os
import traceback
from typing import Dict, Iterable

import click

from stackscript import config
from stackscript.cli.exceptions import CLIError
from stackscript.constants import VERSION

from .console import console


class StackScriptCliGroup(click.Group):
    """
    A Click group used for the top-level ``stackscript`` command group. It implements global exception handling
    by:

    - Ignoring click exceptions (already handled)
    - Wrapping all other exceptions in a CLIError (for a unified error message)
    """

    def invoke(self, ctx: click.Context):
        try:
            return super(StackScriptCliGroup, self).invoke(ctx)
        except click.exceptions.Exit:
            # raise Exit exceptions unmodified (e.g., raised on --help)
            raise
        except click.ClickException:
            if ctx and ctx.params.get("debug"):
                click.echo(traceback.format_exc())
            raise
        except Exception as e:
            if ctx and ctx.params.get("debug"):
                click.echo(traceback.format_exc())
            from stackscript.template.errors import TemplateError, TemplateSyntaxError

            if isinstance(e, TemplateSyntaxError) and e.context:
                raise CLIError(f"{e.message}\n{e.context.rstrip()}") from e
            if isinstance(e, TemplateError):
                raise CLIError(e.message) from e
            raise CLIError(str(e)) from e


def _setup_cli_debug() -> None:
    from stackscript.logging.setup import setup_logging_for_cli

    config.DEBUG = True
    os.environ["DEBUG"] = "1"

    setup_logging_for_cli(logging.DEBUG if config.DEBUG else logging.INFO)


def _create_registry():
    from stackscript.drivers.aws import AwsClientFactory, register_aws_drivers
    from stackscript.drivers.registry import DriverRegistry

    return register_aws_drivers(DriverRegistry(), AwsClientFactory())


def _create_store():
    from stackscript.history.store import HistoryStore

    return HistoryStore(config.HISTORY_DIR)


def _parse_pairs(values: Iterable[str], option: str) -> Dict[str, str]:
    result = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key.strip():
            raise CLIError(f"invalid {option} value '{value}', expected KEY=VALUE")
        result[key.strip()] = item.strip()
    return result


def _run_template(template, env, dry_run: bool):
    from stackscript.template.engine import TemplateRunner
    from stackscript.template.errors import TemplateExecutionError

    store = _create_store() if config.SAVE_HISTORY else None
    runner = TemplateRunner(_create_registry(), store=store)
    try:
        execution = runner.run(template, env, dry_run=dry_run)
    except TemplateExecutionError as e:
        if store and not dry_run:
            console.print(f"revert the partial run with: stackscript revert {e.execution.id}")
        raise

    for entry in execution.statements:
        result = "" if entry.result is None else f" -> {entry.result}"
        console.print(f"[green]OK[/green] {entry.statement}{result}", highlight=False)
    return execution


@click.group(
    name="stackscript",
    cls=StackScriptCliGroup,
    help="Run infrastructure templates and revert them",
)
@click.version_option(version=VERSION, message="%(version)s")
@click.option("-d", "--debug", is_flag=True, help="Enable CLI debugging mode")
@click.option("-p", "--profile", type=str, help="Set the configuration profile")
def stackscript(debug: bool, profile: str) -> None:
    # --profile is read from sys.argv before the config is loaded, see cli/main.py
    if debug:
        _setup_cli_debug()
    elif config.SS_LOG:
        from stackscript.logging.setup import setup_logging_from_config

        setup_logging_from_config()


@stackscript.command(name="run", short_help="Run a template")
@click.argument("file", type=click.File("r"))
@click.option("--dry-run", is_flag=True, help="Only check whether the template would succeed")
@click.option(
    "--fill", "fills", multiple=True, metavar="KEY=VALUE", help="Fill the hole {KEY} with VALUE"
)
@click.option(
    "--alias", "aliases", multiple=True, metavar="NAME=ID", help="Resolve the alias @NAME to ID"
)
def cmd_run(file, dry_run: bool, fills: tuple, aliases: tuple) -> None:
    """
    Run the template in FILE. Holes that are not filled with --fill are prompted for. The revert ID printed at the
    end can be used to revert the run.
    """
    from stackscript.template.env import Environment, static_alias_resolver
    from stackscript.template.parser import parse

    template = parse(file.read())

    fillers = _parse_pairs(fills, "--fill")
    for hole in template.holes():
        if not fillers.get(hole):
            fillers[hole] = click.prompt(f"Value for {{{hole}}}", type=str)

    alias_mapping = config.load_aliases()
    alias_mapping.update(_parse_pairs(aliases, "--alias"))
    env = Environment(fillers=fillers, alias_resolver=static_alias_resolver(alias_mapping))

    execution = _run_template(template, env, dry_run)
    if dry_run:
        console.print("dry run successful")
    elif config.SAVE_HISTORY:
        console.print(f"revert ID: [bold]{execution.id}[/bold]")


@stackscript.command(name="revert", short_help="Revert a template run")
@click.argument("revert_id", metavar="REVERTID")
@click.option("--dry-run", is_flag=True, help="Only check whether the revert would succeed")
def cmd_revert(revert_id: str, dry_run: bool) -> None:
    """
    Revert the template run with the given REVERTID: the run's statements are undone in reverse order. The reverted
    template is printed before it is run.
    """
    from stackscript.template.env import Environment
    from stackscript.template.revert import revert

    execution = _create_store().get_template_execution(revert_id)
    result = revert(execution)
    for diagnostic in result.diagnostics:
        console.print(f"[yellow]skipped[/yellow]: {diagnostic.message}", highlight=False)
    if not result.template.statements:
        console.print(f"nothing to revert in {execution.id}")
        return

    console.print(str(result.template), markup=False, highlight=False)
    reverted = _run_template(result.template, Environment(), dry_run)
    if dry_run:
        console.print("dry run successful")
    elif config.SAVE_HISTORY:
        console.print(f"revert ID: [bold]{reverted.id}[/bold]")


@stackscript.command(name="log", short_help="List the stored template runs")
def cmd_log() -> None:
    """
    List the template runs stored in the history, oldest first.
    """
    from rich.table import Table

    table = Table()
    table.add_column("Revert ID")
    table.add_column("Date")
    table.add_column("Statements")
    table.add_column("Status")

    for execution in _create_store().list_executions():
        failed = execution.failed()
        status = "[green]ok[/green]"
        if failed:
            status = f"[red]failed[/red]: {failed.statement}"
        table.add_row(
            execution.id,
            execution.date.strftime("%Y-%m-%d %H:%M:%S"),
            str(len(execution.statements)),
            status,
        )

    console.print(table)


@stackscript.group(name="config", short_help="Manage your stackscript config")
def stackscript_config() -> None:
    pass


@stackscript_config.command(name="show", help="Print the current stackscript config values")
@click.option("--format", type=click.Choice(["table", "plain", "json"]), default="table")
def cmd_config_show(format: str) -> None:
    if format == "json":
        _print_config_json()
    elif format == "plain":
        _print_config_pairs()
    else:
        _print_config_table()


def _print_config_json():
    import json

    items = dict(config.collect_config_items())
    console.print(json.dumps(items), soft_wrap=True, markup=False, highlight=False)


def _print_config_pairs():
    for key, value in config.collect_config_items():
        console.print(f"{key}={value}", soft_wrap=True, markup=False, highlight=False)


def _print_config_table():
    from rich.table import Table

    grid = Table(show_header=True)
    grid.add_column("Key")
    grid.add_column("Value")

    for key, value in config.collect_config_items():
        grid.add_row(key, str(value))

    console.print(grid)
