"""
CLI entry point for sqlwarden.

This module provides the Typer-based command-line interface for sqlwarden.
It drives the same SystemAccessControl the engine uses, so a policy can be
tried out from a shell exactly as the engine would see it.

Commands:
    check        Run one access check (exit 0 allowed, 1 denied)
    row-filter   Show the row filter for a table
    column-mask  Show the column mask for a column
    operations   List the operations `check` understands
    doctor       Check configuration and evaluator reachability

Exit codes:
    0  allowed / ok
    1  denied / a doctor check failed
    2  configuration or usage error
"""

import json
import sys
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sqlwarden import __version__
from sqlwarden.boundary.access_control import SystemAccessControl
from sqlwarden.core.config import (
    AccessControlConfig,
    load_access_control_config,
    load_site_config,
    resolve_site_config_path,
)
from sqlwarden.core.logging import setup_logging
from sqlwarden.errors import AccessDeniedError, SqlWardenError
from sqlwarden.evaluator.http import HttpPolicyEvaluator
from sqlwarden.schema import (
    CatalogSchemaName,
    CatalogSchemaTableName,
    ColumnType,
    Identity,
    Principal,
    Privilege,
    SecurityContext,
)

EXIT_DENIED = 1
EXIT_ERROR = 2

app = typer.Typer(
    name="sqlwarden",
    help="Try access checks, row filters and column masks against the policy evaluator.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]sqlwarden[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            help="Enable sqlwarden logging at this level (e.g. INFO, DEBUG).",
        ),
    ] = None,
) -> None:
    """
    sqlwarden - Policy-evaluator backed access control for SQL engines.
    """
    if log_level:
        setup_logging(log_level)


# =============================================================================
# Operations understood by `check`
# =============================================================================


# Fields whose option name differs from the field name
OPTION_NAMES = {"property_name": "--property", "columns": "--column"}


@dataclass
class CheckTarget:
    """Target options given to `check`, validated per operation."""

    catalog: str | None = None
    schema: str | None = None
    table: str | None = None
    new_name: str | None = None
    columns: list[str] = field(default_factory=list)
    property_name: str | None = None
    target_user: str | None = None
    privilege: str | None = None

    def require(self, name: str) -> Any:
        value = getattr(self, name)
        if not value:
            option = OPTION_NAMES.get(name, "--" + name.replace("_", "-"))
            msg = f"{option} is required for this operation"
            raise ValueError(msg)
        return value

    def schema_name(self) -> CatalogSchemaName:
        parts = self.require("schema").split(".")
        if len(parts) != 2 or not all(parts):
            msg = f"Expected --schema catalog.schema, got: {self.schema}"
            raise ValueError(msg)
        return CatalogSchemaName(parts[0], parts[1])

    def table_name(self) -> CatalogSchemaTableName:
        return CatalogSchemaTableName.parse(self.require("table"))

    def new_table_name(self) -> CatalogSchemaTableName:
        return CatalogSchemaTableName.parse(self.require("new_name"))

    def privilege_value(self) -> Privilege:
        name = self.require("privilege").upper()
        try:
            return Privilege(name)
        except ValueError as e:
            choices = ", ".join(p.value for p in Privilege)
            msg = f"Unknown privilege {name} (expected one of {choices})"
            raise ValueError(msg) from e


CheckRunner = Callable[[SystemAccessControl, SecurityContext, CheckTarget], None]


@dataclass(frozen=True)
class Operation:
    help: str
    run: CheckRunner


OPERATIONS: dict[str, Operation] = {
    "set-system-session-property": Operation(
        "--property",
        lambda ac, ctx, t: ac.check_can_set_system_session_property(ctx, t.require("property_name")),
    ),
    "set-catalog-session-property": Operation(
        "--catalog --property",
        lambda ac, ctx, t: ac.check_can_set_catalog_session_property(
            ctx, t.require("catalog"), t.require("property_name")
        ),
    ),
    "impersonate-user": Operation(
        "--target-user",
        lambda ac, ctx, t: ac.check_can_impersonate_user(ctx, t.require("target_user")),
    ),
    "view-query-owned-by": Operation(
        "--target-user",
        lambda ac, ctx, t: ac.check_can_view_query_owned_by(ctx, t.require("target_user")),
    ),
    "kill-query-owned-by": Operation(
        "--target-user",
        lambda ac, ctx, t: ac.check_can_kill_query_owned_by(ctx, t.require("target_user")),
    ),
    "execute-query": Operation(
        "",
        lambda ac, ctx, t: ac.check_can_execute_query(ctx),
    ),
    "set-user": Operation(
        "--target-user",
        lambda ac, ctx, t: ac.check_can_set_user(ctx.identity.user, t.require("target_user")),
    ),
    "access-catalog": Operation(
        "--catalog",
        lambda ac, ctx, t: ac.check_can_access_catalog(ctx, t.require("catalog")),
    ),
    "show-roles": Operation(
        "--catalog",
        lambda ac, ctx, t: ac.check_can_show_roles(ctx, t.require("catalog")),
    ),
    "show-schemas": Operation(
        "--catalog",
        lambda ac, ctx, t: ac.check_can_show_schemas(ctx, t.require("catalog")),
    ),
    "show-tables": Operation(
        "--schema",
        lambda ac, ctx, t: ac.check_can_show_tables(ctx, t.schema_name()),
    ),
    "create-schema": Operation(
        "--schema",
        lambda ac, ctx, t: ac.check_can_create_schema(ctx, t.schema_name()),
    ),
    "drop-schema": Operation(
        "--schema",
        lambda ac, ctx, t: ac.check_can_drop_schema(ctx, t.schema_name()),
    ),
    "rename-schema": Operation(
        "--schema --new-name",
        lambda ac, ctx, t: ac.check_can_rename_schema(ctx, t.schema_name(), t.require("new_name")),
    ),
    "show-create-table": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_show_create_table(ctx, t.table_name()),
    ),
    "show-columns": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_show_columns(ctx, t.table_name()),
    ),
    "create-table": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_create_table(ctx, t.table_name()),
    ),
    "drop-table": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_drop_table(ctx, t.table_name()),
    ),
    "rename-table": Operation(
        "--table --new-name",
        lambda ac, ctx, t: ac.check_can_rename_table(ctx, t.table_name(), t.new_table_name()),
    ),
    "insert-into-table": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_insert_into_table(ctx, t.table_name()),
    ),
    "delete-from-table": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_delete_from_table(ctx, t.table_name()),
    ),
    "add-column": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_add_column(ctx, t.table_name()),
    ),
    "drop-column": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_drop_column(ctx, t.table_name()),
    ),
    "rename-column": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_rename_column(ctx, t.table_name()),
    ),
    "set-table-comment": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_set_table_comment(ctx, t.table_name()),
    ),
    "select-from-columns": Operation(
        "--table [--column ...]",
        lambda ac, ctx, t: ac.check_can_select_from_columns(ctx, t.table_name(), set(t.columns)),
    ),
    "create-view": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_create_view(ctx, t.table_name()),
    ),
    "create-view-with-select-from-columns": Operation(
        "--table [--column ...]",
        lambda ac, ctx, t: ac.check_can_create_view_with_select_from_columns(
            ctx, t.table_name(), set(t.columns)
        ),
    ),
    "drop-view": Operation(
        "--table",
        lambda ac, ctx, t: ac.check_can_drop_view(ctx, t.table_name()),
    ),
    "rename-view": Operation(
        "--table --new-name",
        lambda ac, ctx, t: ac.check_can_rename_view(ctx, t.table_name(), t.new_table_name()),
    ),
    "grant-table-privilege": Operation(
        "--privilege --table --target-user",
        lambda ac, ctx, t: ac.check_can_grant_table_privilege(
            ctx, t.privilege_value(), t.table_name(), Principal(name=t.require("target_user")), False
        ),
    ),
    "revoke-table-privilege": Operation(
        "--privilege --table --target-user",
        lambda ac, ctx, t: ac.check_can_revoke_table_privilege(
            ctx, t.privilege_value(), t.table_name(), Principal(name=t.require("target_user")), False
        ),
    ),
}


# =============================================================================
# Helpers
# =============================================================================


def _load_config(config_path: Path | None) -> AccessControlConfig:
    if config_path is None:
        return AccessControlConfig()
    return load_access_control_config(config_path)


def _build_access_control(config_path: Path | None) -> SystemAccessControl:
    """Build the access control exactly as the engine would."""
    return SystemAccessControl(_load_config(config_path))


def _security_context(user: str, groups: list[str] | None) -> SecurityContext:
    return SecurityContext(identity=Identity(user=user, groups=frozenset(groups or [])))


def _output_json(output: dict[str, Any]) -> None:
    print(json.dumps(output, indent=2, default=str))


def _fail(json_output: bool, error_type: str, message: str, debug: bool = False) -> None:
    """Report a configuration or usage error and exit."""
    if json_output:
        output: dict[str, Any] = {
            "error": True,
            "error_type": error_type,
            "message": message,
        }
        if debug:
            output["traceback"] = traceback.format_exc()
        _output_json(output)
    else:
        console.print(f"[red]{escape(message)}[/red]")
        if debug:
            console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
    raise typer.Exit(code=EXIT_ERROR)


def _report_denial(json_output: bool, name: str, error: AccessDeniedError) -> None:
    if json_output:
        _output_json({
            "operation": name,
            "allowed": False,
            "denial": error.to_dict(),
        })
    else:
        console.print(f"[red]✗[/red] {name}: [red]{escape(error.message)}[/red]")
    raise typer.Exit(code=EXIT_DENIED)


# Shared options
UserOption = Annotated[str, typer.Option("--user", "-u", help="Requesting user.")]
GroupOption = Annotated[
    Optional[list[str]],
    typer.Option("--group", "-g", help="Group of the requesting user (repeatable)."),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Access control config YAML. Defaults to SQLWARDEN_ environment variables.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output results in JSON format.")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Show full error tracebacks.")]


# =============================================================================
# Commands
# =============================================================================


@app.command()
def check(
    operation: Annotated[str, typer.Argument(help="Operation name (see `sqlwarden operations`).")],
    user: UserOption,
    groups: GroupOption = None,
    catalog: Annotated[Optional[str], typer.Option("--catalog", help="Catalog name.")] = None,
    schema: Annotated[
        Optional[str], typer.Option("--schema", help="Schema as catalog.schema.")
    ] = None,
    table: Annotated[
        Optional[str], typer.Option("--table", help="Table or view as catalog.schema.table.")
    ] = None,
    new_name: Annotated[
        Optional[str], typer.Option("--new-name", help="New name for rename operations.")
    ] = None,
    columns: Annotated[
        Optional[list[str]], typer.Option("--column", help="Column name (repeatable).")
    ] = None,
    property_name: Annotated[
        Optional[str], typer.Option("--property", help="Session property name.")
    ] = None,
    target_user: Annotated[
        Optional[str], typer.Option("--target-user", help="User acted upon.")
    ] = None,
    privilege: Annotated[
        Optional[str], typer.Option("--privilege", help="Table privilege.")
    ] = None,
    config_path: ConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Run one access check through the access control.

    Exits 0 when the operation is allowed and 1 when it is denied.

    Example:
        $ sqlwarden check drop-table --user alice --table hive.sales.orders
    """
    op = OPERATIONS.get(operation)
    if op is None:
        _fail(json_output, "unknown_operation", f"Unknown operation: {operation}")
        return

    target = CheckTarget(
        catalog=catalog,
        schema=schema,
        table=table,
        new_name=new_name,
        columns=list(columns or []),
        property_name=property_name,
        target_user=target_user,
        privilege=privilege,
    )

    try:
        ctx = _security_context(user, groups)
        access_control = _build_access_control(config_path)
    except (SqlWardenError, ValueError) as e:
        _fail(json_output, "config_error", str(e), debug)
        return

    try:
        op.run(access_control, ctx, target)
    except AccessDeniedError as e:
        _report_denial(json_output, operation, e)
    except ValueError as e:
        _fail(json_output, "usage_error", str(e), debug)
    finally:
        access_control.close()

    if json_output:
        _output_json({"operation": operation, "allowed": True, "denial": None})
    else:
        console.print(f"[green]✓[/green] {operation}: [green]allowed[/green]")


def _print_expression(json_output: bool, kind: str, target: str, expression: str | None) -> None:
    if json_output:
        _output_json({kind: target, "expression": expression})
    else:
        shown = escape(expression) if expression is not None else "[dim]none[/dim]"
        console.print(f"{escape(target)}: {shown}")


@app.command("row-filter")
def row_filter(
    table: Annotated[str, typer.Argument(help="Table as catalog.schema.table.")],
    user: UserOption,
    groups: GroupOption = None,
    config_path: ConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Show the row filter predicate applied to a table for a user.

    Example:
        $ sqlwarden row-filter hive.sales.orders --user alice
    """
    try:
        name = CatalogSchemaTableName.parse(table)
        ctx = _security_context(user, groups)
        access_control = _build_access_control(config_path)
    except (SqlWardenError, ValueError) as e:
        _fail(json_output, "config_error", str(e), debug)
        return

    try:
        view = access_control.get_row_filter(ctx, name)
    except AccessDeniedError as e:
        _report_denial(json_output, "row-filter", e)
    finally:
        access_control.close()

    _print_expression(json_output, "table", str(name), view.expression)


@app.command("column-mask")
def column_mask(
    table: Annotated[str, typer.Argument(help="Table as catalog.schema.table.")],
    column: Annotated[str, typer.Argument(help="Column name.")],
    column_type: Annotated[
        str, typer.Option("--type", "-t", help="Column type signature, e.g. varchar(20).")
    ],
    user: UserOption,
    groups: GroupOption = None,
    config_path: ConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Show the mask expression applied to a column for a user.

    Example:
        $ sqlwarden column-mask hive.hr.staff ssn --type "varchar(11)" --user alice
    """
    try:
        name = CatalogSchemaTableName.parse(table)
        signature = ColumnType(signature=column_type)
        ctx = _security_context(user, groups)
        access_control = _build_access_control(config_path)
    except (SqlWardenError, ValueError) as e:
        _fail(json_output, "config_error", str(e), debug)
        return

    try:
        view = access_control.get_column_mask(ctx, name, column, signature)
    except AccessDeniedError as e:
        _report_denial(json_output, "column-mask", e)
    finally:
        access_control.close()

    _print_expression(json_output, "column", f"{name}.{column}", view.expression)


@app.command()
def operations(json_output: JsonOption = False) -> None:
    """List the operations `check` understands and the options each needs."""
    if json_output:
        _output_json({"operations": {name: op.help for name, op in OPERATIONS.items()}})
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Operation", style="cyan")
    table.add_column("Target options")
    for name, op in OPERATIONS.items():
        table.add_row(name, op.help or "[dim]none[/dim]")
    console.print(table)


@app.command()
def doctor(
    config_path: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Check configuration and dependencies.

    Verifies that:
    - Python version is 3.11+
    - The access control config loads
    - The site config resolves and loads
    - The policy evaluator is reachable

    Example:
        $ sqlwarden doctor --config sqlwarden.yaml
    """
    checks: list[dict[str, Any]] = []

    # Check 1: Python version
    py_version = sys.version_info
    py_ok = py_version >= (3, 11)
    checks.append({
        "name": "Python version",
        "ok": py_ok,
        "value": f"{py_version.major}.{py_version.minor}.{py_version.micro}",
        "message": "OK" if py_ok else "Requires Python 3.11+",
    })

    # Check 2: Access control config
    config: AccessControlConfig | None = None
    try:
        config = _load_config(config_path)
        checks.append({
            "name": "Config",
            "ok": True,
            "value": str(config_path) if config_path else "environment",
            "message": f"implementation={config.implementation}",
        })
    except SqlWardenError as e:
        checks.append({
            "name": "Config",
            "ok": False,
            "value": str(config_path),
            "message": e.message,
        })

    # Check 3: Site config
    site_config = None
    if config is not None:
        resolved = resolve_site_config_path(config.site_config)
        try:
            site_config = load_site_config(config.site_config)
            checks.append({
                "name": "Site config",
                "ok": True,
                "value": str(resolved) if resolved else "defaults",
                "message": f"evaluator_url={site_config.evaluator_url}",
            })
        except SqlWardenError as e:
            checks.append({
                "name": "Site config",
                "ok": False,
                "value": str(resolved),
                "message": e.message,
            })

    # Check 4: Evaluator reachability
    if site_config is not None:
        with HttpPolicyEvaluator(site_config) as evaluator:
            reachable, message = evaluator.ping()
        checks.append({
            "name": "Policy evaluator",
            "ok": reachable,
            "value": site_config.evaluator_url,
            "message": message,
        })

    all_ok = all(c["ok"] for c in checks)

    if json_output:
        _output_json({
            "ok": all_ok,
            "version": __version__,
            "checks": checks,
        })
    else:
        console.print(f"[bold]sqlwarden doctor[/bold] v{__version__}")
        console.print()
        for c in checks:
            icon = "[green]✓[/green]" if c["ok"] else "[red]✗[/red]"
            if c["ok"]:
                console.print(f"{icon} {c['name']}: [dim]{c['value']}[/dim] - {c['message']}")
            else:
                console.print(f"{icon} {c['name']}: [dim]{c['value']}[/dim]")
                console.print(f"    [red]{escape(c['message'])}[/red]")
        console.print()
        if all_ok:
            console.print("[green]All checks passed![/green]")
        else:
            console.print("[yellow]Some checks failed. See above for details.[/yellow]")

    raise typer.Exit(code=0 if all_ok else 1)


if __name__ == "__main__":
    app()
