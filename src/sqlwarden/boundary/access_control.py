"""
Engine-facing access control boundary.

SystemAccessControl is the object the query engine calls. It owns the
implementation built at startup and wraps every entry point so that:

    - the call runs inside a confined execution context, restored on every
      exit path
    - a denial raised inside passes through unchanged
    - a denied CheckResult becomes AccessDeniedError
    - any other failure is logged and becomes the operation's denial
      (filtering operations return their input unchanged instead)

Security Note:
    This module is security-critical. Nothing but AccessDeniedError may
    escape an access check or a masking operation.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from sqlwarden.boundary.context import ConfinedContext
from sqlwarden.boundary.registry import ImplementationRegistry, default_registry
from sqlwarden.core.config import AccessControlConfig
from sqlwarden.errors import AccessDeniedError, PluginInitError
from sqlwarden.schema import (
    CatalogSchemaName,
    CatalogSchemaTableName,
    CheckResult,
    ColumnMetadata,
    ColumnType,
    Denial,
    DeniedOperation,
    Principal,
    Privilege,
    SchemaTableName,
    SecurityContext,
    ViewExpression,
    format_columns,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SystemAccessControl:
    """
    The access control plugin as seen by the engine.

    Usage:
        access_control = SystemAccessControl(AccessControlConfig())
        access_control.check_can_drop_table(ctx, table)  # raises AccessDeniedError

    Attributes:
        config: Plugin configuration the implementation was built from
        implementation: The implementation built at startup
    """

    def __init__(
        self,
        config: AccessControlConfig | None = None,
        registry: ImplementationRegistry | None = None,
    ) -> None:
        """
        Locate and construct the configured implementation.

        Construction runs inside the confined context. Any failure is fatal.

        Raises:
            PluginInitError: If the implementation cannot be located or built
        """
        self.config = config or AccessControlConfig()
        registry = registry or default_registry

        with ConfinedContext("initialize"):
            try:
                factory = registry.get(self.config.implementation)
                self.implementation = factory(self.config.to_config_map())
            except Exception as e:
                logger.error(
                    "Access control implementation %s failed to start: %s",
                    self.config.implementation,
                    e,
                    exc_info=True,
                )
                raise PluginInitError(
                    underlying_error=str(e),
                    source=self.config.implementation,
                ) from e

    def close(self) -> None:
        """Shut the implementation down."""
        with ConfinedContext("close"):
            self.implementation.close()

    # =========================================================================
    # Guards
    # =========================================================================

    def _resolve(self, component: str, name: str) -> Callable[..., Any]:
        """Look up an entry point on the implementation, e.g. mediator.check_can_drop_table."""
        return getattr(getattr(self.implementation, component), name)

    @staticmethod
    def _denial(
        operation: DeniedOperation, targets: Callable[[], tuple[Any, ...]]
    ) -> AccessDeniedError:
        """The operation's denial, unnamed when its targets cannot be formatted."""
        try:
            return AccessDeniedError.for_operation(operation, *targets())
        except Exception:
            logger.warning("Cannot name the targets of %s", operation.value, exc_info=True)
            return AccessDeniedError(
                message=f"Access Denied: {operation.value}",
                denial=Denial(operation=operation),
            )

    def _check(
        self,
        name: str,
        operation: DeniedOperation,
        targets: Callable[[], tuple[Any, ...]],
        *args: Any,
    ) -> None:
        """Run an access check; raise AccessDeniedError unless it allows."""
        with ConfinedContext(name):
            try:
                result: CheckResult = self._resolve("mediator", name)(*args)
                if not result.allowed:
                    raise AccessDeniedError(denial=result.denial)
            except AccessDeniedError:
                raise
            except Exception as e:
                logger.warning(
                    "%s failed, denying %s: %s",
                    name,
                    operation.value,
                    e,
                    exc_info=True,
                )
                raise self._denial(operation, targets) from e

    def _filter(self, name: str, value: T, *args: Any) -> T:
        """Run a filter; on an internal failure return the input unchanged."""
        with ConfinedContext(name):
            try:
                return self._resolve("mediator", name)(*args)
            except AccessDeniedError:
                raise
            except Exception as e:
                logger.warning(
                    "%s failed, returning input unchanged: %s",
                    name,
                    e,
                    exc_info=True,
                )
                return value

    def _mask(
        self,
        name: str,
        operation: DeniedOperation,
        targets: Callable[[], tuple[Any, ...]],
        *args: Any,
    ) -> ViewExpression:
        with ConfinedContext(name):
            try:
                return self._resolve("masking", name)(*args)
            except AccessDeniedError:
                raise
            except Exception as e:
                logger.warning(
                    "%s failed, denying %s: %s",
                    name,
                    operation.value,
                    e,
                    exc_info=True,
                )
                raise self._denial(operation, targets) from e

    # =========================================================================
    # Session, identity and query
    # =========================================================================

    def check_can_set_system_session_property(
        self, ctx: SecurityContext, property_name: str
    ) -> None:
        self._check(
            "check_can_set_system_session_property",
            DeniedOperation.SET_SYSTEM_SESSION_PROPERTY,
            lambda: (property_name,),
            ctx,
            property_name,
        )

    def check_can_set_catalog_session_property(
        self, ctx: SecurityContext, catalog: str, property_name: str
    ) -> None:
        self._check(
            "check_can_set_catalog_session_property",
            DeniedOperation.SET_CATALOG_SESSION_PROPERTY,
            lambda: (catalog, property_name),
            ctx,
            catalog,
            property_name,
        )

    def check_can_impersonate_user(self, ctx: SecurityContext, user: str) -> None:
        self._check(
            "check_can_impersonate_user",
            DeniedOperation.IMPERSONATE_USER,
            lambda: (ctx.identity.user, user),
            ctx,
            user,
        )

    def check_can_view_query_owned_by(self, ctx: SecurityContext, owner: str) -> None:
        self._check(
            "check_can_view_query_owned_by",
            DeniedOperation.IMPERSONATE_USER,
            lambda: (ctx.identity.user, owner),
            ctx,
            owner,
        )

    def check_can_kill_query_owned_by(self, ctx: SecurityContext, owner: str) -> None:
        self._check(
            "check_can_kill_query_owned_by",
            DeniedOperation.IMPERSONATE_USER,
            lambda: (ctx.identity.user, owner),
            ctx,
            owner,
        )

    def check_can_execute_query(self, ctx: SecurityContext) -> None:
        self._check(
            "check_can_execute_query",
            DeniedOperation.EXECUTE_QUERY,
            lambda: (),
            ctx,
        )

    def check_can_set_user(self, principal: str | None, user: str) -> None:
        self._check(
            "check_can_set_user",
            DeniedOperation.SET_USER,
            lambda: (principal, user),
            principal,
            user,
        )

    # =========================================================================
    # Catalog and schema
    # =========================================================================

    def check_can_access_catalog(self, ctx: SecurityContext, catalog: str) -> None:
        self._check(
            "check_can_access_catalog",
            DeniedOperation.ACCESS_CATALOG,
            lambda: (catalog,),
            ctx,
            catalog,
        )

    def check_can_show_roles(self, ctx: SecurityContext, catalog: str) -> None:
        self._check(
            "check_can_show_roles",
            DeniedOperation.SHOW_ROLES,
            lambda: (catalog,),
            ctx,
            catalog,
        )

    def check_can_show_schemas(self, ctx: SecurityContext, catalog: str) -> None:
        self._check(
            "check_can_show_schemas",
            DeniedOperation.SHOW_SCHEMAS,
            lambda: (catalog,),
            ctx,
            catalog,
        )

    def check_can_show_tables(self, ctx: SecurityContext, schema: CatalogSchemaName) -> None:
        self._check(
            "check_can_show_tables",
            DeniedOperation.SHOW_TABLES,
            lambda: (schema,),
            ctx,
            schema,
        )

    def check_can_create_schema(self, ctx: SecurityContext, schema: CatalogSchemaName) -> None:
        self._check(
            "check_can_create_schema",
            DeniedOperation.CREATE_SCHEMA,
            lambda: (schema.schema_name,),
            ctx,
            schema,
        )

    def check_can_drop_schema(self, ctx: SecurityContext, schema: CatalogSchemaName) -> None:
        self._check(
            "check_can_drop_schema",
            DeniedOperation.DROP_SCHEMA,
            lambda: (schema.schema_name,),
            ctx,
            schema,
        )

    def check_can_rename_schema(
        self, ctx: SecurityContext, schema: CatalogSchemaName, new_schema_name: str
    ) -> None:
        self._check(
            "check_can_rename_schema",
            DeniedOperation.RENAME_SCHEMA,
            lambda: (schema.schema_name, new_schema_name),
            ctx,
            schema,
            new_schema_name,
        )

    # =========================================================================
    # Tables
    # =========================================================================

    def check_can_show_create_table(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> None:
        self._check(
            "check_can_show_create_table",
            DeniedOperation.SHOW_CREATE_TABLE,
            lambda: (table,),
            ctx,
            table,
        )

    def check_can_show_columns(self, ctx: SecurityContext, table: CatalogSchemaTableName) -> None:
        self._check(
            "check_can_show_columns",
            DeniedOperation.SHOW_COLUMNS,
            lambda: (table,),
            ctx,
            table,
        )

    def check_can_create_table(self, ctx: SecurityContext, table: CatalogSchemaTableName) -> None:
        self._check(
            "check_can_create_table",
            DeniedOperation.CREATE_TABLE,
            lambda: (table.table,),
            ctx,
            table,
        )

    def check_can_drop_table(self, ctx: SecurityContext, table: CatalogSchemaTableName) -> None:
        self._check(
            "check_can_drop_table",
            DeniedOperation.DROP_TABLE,
            lambda: (table.table,),
            ctx,
            table,
        )

    def check_can_rename_table(
        self,
        ctx: SecurityContext,
        table: CatalogSchemaTableName,
        new_table: CatalogSchemaTableName,
    ) -> None:
        self._check(
            "check_can_rename_table",
            DeniedOperation.RENAME_TABLE,
            lambda: (table.table, new_table.table),
            ctx,
            table,
            new_table,
        )

    def check_can_insert_into_table(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> None:
        self._check(
            "check_can_insert_into_table",
            DeniedOperation.INSERT_TABLE,
            lambda: (table.table,),
            ctx,
            table,
        )

    def check_can_delete_from_table(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> None:
        self._check(
            "check_can_delete_from_table",
            DeniedOperation.DELETE_TABLE,
            lambda: (table.table,),
            ctx,
            table,
        )

    def check_can_add_column(self, ctx: SecurityContext, table: CatalogSchemaTableName) -> None:
        self._check(
            "check_can_add_column",
            DeniedOperation.ADD_COLUMN,
            lambda: (table.table,),
            ctx,
            table,
        )

    def check_can_drop_column(self, ctx: SecurityContext, table: CatalogSchemaTableName) -> None:
        self._check(
            "check_can_drop_column",
            DeniedOperation.DROP_COLUMN,
            lambda: (table.table,),
            ctx,
            table,
        )

    def check_can_rename_column(self, ctx: SecurityContext, table: CatalogSchemaTableName) -> None:
        self._check(
            "check_can_rename_column",
            DeniedOperation.RENAME_COLUMN,
            lambda: (table.table,),
            ctx,
            table,
        )

    def check_can_set_table_comment(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> None:
        self._check(
            "check_can_set_table_comment",
            DeniedOperation.COMMENT_TABLE,
            lambda: (table,),
            ctx,
            table,
        )

    def check_can_select_from_columns(
        self, ctx: SecurityContext, table: CatalogSchemaTableName, columns: set[str]
    ) -> None:
        self._check(
            "check_can_select_from_columns",
            DeniedOperation.SELECT_COLUMNS,
            lambda: (table.table, format_columns(columns)),
            ctx,
            table,
            columns,
        )

    # =========================================================================
    # Views
    # =========================================================================

    def check_can_create_view(self, ctx: SecurityContext, view: CatalogSchemaTableName) -> None:
        self._check(
            "check_can_create_view",
            DeniedOperation.CREATE_VIEW,
            lambda: (view.table,),
            ctx,
            view,
        )

    def check_can_create_view_with_select_from_columns(
        self, ctx: SecurityContext, table: CatalogSchemaTableName, columns: set[str]
    ) -> None:
        self._check(
            "check_can_create_view_with_select_from_columns",
            DeniedOperation.CREATE_VIEW_WITH_SELECT,
            lambda: (table.table, ctx.identity.user),
            ctx,
            table,
            columns,
        )

    def check_can_drop_view(self, ctx: SecurityContext, view: CatalogSchemaTableName) -> None:
        self._check(
            "check_can_drop_view",
            DeniedOperation.DROP_VIEW,
            lambda: (view.table,),
            ctx,
            view,
        )

    def check_can_rename_view(
        self,
        ctx: SecurityContext,
        view: CatalogSchemaTableName,
        new_view: CatalogSchemaTableName,
    ) -> None:
        self._check(
            "check_can_rename_view",
            DeniedOperation.RENAME_VIEW,
            lambda: (view, new_view),
            ctx,
            view,
            new_view,
        )

    # =========================================================================
    # Privileges
    # =========================================================================

    def check_can_grant_table_privilege(
        self,
        ctx: SecurityContext,
        privilege: Privilege,
        table: CatalogSchemaTableName,
        grantee: Principal,
        with_grant_option: bool,
    ) -> None:
        self._check(
            "check_can_grant_table_privilege",
            DeniedOperation.GRANT_TABLE_PRIVILEGE,
            lambda: (privilege.value, table),
            ctx,
            privilege,
            table,
            grantee,
            with_grant_option,
        )

    def check_can_revoke_table_privilege(
        self,
        ctx: SecurityContext,
        privilege: Privilege,
        table: CatalogSchemaTableName,
        revokee: Principal,
        grant_option_for: bool,
    ) -> None:
        self._check(
            "check_can_revoke_table_privilege",
            DeniedOperation.REVOKE_TABLE_PRIVILEGE,
            lambda: (privilege.value, table),
            ctx,
            privilege,
            table,
            revokee,
            grant_option_for,
        )

    # =========================================================================
    # Filtering
    # =========================================================================

    def filter_catalogs(self, ctx: SecurityContext, catalogs: set[str]) -> set[str]:
        return self._filter("filter_catalogs", catalogs, ctx, catalogs)

    def filter_schemas(self, ctx: SecurityContext, catalog: str, schemas: set[str]) -> set[str]:
        return self._filter("filter_schemas", schemas, ctx, catalog, schemas)

    def filter_tables(
        self, ctx: SecurityContext, catalog: str, tables: set[SchemaTableName]
    ) -> set[SchemaTableName]:
        return self._filter("filter_tables", tables, ctx, catalog, tables)

    def filter_columns(
        self,
        ctx: SecurityContext,
        table: CatalogSchemaTableName,
        columns: list[ColumnMetadata],
    ) -> list[ColumnMetadata]:
        return self._filter("filter_columns", columns, ctx, table, columns)

    def filter_view_query_owned_by(self, ctx: SecurityContext, owners: set[str]) -> set[str] | None:
        return self._filter("filter_view_query_owned_by", owners, ctx, owners)

    # =========================================================================
    # Row filters and column masks
    # =========================================================================

    def get_row_filter(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> ViewExpression:
        return self._mask(
            "get_row_filter",
            DeniedOperation.SELECT_TABLE,
            lambda: (table,),
            ctx,
            table,
        )

    def get_column_mask(
        self,
        ctx: SecurityContext,
        table: CatalogSchemaTableName,
        column_name: str,
        column_type: ColumnType,
    ) -> ViewExpression:
        return self._mask(
            "get_column_mask",
            DeniedOperation.SELECT_COLUMNS,
            lambda: (table.table, format_columns([column_name])),
            ctx,
            table,
            column_name,
            column_type,
        )
