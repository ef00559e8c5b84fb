"""
Access Mediator for sqlwarden.

Maps every controllable engine operation to a resource and an action,
asks the policy evaluator, and returns the verdict as a CheckResult.

How it works:
    1. Build the resource for the operation's target (sqlwarden.resources)
    2. Build a fresh AccessRequest for the requesting user
    3. Ask evaluator.is_allowed(request)
    4. Return CheckResult.allow() or a denial naming the operation and target

Design Principles:
    - No policy semantics: the evaluator decides, the mediator only shapes
      requests and interprets verdicts
    - No caching: every check goes to the evaluator
    - Evaluator errors propagate; the boundary turns them into denials

Display names:
    Denials name schemas, tables and views by their short name where the
    message says "name" (e.g. DROP_TABLE("orders")) and by their dotted
    qualified name otherwise (e.g. SHOW_COLUMNS("hive.sales.orders")).
"""

import logging
from collections.abc import Iterable

from sqlwarden.access.requests import RequestFactory
from sqlwarden.evaluator.base import PolicyEvaluator
from sqlwarden.resources import (
    catalog_resource,
    column_resources,
    schema_resource,
    schema_resource_for,
    session_property_resource,
    system_property_resource,
    table_resource_for,
    user_resource,
)
from sqlwarden.schema import (
    AccessType,
    CatalogSchemaName,
    CatalogSchemaTableName,
    CheckResult,
    ColumnMetadata,
    Denial,
    DeniedOperation,
    Principal,
    Privilege,
    Resource,
    SchemaTableName,
    SecurityContext,
    format_columns,
)

logger = logging.getLogger(__name__)


class AccessMediator:
    """
    One check per controllable engine operation.

    Usage:
        mediator = AccessMediator(evaluator, RequestFactory("presto", "presto"))
        result = mediator.check_can_drop_table(ctx, table)
        if not result.allowed:
            raise AccessDeniedError(denial=result.denial)

    Attributes:
        evaluator: The policy decision point
        requests: Builds the AccessRequest for each check
    """

    def __init__(self, evaluator: PolicyEvaluator, requests: RequestFactory) -> None:
        self.evaluator = evaluator
        self.requests = requests

    def _check(
        self,
        ctx: SecurityContext,
        resource: Resource,
        access_type: AccessType,
        operation: DeniedOperation,
        *targets: object,
    ) -> CheckResult:
        """Evaluate one resource and action, denying with the given operation."""
        if self._is_allowed(ctx, resource, access_type):
            return CheckResult.allow()
        return self._deny(ctx, operation, *targets)

    def _is_allowed(
        self,
        ctx: SecurityContext,
        resource: Resource,
        access_type: AccessType,
    ) -> bool:
        request = self.requests.create(ctx.identity, resource, access_type)
        return self.evaluator.is_allowed(request)

    def _deny(
        self,
        ctx: SecurityContext,
        operation: DeniedOperation,
        *targets: object,
    ) -> CheckResult:
        denial = Denial(operation=operation, targets=tuple(str(t) for t in targets))
        logger.info(
            "Denied %s for user %s: %s",
            operation.value,
            ctx.identity.user,
            denial.message,
        )
        return CheckResult(allowed=False, denial=denial)

    # =========================================================================
    # Session, identity and query checks
    # =========================================================================

    def check_can_set_system_session_property(
        self, ctx: SecurityContext, property_name: str
    ) -> CheckResult:
        return self._check(
            ctx,
            system_property_resource(property_name),
            AccessType.ALTER,
            DeniedOperation.SET_SYSTEM_SESSION_PROPERTY,
            property_name,
        )

    def check_can_set_catalog_session_property(
        self, ctx: SecurityContext, catalog: str, property_name: str
    ) -> CheckResult:
        return self._check(
            ctx,
            session_property_resource(catalog, property_name),
            AccessType.ALTER,
            DeniedOperation.SET_CATALOG_SESSION_PROPERTY,
            catalog,
            property_name,
        )

    def check_can_impersonate_user(self, ctx: SecurityContext, user: str) -> CheckResult:
        return self._check(
            ctx,
            user_resource(user),
            AccessType.IMPERSONATE,
            DeniedOperation.IMPERSONATE_USER,
            ctx.identity.user,
            user,
        )

    def check_can_view_query_owned_by(self, ctx: SecurityContext, owner: str) -> CheckResult:
        """Viewing another user's query requires impersonating that user."""
        return self._check(
            ctx,
            user_resource(owner),
            AccessType.IMPERSONATE,
            DeniedOperation.IMPERSONATE_USER,
            ctx.identity.user,
            owner,
        )

    def check_can_kill_query_owned_by(self, ctx: SecurityContext, owner: str) -> CheckResult:
        """Killing another user's query requires impersonating that user."""
        return self._check(
            ctx,
            user_resource(owner),
            AccessType.IMPERSONATE,
            DeniedOperation.IMPERSONATE_USER,
            ctx.identity.user,
            owner,
        )

    def check_can_execute_query(self, ctx: SecurityContext) -> CheckResult:
        return CheckResult.allow()

    def check_can_set_user(self, principal: str | None, user: str) -> CheckResult:
        """Legacy check, always allowed."""
        return CheckResult.allow()

    # =========================================================================
    # Catalog and schema checks
    # =========================================================================

    def check_can_access_catalog(self, ctx: SecurityContext, catalog: str) -> CheckResult:
        return self._check(
            ctx,
            catalog_resource(catalog),
            AccessType.USE,
            DeniedOperation.ACCESS_CATALOG,
            catalog,
        )

    def check_can_show_roles(self, ctx: SecurityContext, catalog: str) -> CheckResult:
        return self._check(
            ctx,
            catalog_resource(catalog),
            AccessType.SHOW,
            DeniedOperation.SHOW_ROLES,
            catalog,
        )

    def check_can_show_schemas(self, ctx: SecurityContext, catalog: str) -> CheckResult:
        return self._check(
            ctx,
            catalog_resource(catalog),
            AccessType.SHOW,
            DeniedOperation.SHOW_SCHEMAS,
            catalog,
        )

    def check_can_show_tables(self, ctx: SecurityContext, schema: CatalogSchemaName) -> CheckResult:
        return self._check(
            ctx,
            schema_resource_for(schema),
            AccessType.SHOW,
            DeniedOperation.SHOW_TABLES,
            schema,
        )

    def check_can_create_schema(
        self, ctx: SecurityContext, schema: CatalogSchemaName
    ) -> CheckResult:
        """Creating a schema is a CREATE on its catalog."""
        return self._check(
            ctx,
            catalog_resource(schema.catalog),
            AccessType.CREATE,
            DeniedOperation.CREATE_SCHEMA,
            schema.schema_name,
        )

    def check_can_drop_schema(self, ctx: SecurityContext, schema: CatalogSchemaName) -> CheckResult:
        return self._check(
            ctx,
            schema_resource_for(schema),
            AccessType.DROP,
            DeniedOperation.DROP_SCHEMA,
            schema.schema_name,
        )

    def check_can_rename_schema(
        self, ctx: SecurityContext, schema: CatalogSchemaName, new_schema_name: str
    ) -> CheckResult:
        return self._check(
            ctx,
            schema_resource_for(schema),
            AccessType.ALTER,
            DeniedOperation.RENAME_SCHEMA,
            schema.schema_name,
            new_schema_name,
        )

    # =========================================================================
    # Table checks
    # =========================================================================

    def check_can_show_create_table(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.SHOW,
            DeniedOperation.SHOW_CREATE_TABLE,
            table,
        )

    def check_can_show_columns(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.SHOW,
            DeniedOperation.SHOW_COLUMNS,
            table,
        )

    def check_can_create_table(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        """Creating a table is a CREATE on its schema."""
        return self._check(
            ctx,
            schema_resource(table.catalog, table.schema_name),
            AccessType.CREATE,
            DeniedOperation.CREATE_TABLE,
            table.table,
        )

    def check_can_drop_table(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.DROP,
            DeniedOperation.DROP_TABLE,
            table.table,
        )

    def check_can_rename_table(
        self,
        ctx: SecurityContext,
        table: CatalogSchemaTableName,
        new_table: CatalogSchemaTableName,
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.ALTER,
            DeniedOperation.RENAME_TABLE,
            table.table,
            new_table.table,
        )

    def check_can_insert_into_table(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.INSERT,
            DeniedOperation.INSERT_TABLE,
            table.table,
        )

    def check_can_delete_from_table(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.DELETE,
            DeniedOperation.DELETE_TABLE,
            table.table,
        )

    def check_can_add_column(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.ALTER,
            DeniedOperation.ADD_COLUMN,
            table.table,
        )

    def check_can_drop_column(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.DROP,
            DeniedOperation.DROP_COLUMN,
            table.table,
        )

    def check_can_rename_column(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.ALTER,
            DeniedOperation.RENAME_COLUMN,
            table.table,
        )

    def check_can_set_table_comment(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.ALTER,
            DeniedOperation.COMMENT_TABLE,
            table,
        )

    def check_can_select_from_columns(
        self,
        ctx: SecurityContext,
        table: CatalogSchemaTableName,
        columns: Iterable[str],
    ) -> CheckResult:
        """
        Check SELECT on every requested column.

        The first denied column aborts the check; the denial names the whole
        requested column set, not just the failing column.
        """
        requested = list(columns)
        for resource in column_resources(table, requested):
            if not self._is_allowed(ctx, resource, AccessType.SELECT):
                return self._deny(
                    ctx,
                    DeniedOperation.SELECT_COLUMNS,
                    table.table,
                    format_columns(requested),
                )
        return CheckResult.allow()

    # =========================================================================
    # View checks
    # =========================================================================

    def check_can_create_view(
        self, ctx: SecurityContext, view: CatalogSchemaTableName
    ) -> CheckResult:
        """Creating a view is a CREATE on its schema."""
        return self._check(
            ctx,
            schema_resource(view.catalog, view.schema_name),
            AccessType.CREATE,
            DeniedOperation.CREATE_VIEW,
            view.table,
        )

    def check_can_create_view_with_select_from_columns(
        self,
        ctx: SecurityContext,
        table: CatalogSchemaTableName,
        columns: Iterable[str],
    ) -> CheckResult:
        """
        Delegates to the create-view check on the table.

        A denied delegate is reported as a create-view-with-select denial
        naming the view owner.
        """
        result = self.check_can_create_view(ctx, table)
        if result.allowed:
            return result
        return self._deny(
            ctx,
            DeniedOperation.CREATE_VIEW_WITH_SELECT,
            table.table,
            ctx.identity.user,
        )

    def check_can_drop_view(
        self, ctx: SecurityContext, view: CatalogSchemaTableName
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(view),
            AccessType.DROP,
            DeniedOperation.DROP_VIEW,
            view.table,
        )

    def check_can_rename_view(
        self,
        ctx: SecurityContext,
        view: CatalogSchemaTableName,
        new_view: CatalogSchemaTableName,
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(view),
            AccessType.ALTER,
            DeniedOperation.RENAME_VIEW,
            view,
            new_view,
        )

    # =========================================================================
    # Privilege checks
    # =========================================================================

    def check_can_grant_table_privilege(
        self,
        ctx: SecurityContext,
        privilege: Privilege,
        table: CatalogSchemaTableName,
        grantee: Principal,
        with_grant_option: bool,
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.GRANT,
            DeniedOperation.GRANT_TABLE_PRIVILEGE,
            privilege.value,
            table,
        )

    def check_can_revoke_table_privilege(
        self,
        ctx: SecurityContext,
        privilege: Privilege,
        table: CatalogSchemaTableName,
        revokee: Principal,
        grant_option_for: bool,
    ) -> CheckResult:
        return self._check(
            ctx,
            table_resource_for(table),
            AccessType.REVOKE,
            DeniedOperation.REVOKE_TABLE_PRIVILEGE,
            privilege.value,
            table,
        )

    # =========================================================================
    # Filtering (pass-through)
    # =========================================================================

    def filter_catalogs(self, ctx: SecurityContext, catalogs: set[str]) -> set[str]:
        return catalogs

    def filter_schemas(
        self, ctx: SecurityContext, catalog: str, schemas: set[str]
    ) -> set[str]:
        return schemas

    def filter_tables(
        self, ctx: SecurityContext, catalog: str, tables: set[SchemaTableName]
    ) -> set[SchemaTableName]:
        return tables

    def filter_columns(
        self,
        ctx: SecurityContext,
        table: CatalogSchemaTableName,
        columns: list[ColumnMetadata],
    ) -> list[ColumnMetadata]:
        return columns

    def filter_view_query_owned_by(self, ctx: SecurityContext, owners: set[str]) -> None:
        # None, not the owner set
        return None
