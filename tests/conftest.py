"""
Pytest configuration and fixtures for sqlwarden tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

from collections.abc import Generator
from pathlib import Path

import pytest

from sqlwarden.access.plugin import PolicyAccessControl
from sqlwarden.boundary.access_control import SystemAccessControl
from sqlwarden.boundary.registry import ImplementationRegistry
from sqlwarden.core.config import AccessControlConfig
from sqlwarden.evaluator.base import PolicyEvaluator
from sqlwarden.schema import (
    AccessRequest,
    AccessType,
    CatalogSchemaName,
    CatalogSchemaTableName,
    DeniedOperation,
    FilterDescriptor,
    Identity,
    MaskDescriptor,
    Principal,
    Privilege,
    SecurityContext,
)


class RecordingEvaluator(PolicyEvaluator):
    """
    In-memory evaluator that records every request it sees.

    Allows everything unless told otherwise. deny() adds a rule matching
    an action on a resource display name; error makes every call fail.
    """

    def __init__(
        self,
        allowed: bool = True,
        row_filter: FilterDescriptor | None = None,
        data_mask: MaskDescriptor | None = None,
        error: Exception | None = None,
    ) -> None:
        self.allowed = allowed
        self.row_filter = row_filter
        self.data_mask = data_mask
        self.error = error
        self.denied: set[tuple[AccessType, str]] = set()
        self.requests: list[AccessRequest] = []
        self.init_calls: list[tuple[str, str]] = []
        self.closed = False

    def deny(self, access_type: AccessType, display_name: str) -> "RecordingEvaluator":
        self.denied.add((access_type, display_name))
        return self

    def init(self, service_type: str, app_id: str) -> None:
        self.init_calls.append((service_type, app_id))

    def is_allowed(self, request: AccessRequest) -> bool:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if (request.access_type, request.resource.display_name) in self.denied:
            return False
        return self.allowed

    def evaluate_row_filter_policies(self, request: AccessRequest) -> FilterDescriptor | None:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.row_filter

    def evaluate_data_mask_policies(self, request: AccessRequest) -> MaskDescriptor | None:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.data_mask

    def close(self) -> None:
        self.closed = True


def registry_for(evaluator: PolicyEvaluator) -> ImplementationRegistry:
    """Registry whose "policy" implementation uses the given evaluator."""
    registry = ImplementationRegistry()
    registry.register(
        "policy",
        lambda config_map: PolicyAccessControl(config_map, evaluator=evaluator),
    )
    return registry


def check_calls(ctx: SecurityContext, orders: CatalogSchemaTableName) -> dict:
    """Every evaluator-backed check: name -> (call, denied operation, denial targets)."""
    sales = CatalogSchemaName("hive", "sales")
    moved = CatalogSchemaTableName("hive", "sales", "orders_old")
    bob = Principal(name="bob")
    return {
        "check_can_set_system_session_property": (
            lambda ac: ac.check_can_set_system_session_property(ctx, "query_max_memory"),
            DeniedOperation.SET_SYSTEM_SESSION_PROPERTY, ("query_max_memory",)),
        "check_can_set_catalog_session_property": (
            lambda ac: ac.check_can_set_catalog_session_property(ctx, "hive", "bucketing"),
            DeniedOperation.SET_CATALOG_SESSION_PROPERTY, ("hive", "bucketing")),
        "check_can_impersonate_user": (
            lambda ac: ac.check_can_impersonate_user(ctx, "bob"),
            DeniedOperation.IMPERSONATE_USER, ("alice", "bob")),
        "check_can_view_query_owned_by": (
            lambda ac: ac.check_can_view_query_owned_by(ctx, "bob"),
            DeniedOperation.IMPERSONATE_USER, ("alice", "bob")),
        "check_can_kill_query_owned_by": (
            lambda ac: ac.check_can_kill_query_owned_by(ctx, "bob"),
            DeniedOperation.IMPERSONATE_USER, ("alice", "bob")),
        "check_can_access_catalog": (
            lambda ac: ac.check_can_access_catalog(ctx, "hive"),
            DeniedOperation.ACCESS_CATALOG, ("hive",)),
        "check_can_show_roles": (
            lambda ac: ac.check_can_show_roles(ctx, "hive"),
            DeniedOperation.SHOW_ROLES, ("hive",)),
        "check_can_show_schemas": (
            lambda ac: ac.check_can_show_schemas(ctx, "hive"),
            DeniedOperation.SHOW_SCHEMAS, ("hive",)),
        "check_can_show_tables": (
            lambda ac: ac.check_can_show_tables(ctx, sales),
            DeniedOperation.SHOW_TABLES, ("hive.sales",)),
        "check_can_create_schema": (
            lambda ac: ac.check_can_create_schema(ctx, sales),
            DeniedOperation.CREATE_SCHEMA, ("sales",)),
        "check_can_drop_schema": (
            lambda ac: ac.check_can_drop_schema(ctx, sales),
            DeniedOperation.DROP_SCHEMA, ("sales",)),
        "check_can_rename_schema": (
            lambda ac: ac.check_can_rename_schema(ctx, sales, "sales2"),
            DeniedOperation.RENAME_SCHEMA, ("sales", "sales2")),
        "check_can_show_create_table": (
            lambda ac: ac.check_can_show_create_table(ctx, orders),
            DeniedOperation.SHOW_CREATE_TABLE, ("hive.sales.orders",)),
        "check_can_show_columns": (
            lambda ac: ac.check_can_show_columns(ctx, orders),
            DeniedOperation.SHOW_COLUMNS, ("hive.sales.orders",)),
        "check_can_create_table": (
            lambda ac: ac.check_can_create_table(ctx, orders),
            DeniedOperation.CREATE_TABLE, ("orders",)),
        "check_can_drop_table": (
            lambda ac: ac.check_can_drop_table(ctx, orders),
            DeniedOperation.DROP_TABLE, ("orders",)),
        "check_can_rename_table": (
            lambda ac: ac.check_can_rename_table(ctx, orders, moved),
            DeniedOperation.RENAME_TABLE, ("orders", "orders_old")),
        "check_can_insert_into_table": (
            lambda ac: ac.check_can_insert_into_table(ctx, orders),
            DeniedOperation.INSERT_TABLE, ("orders",)),
        "check_can_delete_from_table": (
            lambda ac: ac.check_can_delete_from_table(ctx, orders),
            DeniedOperation.DELETE_TABLE, ("orders",)),
        "check_can_add_column": (
            lambda ac: ac.check_can_add_column(ctx, orders),
            DeniedOperation.ADD_COLUMN, ("orders",)),
        "check_can_drop_column": (
            lambda ac: ac.check_can_drop_column(ctx, orders),
            DeniedOperation.DROP_COLUMN, ("orders",)),
        "check_can_rename_column": (
            lambda ac: ac.check_can_rename_column(ctx, orders),
            DeniedOperation.RENAME_COLUMN, ("orders",)),
        "check_can_set_table_comment": (
            lambda ac: ac.check_can_set_table_comment(ctx, orders),
            DeniedOperation.COMMENT_TABLE, ("hive.sales.orders",)),
        "check_can_select_from_columns": (
            lambda ac: ac.check_can_select_from_columns(ctx, orders, {"ssn", "id"}),
            DeniedOperation.SELECT_COLUMNS, ("orders", "[id, ssn]")),
        "check_can_create_view": (
            lambda ac: ac.check_can_create_view(ctx, orders),
            DeniedOperation.CREATE_VIEW, ("orders",)),
        "check_can_create_view_with_select_from_columns": (
            lambda ac: ac.check_can_create_view_with_select_from_columns(ctx, orders, {"id"}),
            DeniedOperation.CREATE_VIEW_WITH_SELECT, ("orders", "alice")),
        "check_can_drop_view": (
            lambda ac: ac.check_can_drop_view(ctx, orders),
            DeniedOperation.DROP_VIEW, ("orders",)),
        "check_can_rename_view": (
            lambda ac: ac.check_can_rename_view(ctx, orders, moved),
            DeniedOperation.RENAME_VIEW, ("hive.sales.orders", "hive.sales.orders_old")),
        "check_can_grant_table_privilege": (
            lambda ac: ac.check_can_grant_table_privilege(ctx, Privilege.DELETE, orders, bob, False),
            DeniedOperation.GRANT_TABLE_PRIVILEGE, ("DELETE", "hive.sales.orders")),
        "check_can_revoke_table_privilege": (
            lambda ac: ac.check_can_revoke_table_privilege(ctx, Privilege.DELETE, orders, bob, False),
            DeniedOperation.REVOKE_TABLE_PRIVILEGE, ("DELETE", "hive.sales.orders")),
    }




@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every test in an empty directory with no SQLWARDEN_ environment."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "SQLWARDEN_KEYTAB",
        "SQLWARDEN_PRINCIPAL",
        "SQLWARDEN_USE_GROUP_LOOKUP",
        "SQLWARDEN_SITE_CONFIG",
        "SQLWARDEN_IMPLEMENTATION",
        "SQLWARDEN_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def evaluator() -> RecordingEvaluator:
    return RecordingEvaluator()


@pytest.fixture
def ctx() -> SecurityContext:
    """Security context for alice, member of analysts."""
    return SecurityContext(identity=Identity(user="alice", groups=frozenset({"analysts"})))


@pytest.fixture
def orders() -> CatalogSchemaTableName:
    return CatalogSchemaTableName("hive", "sales", "orders")


@pytest.fixture
def access_control(evaluator: RecordingEvaluator) -> Generator[SystemAccessControl, None, None]:
    """SystemAccessControl backed by the recording evaluator."""
    ac = SystemAccessControl(AccessControlConfig(), registry=registry_for(evaluator))
    yield ac
    ac.close()


@pytest.fixture
def site_config_yaml() -> str:
    """Return a site config YAML for testing."""
    return """
evaluator_url: "http://pdp.example:6080"
timeout_seconds: 5
service_type: trino
app_id: warehouse
headers:
  X-Cluster: test
"""
