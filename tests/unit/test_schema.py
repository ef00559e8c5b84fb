"""
Tests for sqlwarden schema models.

Tests cover:
- Resource hierarchy and single-kind invariants
- Engine-native names and their display forms
- AccessRequest wire payload
- Denial messages and CheckResult constructors
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from sqlwarden.schema import (
    AccessRequest,
    AccessType,
    CatalogSchemaName,
    CatalogSchemaTableName,
    CheckResult,
    ColumnType,
    Denial,
    DeniedOperation,
    Identity,
    Principal,
    PrincipalType,
    Resource,
    ResourceKind,
    SchemaTableName,
    ViewExpression,
    format_columns,
)


class TestResource:
    """Tests for Resource validation and accessors."""

    def test_table_resource(self) -> None:
        """A full entity path is valid and keeps key order."""
        resource = Resource(values={"catalog": "hive", "schema": "sales", "table": "orders"})
        assert resource.kind == ResourceKind.ENTITY
        assert resource.keys() == ["catalog", "schema", "table"]
        assert resource.catalog == "hive"
        assert resource.schema_name == "sales"
        assert resource.table == "orders"
        assert resource.column is None
        assert resource.display_name == "hive.sales.orders"
        assert str(resource) == "hive.sales.orders"

    def test_schema_requires_catalog(self) -> None:
        with pytest.raises(ValidationError, match="requires 'catalog'"):
            Resource(values={"schema": "sales"})

    def test_column_requires_table(self) -> None:
        with pytest.raises(ValidationError, match="requires 'table'"):
            Resource(values={"catalog": "hive", "schema": "sales", "column": "id"})

    def test_empty_resource_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least one key"):
            Resource(values={})

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Unknown resource key"):
            Resource(values={"database": "x"})

    def test_user_resource_cannot_mix(self) -> None:
        """User resources never carry entity keys."""
        with pytest.raises(ValidationError, match="user resource"):
            Resource(values={"catalog": "hive", "user": "bob"})

    def test_system_property_cannot_mix(self) -> None:
        with pytest.raises(ValidationError, match="system property"):
            Resource(values={"catalog": "hive", "systemproperty": "query_max_memory"})

    def test_session_property_needs_exactly_catalog(self) -> None:
        with pytest.raises(ValidationError, match="session property"):
            Resource(values={"sessionproperty": "x"})
        with pytest.raises(ValidationError, match="session property"):
            Resource(values={"catalog": "hive", "schema": "s", "sessionproperty": "x"})

    def test_kinds(self) -> None:
        assert Resource(values={"user": "bob"}).kind == ResourceKind.USER
        assert Resource(values={"systemproperty": "p"}).kind == ResourceKind.SYSTEM_PROPERTY
        assert (
            Resource(values={"catalog": "hive", "sessionproperty": "p"}).kind
            == ResourceKind.SESSION_PROPERTY
        )

    def test_resource_is_frozen(self) -> None:
        resource = Resource(values={"catalog": "hive"})
        with pytest.raises(ValidationError):
            resource.values = {"catalog": "other"}  # type: ignore[misc]


class TestNames:
    """Tests for engine-native names."""

    def test_catalog_schema_table_name(self) -> None:
        name = CatalogSchemaTableName("hive", "sales", "orders")
        assert str(name) == "hive.sales.orders"
        assert name.schema_name == "sales"
        assert name.schema_table_name == SchemaTableName("sales", "orders")
        assert name.catalog_schema_name == CatalogSchemaName("hive", "sales")

    def test_parse(self) -> None:
        assert CatalogSchemaTableName.parse("a.b.c") == CatalogSchemaTableName("a", "b", "c")

    @pytest.mark.parametrize("text", ["a.b", "a..c", "a.b.c.d", ""])
    def test_parse_rejects_malformed(self, text: str) -> None:
        with pytest.raises(ValueError, match="catalog.schema.table"):
            CatalogSchemaTableName.parse(text)

    def test_names_are_hashable(self) -> None:
        tables = {SchemaTableName("s", "t"), SchemaTableName("s", "t")}
        assert len(tables) == 1

    def test_column_type_base_name(self) -> None:
        assert ColumnType(signature="varchar(20)").base_name == "varchar"
        assert ColumnType(signature="decimal(10,2)").base_name == "decimal"
        assert ColumnType(signature="bigint").base_name == "bigint"

    def test_principal_display(self) -> None:
        assert str(Principal(name="bob")) == "USER bob"
        assert str(Principal(name="admins", type=PrincipalType.ROLE)) == "ROLE admins"


class TestAccessRequest:
    """Tests for AccessRequest."""

    def test_payload(self) -> None:
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
        request = AccessRequest(
            resource=Resource(values={"catalog": "hive"}),
            access_type=AccessType.USE,
            user="alice",
            user_groups=frozenset({"b", "a"}),
            access_time=when,
            service_type="presto",
            app_id="presto",
        )
        assert request.to_payload() == {
            "resource": {"catalog": "hive"},
            "accessType": "use",
            "user": "alice",
            "userGroups": ["a", "b"],
            "accessTime": "2024-01-02T03:04:05+00:00",
            "serviceType": "presto",
            "appId": "presto",
        }

    def test_access_time_defaults_to_now(self) -> None:
        before = datetime.now(UTC)
        request = AccessRequest(
            resource=Resource(values={"catalog": "hive"}),
            access_type=AccessType.SELECT,
            user="alice",
        )
        assert request.access_time >= before
        assert request.to_payload()["userGroups"] is None

    def test_identity_requires_user(self) -> None:
        with pytest.raises(ValidationError):
            Identity(user="")


class TestDenial:
    """Tests for Denial messages and CheckResult."""

    def test_every_operation_has_a_message(self) -> None:
        for operation in DeniedOperation:
            denial = Denial(operation=operation, targets=("a", "b"))
            assert denial.message

    def test_select_columns_message(self) -> None:
        denial = Denial(
            operation=DeniedOperation.SELECT_COLUMNS,
            targets=("orders", format_columns({"b", "a"})),
        )
        assert denial.message == "Cannot select from columns [a, b] in table or view orders"

    def test_create_view_with_select_message(self) -> None:
        denial = Denial(operation=DeniedOperation.CREATE_VIEW_WITH_SELECT, targets=("orders", "alice"))
        assert denial.message == "View owner 'alice' cannot create view that selects from orders"

    def test_allow(self) -> None:
        result = CheckResult.allow()
        assert result.allowed
        assert result.denial is None

    def test_deny_stringifies_targets(self) -> None:
        result = CheckResult.deny(
            DeniedOperation.SHOW_COLUMNS, CatalogSchemaTableName("hive", "sales", "orders")
        )
        assert not result.allowed
        assert result.denial is not None
        assert result.denial.targets == ("hive.sales.orders",)
        assert result.denial.message == "Cannot show columns of table hive.sales.orders"

    def test_denied_result_requires_denial(self) -> None:
        with pytest.raises(ValidationError, match="must carry a denial"):
            CheckResult(allowed=False)


class TestViewExpression:
    def test_schema_alias(self) -> None:
        view = ViewExpression(identity="alice", catalog="hive", schema="sales")
        assert view.schema_name == "sales"
        assert view.expression is None
