"""
Schema definitions for sqlwarden.

This module defines the Pydantic models used throughout sqlwarden:
- Resource/ResourceKey: What an authorization decision is evaluated against
- AccessType/AccessRequest: What is being asked of the policy evaluator
- Identity/SecurityContext: Who is asking
- Engine-native names: Catalogs, schemas, tables, columns as the engine sees them
- FilterDescriptor/MaskDescriptor: What the evaluator answers for row filters and masks
- ViewExpression: The synthesized expression handed back to the engine
- Denial/CheckResult: The typed outcome of an access check

Design Decisions:
    - Models are immutable (frozen=True) and short-lived, one set per engine call
    - Unknown fields are rejected (extra="forbid")
    - Resource hierarchy invariants are validated at construction
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Enums
# =============================================================================


class AccessType(str, Enum):
    """
    The closed set of actions an access request can carry.

    The evaluator receives the lower-case member name (see `wire_name`).
    """

    CREATE = "CREATE"
    DROP = "DROP"
    SELECT = "SELECT"
    INSERT = "INSERT"
    DELETE = "DELETE"
    USE = "USE"
    ALTER = "ALTER"
    ALL = "ALL"
    GRANT = "GRANT"
    REVOKE = "REVOKE"
    SHOW = "SHOW"
    IMPERSONATE = "IMPERSONATE"

    @property
    def wire_name(self) -> str:
        return self.value.lower()


class ResourceKey(str, Enum):
    """Scope keys recognized in a Resource."""

    CATALOG = "catalog"
    SCHEMA = "schema"
    TABLE = "table"
    COLUMN = "column"
    USER = "user"
    SYSTEM_PROPERTY = "systemproperty"
    SESSION_PROPERTY = "sessionproperty"


class ResourceKind(str, Enum):
    """The kind of entity a Resource identifies."""

    ENTITY = "entity"
    USER = "user"
    SYSTEM_PROPERTY = "system_property"
    SESSION_PROPERTY = "session_property"


class PrincipalType(str, Enum):
    USER = "USER"
    ROLE = "ROLE"


class Privilege(str, Enum):
    """Table privileges that can be granted or revoked."""

    CREATE = "CREATE"
    SELECT = "SELECT"
    DELETE = "DELETE"
    INSERT = "INSERT"
    UPDATE = "UPDATE"


# Mask kinds reported by the evaluator, compared case-insensitively
MASK_TYPE_NULL = "MASK_NULL"
MASK_TYPE_CUSTOM = "CUSTOM"

# Expression text used when a mask hides the value entirely
NULL_EXPRESSION = "NULL"


# =============================================================================
# Resource Model
# =============================================================================

_ENTITY_KEYS = (
    ResourceKey.CATALOG,
    ResourceKey.SCHEMA,
    ResourceKey.TABLE,
    ResourceKey.COLUMN,
)


class Resource(BaseModel):
    """
    Hierarchical keyed identifier of an engine entity.

    A resource is an ordered mapping of scope keys to values, e.g.
    {"catalog": "hive", "schema": "sales", "table": "orders"}.

    Invariants:
        - schema requires catalog, table requires schema, column requires table
        - exactly one kind per resource: entity keys are never mixed with
          user or property keys
        - a session property resource holds catalog + sessionproperty only

    Attributes:
        values: Scope key (ResourceKey value) to string value
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    values: dict[str, str] = Field(
        ...,
        description="Ordered mapping of scope key to value",
    )

    @field_validator("values")
    @classmethod
    def validate_keys(cls, v: dict[str, str]) -> dict[str, str]:
        """Only recognized scope keys are accepted."""
        known = {key.value for key in ResourceKey}
        for key in v:
            if key not in known:
                msg = f"Unknown resource key: {key}"
                raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_hierarchy(self) -> "Resource":
        """Enforce the scope hierarchy and the single-kind rule."""
        keys = set(self.values)
        if not keys:
            msg = "Resource must have at least one key"
            raise ValueError(msg)

        if ResourceKey.USER.value in keys and keys != {ResourceKey.USER.value}:
            msg = "A user resource cannot carry other keys"
            raise ValueError(msg)

        if ResourceKey.SYSTEM_PROPERTY.value in keys and keys != {
            ResourceKey.SYSTEM_PROPERTY.value
        }:
            msg = "A system property resource cannot carry other keys"
            raise ValueError(msg)

        if ResourceKey.SESSION_PROPERTY.value in keys and keys != {
            ResourceKey.CATALOG.value,
            ResourceKey.SESSION_PROPERTY.value,
        }:
            msg = "A session property resource holds exactly catalog and sessionproperty"
            raise ValueError(msg)

        # Each entity key requires its parent
        for child, parent in zip(_ENTITY_KEYS[1:], _ENTITY_KEYS[:-1]):
            if child.value in keys and parent.value not in keys:
                msg = f"Resource key '{child.value}' requires '{parent.value}'"
                raise ValueError(msg)

        return self

    @property
    def kind(self) -> ResourceKind:
        if ResourceKey.USER.value in self.values:
            return ResourceKind.USER
        if ResourceKey.SYSTEM_PROPERTY.value in self.values:
            return ResourceKind.SYSTEM_PROPERTY
        if ResourceKey.SESSION_PROPERTY.value in self.values:
            return ResourceKind.SESSION_PROPERTY
        return ResourceKind.ENTITY

    def get(self, key: ResourceKey | str) -> str | None:
        """Value for a scope key, or None if the key is not set."""
        name = key.value if isinstance(key, ResourceKey) else key
        return self.values.get(name)

    def keys(self) -> list[str]:
        return list(self.values)

    @property
    def catalog(self) -> str | None:
        return self.get(ResourceKey.CATALOG)

    @property
    def schema_name(self) -> str | None:
        return self.get(ResourceKey.SCHEMA)

    @property
    def table(self) -> str | None:
        return self.get(ResourceKey.TABLE)

    @property
    def column(self) -> str | None:
        return self.get(ResourceKey.COLUMN)

    @property
    def user(self) -> str | None:
        return self.get(ResourceKey.USER)

    @property
    def display_name(self) -> str:
        """Dotted path of the resource values, e.g. 'hive.sales.orders'."""
        return ".".join(self.values.values())

    def __str__(self) -> str:
        return self.display_name


# =============================================================================
# Identity Models
# =============================================================================


class Identity(BaseModel):
    """
    The user an engine call is made on behalf of.

    Attributes:
        user: User name
        groups: Group names supplied by the engine
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user: str = Field(..., description="User name", min_length=1)
    groups: frozenset[str] = Field(
        default_factory=frozenset,
        description="Group names supplied by the engine",
    )


class SecurityContext(BaseModel):
    """Caller context passed by the engine with every entry point."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    identity: Identity
    query_id: str | None = None


class Principal(BaseModel):
    """Grantee or revokee of a table privilege."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    type: PrincipalType = PrincipalType.USER

    def __str__(self) -> str:
        return f"{self.type.value} {self.name}"


# =============================================================================
# Engine-native Names
# =============================================================================


class CatalogSchemaName(BaseModel):
    """A schema qualified by its catalog."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    catalog: str
    schema_name: str = Field(..., alias="schema")

    def __init__(self, catalog: str, schema: str, **data: Any) -> None:
        super().__init__(catalog=catalog, schema=schema, **data)

    def __str__(self) -> str:
        return f"{self.catalog}.{self.schema_name}"


class SchemaTableName(BaseModel):
    """A table qualified by its schema."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    schema_name: str = Field(..., alias="schema")
    table: str

    def __init__(self, schema: str, table: str, **data: Any) -> None:
        super().__init__(schema=schema, table=table, **data)

    def __str__(self) -> str:
        return f"{self.schema_name}.{self.table}"


class CatalogSchemaTableName(BaseModel):
    """A fully qualified table or view name."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    catalog: str
    schema_name: str = Field(..., alias="schema")
    table: str

    def __init__(self, catalog: str, schema: str, table: str, **data: Any) -> None:
        super().__init__(catalog=catalog, schema=schema, table=table, **data)

    @classmethod
    def parse(cls, qualified: str) -> "CatalogSchemaTableName":
        """Parse 'catalog.schema.table'."""
        parts = qualified.split(".")
        if len(parts) != 3 or not all(parts):
            msg = f"Expected catalog.schema.table, got: {qualified}"
            raise ValueError(msg)
        return cls(parts[0], parts[1], parts[2])

    @property
    def schema_table_name(self) -> SchemaTableName:
        return SchemaTableName(self.schema_name, self.table)

    @property
    def catalog_schema_name(self) -> CatalogSchemaName:
        return CatalogSchemaName(self.catalog, self.schema_name)

    def __str__(self) -> str:
        return f"{self.catalog}.{self.schema_name}.{self.table}"


class ColumnType(BaseModel):
    """
    The SQL type of a column.

    Attributes:
        signature: Full type signature, e.g. "varchar(20)" or "decimal(10,2)"
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    signature: str = Field(..., min_length=1)

    @property
    def base_name(self) -> str:
        """Type name without parameters ("varchar(20)" -> "varchar")."""
        return self.signature.split("(", 1)[0].strip()

    def __str__(self) -> str:
        return self.signature


class ColumnMetadata(BaseModel):
    """A column as listed by the engine."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    type: ColumnType
    comment: str | None = None
    hidden: bool = False


# =============================================================================
# Evaluator Models
# =============================================================================


class AccessRequest(BaseModel):
    """
    A single question for the policy evaluator.

    Built fresh for every check and never reused.

    Attributes:
        resource: What is being accessed
        access_type: The action being checked
        user: Requesting user
        user_groups: Groups of the requesting user (None if unknown)
        access_time: When the request was built (UTC)
        service_type: Evaluator service type the plugin registered as
        app_id: Evaluator application id the plugin registered as
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    resource: Resource
    access_type: AccessType
    user: str
    user_groups: frozenset[str] | None = None
    access_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    service_type: str | None = None
    app_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire representation sent to a remote evaluator."""
        return {
            "resource": dict(self.resource.values),
            "accessType": self.access_type.wire_name,
            "user": self.user,
            "userGroups": sorted(self.user_groups) if self.user_groups is not None else None,
            "accessTime": self.access_time.isoformat(),
            "serviceType": self.service_type,
            "appId": self.app_id,
        }


class FilterDescriptor(BaseModel):
    """Row filter decision returned by the evaluator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    filter_expr: str | None = None


class MaskDescriptor(BaseModel):
    """
    Column mask decision returned by the evaluator.

    Attributes:
        enabled: Whether a mask applies
        mask_type: Mask kind (MASK_NULL, CUSTOM or any other evaluator kind)
        transformer: Template that may contain {col} and {type} placeholders
        masked_value: Literal masked value, if the policy defines one
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    mask_type: str | None = None
    transformer: str | None = None
    masked_value: str | None = None


class ViewExpression(BaseModel):
    """
    A row filter predicate or column mask bound to the requesting user.

    The expression is None when no filter or mask applies.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    identity: str
    catalog: str | None = None
    schema_name: str | None = Field(default=None, alias="schema")
    expression: str | None = None


# =============================================================================
# Check Results
# =============================================================================


class DeniedOperation(str, Enum):
    """One variant per denied operation family."""

    SET_SYSTEM_SESSION_PROPERTY = "set_system_session_property"
    SET_CATALOG_SESSION_PROPERTY = "set_catalog_session_property"
    IMPERSONATE_USER = "impersonate_user"
    SET_USER = "set_user"
    EXECUTE_QUERY = "execute_query"
    ACCESS_CATALOG = "access_catalog"
    SHOW_ROLES = "show_roles"
    SHOW_SCHEMAS = "show_schemas"
    CREATE_SCHEMA = "create_schema"
    DROP_SCHEMA = "drop_schema"
    RENAME_SCHEMA = "rename_schema"
    SHOW_TABLES = "show_tables"
    SHOW_CREATE_TABLE = "show_create_table"
    SHOW_COLUMNS = "show_columns"
    CREATE_TABLE = "create_table"
    DROP_TABLE = "drop_table"
    RENAME_TABLE = "rename_table"
    INSERT_TABLE = "insert_table"
    DELETE_TABLE = "delete_table"
    ADD_COLUMN = "add_column"
    DROP_COLUMN = "drop_column"
    RENAME_COLUMN = "rename_column"
    COMMENT_TABLE = "comment_table"
    CREATE_VIEW = "create_view"
    CREATE_VIEW_WITH_SELECT = "create_view_with_select"
    DROP_VIEW = "drop_view"
    RENAME_VIEW = "rename_view"
    GRANT_TABLE_PRIVILEGE = "grant_table_privilege"
    REVOKE_TABLE_PRIVILEGE = "revoke_table_privilege"
    SELECT_TABLE = "select_table"
    SELECT_COLUMNS = "select_columns"


DENIAL_MESSAGES: dict[DeniedOperation, str] = {
    DeniedOperation.SET_SYSTEM_SESSION_PROPERTY: "Cannot set system session property {0}",
    DeniedOperation.SET_CATALOG_SESSION_PROPERTY: "Cannot set catalog session property {0}.{1}",
    DeniedOperation.IMPERSONATE_USER: "User {0} cannot impersonate user {1}",
    DeniedOperation.SET_USER: "Principal {0} cannot become user {1}",
    DeniedOperation.EXECUTE_QUERY: "Cannot execute query",
    DeniedOperation.ACCESS_CATALOG: "Cannot access catalog {0}",
    DeniedOperation.SHOW_ROLES: "Cannot show roles from catalog {0}",
    DeniedOperation.SHOW_SCHEMAS: "Cannot show schemas in catalog {0}",
    DeniedOperation.CREATE_SCHEMA: "Cannot create schema {0}",
    DeniedOperation.DROP_SCHEMA: "Cannot drop schema {0}",
    DeniedOperation.RENAME_SCHEMA: "Cannot rename schema from {0} to {1}",
    DeniedOperation.SHOW_TABLES: "Cannot show tables of schema {0}",
    DeniedOperation.SHOW_CREATE_TABLE: "Cannot show create table for {0}",
    DeniedOperation.SHOW_COLUMNS: "Cannot show columns of table {0}",
    DeniedOperation.CREATE_TABLE: "Cannot create table {0}",
    DeniedOperation.DROP_TABLE: "Cannot drop table {0}",
    DeniedOperation.RENAME_TABLE: "Cannot rename table from {0} to {1}",
    DeniedOperation.INSERT_TABLE: "Cannot insert into table {0}",
    DeniedOperation.DELETE_TABLE: "Cannot delete from table {0}",
    DeniedOperation.ADD_COLUMN: "Cannot add a column to table {0}",
    DeniedOperation.DROP_COLUMN: "Cannot drop a column from table {0}",
    DeniedOperation.RENAME_COLUMN: "Cannot rename a column in table {0}",
    DeniedOperation.COMMENT_TABLE: "Cannot comment table to {0}",
    DeniedOperation.CREATE_VIEW: "Cannot create view {0}",
    DeniedOperation.CREATE_VIEW_WITH_SELECT: "View owner '{1}' cannot create view that selects from {0}",
    DeniedOperation.DROP_VIEW: "Cannot drop view {0}",
    DeniedOperation.RENAME_VIEW: "Cannot rename view from {0} to {1}",
    DeniedOperation.GRANT_TABLE_PRIVILEGE: "Cannot grant privilege {0} on table {1}",
    DeniedOperation.REVOKE_TABLE_PRIVILEGE: "Cannot revoke privilege {0} on table {1}",
    DeniedOperation.SELECT_TABLE: "Cannot select from table {0}",
    DeniedOperation.SELECT_COLUMNS: "Cannot select from columns {1} in table or view {0}",
}


def format_columns(columns: Any) -> str:
    """Stable display form of a column set: '[a, b]'."""
    return "[" + ", ".join(sorted(columns)) + "]"


class Denial(BaseModel):
    """
    Typed reason for a denied operation.

    Attributes:
        operation: Which operation family was denied
        targets: Display names filling the operation's message
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    operation: DeniedOperation
    targets: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return DENIAL_MESSAGES[self.operation].format(*self.targets)


class CheckResult(BaseModel):
    """
    Outcome of an access check: success, or a typed denial.

    The engine-facing boundary turns a denial into AccessDeniedError.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool
    denial: Denial | None = None

    @model_validator(mode="after")
    def validate_denial(self) -> "CheckResult":
        if not self.allowed and self.denial is None:
            msg = "A denied result must carry a denial"
            raise ValueError(msg)
        return self

    @classmethod
    def allow(cls) -> "CheckResult":
        """Create an ALLOW result."""
        return cls(allowed=True)

    @classmethod
    def deny(cls, operation: DeniedOperation, *targets: Any) -> "CheckResult":
        """Create a DENY result for an operation and its display names."""
        return cls(
            allowed=False,
            denial=Denial(operation=operation, targets=tuple(str(t) for t in targets)),
        )
