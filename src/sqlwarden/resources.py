"""
Resource builders.

Turns engine-native qualified names into the hierarchical Resource
identifiers the policy evaluator matches against. One builder per
granularity; each is pure and builds exactly one kind of resource.

Usage:
    resource = table_resource_for(CatalogSchemaTableName("hive", "sales", "orders"))
    resource.display_name  # "hive.sales.orders"
"""

from collections.abc import Iterable

from sqlwarden.schema import (
    CatalogSchemaName,
    CatalogSchemaTableName,
    Resource,
    ResourceKey,
)


def catalog_resource(catalog: str) -> Resource:
    return Resource(values={ResourceKey.CATALOG.value: catalog})


def schema_resource(catalog: str, schema: str) -> Resource:
    return Resource(values={
        ResourceKey.CATALOG.value: catalog,
        ResourceKey.SCHEMA.value: schema,
    })


def schema_resource_for(name: CatalogSchemaName) -> Resource:
    return schema_resource(name.catalog, name.schema_name)


def table_resource(
    catalog: str,
    schema: str,
    table: str,
    column: str | None = None,
) -> Resource:
    """
    Build a table-scope resource, or a column-scope one when column is given.

    Args:
        catalog: Catalog name
        schema: Schema name
        table: Table or view name
        column: Optional column name

    Returns:
        Resource with catalog, schema, table (and column) keys
    """
    values = {
        ResourceKey.CATALOG.value: catalog,
        ResourceKey.SCHEMA.value: schema,
        ResourceKey.TABLE.value: table,
    }
    if column is not None:
        values[ResourceKey.COLUMN.value] = column
    return Resource(values=values)


def table_resource_for(name: CatalogSchemaTableName, column: str | None = None) -> Resource:
    return table_resource(name.catalog, name.schema_name, name.table, column)


def user_resource(user: str) -> Resource:
    return Resource(values={ResourceKey.USER.value: user})


def system_property_resource(name: str) -> Resource:
    return Resource(values={ResourceKey.SYSTEM_PROPERTY.value: name})


def session_property_resource(catalog: str, name: str) -> Resource:
    return Resource(values={
        ResourceKey.CATALOG.value: catalog,
        ResourceKey.SESSION_PROPERTY.value: name,
    })


def column_resources(table: CatalogSchemaTableName, columns: Iterable[str]) -> list[Resource]:
    """
    Expand a column set into one resource per column.

    An empty set yields a single table-scope resource with no column key,
    which the evaluator treats as "any column of this table".

    Args:
        table: The table the columns belong to
        columns: Requested column names

    Returns:
        One resource per column, in input order, or one table-scope resource
    """
    resources = [table_resource_for(table, column) for column in columns]
    if not resources:
        resources.append(table_resource_for(table))
    return resources
