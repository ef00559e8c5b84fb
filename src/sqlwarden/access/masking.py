"""
Row filters and column masks.

Fetches filter and mask decisions from the policy evaluator and turns
them into the ViewExpressions the engine uses to rewrite queries.

Mask synthesis:
    MASK_NULL                    -> NULL
    CUSTOM without masked value  -> NULL
    anything else                -> transformer with {col} and {type} filled in
    disabled (or no decision)    -> no expression
"""

import logging

from sqlwarden.access.requests import RequestFactory
from sqlwarden.evaluator.base import PolicyEvaluator
from sqlwarden.resources import table_resource_for
from sqlwarden.schema import (
    MASK_TYPE_CUSTOM,
    MASK_TYPE_NULL,
    NULL_EXPRESSION,
    AccessType,
    CatalogSchemaTableName,
    ColumnType,
    MaskDescriptor,
    SecurityContext,
    ViewExpression,
)

logger = logging.getLogger(__name__)


def synthesize_mask(
    descriptor: MaskDescriptor | None,
    column_name: str,
    column_type: ColumnType,
) -> str | None:
    """
    Build the mask expression for one column.

    Args:
        descriptor: Evaluator decision (None counts as disabled)
        column_name: Name substituted for {col}
        column_type: Type whose base name is substituted for {type}

    Returns:
        The expression text, or None when no mask applies
    """
    if descriptor is None or not descriptor.enabled:
        return None

    mask_type = (descriptor.mask_type or "").upper()
    if mask_type == MASK_TYPE_NULL:
        return NULL_EXPRESSION
    if mask_type == MASK_TYPE_CUSTOM and descriptor.masked_value is None:
        return NULL_EXPRESSION

    if descriptor.transformer is None:
        return None
    return descriptor.transformer.replace("{col}", column_name).replace(
        "{type}", column_type.base_name
    )


class MaskingEngine:
    """Row filter and column mask retrieval for one evaluator."""

    def __init__(self, evaluator: PolicyEvaluator, requests: RequestFactory) -> None:
        self.evaluator = evaluator
        self.requests = requests

    def get_row_filter(
        self, ctx: SecurityContext, table: CatalogSchemaTableName
    ) -> ViewExpression:
        """
        Row filter predicate for a table.

        Returns:
            ViewExpression whose expression is the evaluator's predicate
            verbatim, or None when no filter is enabled
        """
        request = self.requests.create(ctx.identity, table_resource_for(table), AccessType.SELECT)
        descriptor = self.evaluator.evaluate_row_filter_policies(request)

        expression = None
        if descriptor is not None and descriptor.enabled and descriptor.filter_expr:
            expression = descriptor.filter_expr
            logger.debug("Row filter for %s on %s: %s", ctx.identity.user, table, expression)

        return ViewExpression(
            identity=ctx.identity.user,
            catalog=table.catalog,
            schema=table.schema_name,
            expression=expression,
        )

    def get_column_mask(
        self,
        ctx: SecurityContext,
        table: CatalogSchemaTableName,
        column_name: str,
        column_type: ColumnType,
    ) -> ViewExpression:
        request = self.requests.create(
            ctx.identity,
            table_resource_for(table, column_name),
            AccessType.SELECT,
        )
        descriptor = self.evaluator.evaluate_data_mask_policies(request)
        expression = synthesize_mask(descriptor, column_name, column_type)
        if expression is not None:
            logger.debug(
                "Column mask for %s on %s.%s: %s",
                ctx.identity.user,
                table,
                column_name,
                expression,
            )

        return ViewExpression(
            identity=ctx.identity.user,
            catalog=table.catalog,
            schema=table.schema_name,
            expression=expression,
        )
