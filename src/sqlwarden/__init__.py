"""
sqlwarden - Policy-evaluator backed access control for distributed SQL engines.

sqlwarden sits between the query engine and an external policy decision point.
It provides:
- One access check per security-sensitive engine operation
- Row filter and column mask synthesis for query rewriting
- A fail-closed boundary: internal errors become denials, never pass-through

Example usage:
    $ sqlwarden check drop-table --user alice --table hive.sales.orders
    $ sqlwarden column-mask hive.sales.orders ssn --type "varchar(11)" --user alice
    $ sqlwarden doctor
"""

__version__ = "0.1.0"
__author__ = "sqlwarden Contributors"

__all__ = [
    "__version__",
    "__author__",
]
