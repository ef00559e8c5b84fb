"""
Engine-facing isolation boundary.

Components:
    - ConfinedContext: Scoped guard over the per-thread execution context stack
    - ImplementationRegistry: Named factories for access control implementations
    - SystemAccessControl: The fail-closed facade the engine calls
"""

from sqlwarden.boundary.access_control import SystemAccessControl
from sqlwarden.boundary.context import (
    ConfinedContext,
    ExecutionContext,
    current_context,
    is_confined,
)
from sqlwarden.boundary.registry import ImplementationRegistry, default_registry

__all__ = [
    "ConfinedContext",
    "ExecutionContext",
    "ImplementationRegistry",
    "SystemAccessControl",
    "current_context",
    "default_registry",
    "is_confined",
]
