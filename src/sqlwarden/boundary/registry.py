"""
Registry of access control implementations.

The boundary locates its implementation by name in this registry and
builds it by calling the registered factory with the flattened
configuration map.

Usage:
    from sqlwarden.boundary.registry import default_registry

    factory = default_registry.get("policy")
    implementation = factory({"sqlwarden.use_group_lookup": "false"})
"""

from collections.abc import Callable, Iterator
from typing import Any

from sqlwarden.access.plugin import PolicyAccessControl
from sqlwarden.errors import ImplementationNotFoundError

ImplementationFactory = Callable[[dict[str, str]], Any]

POLICY_IMPLEMENTATION = "policy"


class ImplementationRegistry:
    """
    Registry for looking up implementation factories by name.

    Attributes:
        _factories: Internal mapping of names to factories
    """

    def __init__(self) -> None:
        self._factories: dict[str, ImplementationFactory] = {}

    def register(self, name: str, factory: ImplementationFactory) -> None:
        """
        Register a factory under a name, replacing any previous one.

        Raises:
            ValueError: If name is empty or factory is not callable
        """
        if not name:
            msg = "Implementation must have a non-empty name"
            raise ValueError(msg)
        if not callable(factory):
            msg = f"Implementation factory for '{name}' is not callable"
            raise ValueError(msg)

        self._factories[name] = factory

    def get(self, name: str) -> ImplementationFactory:
        """
        Look up a factory by name.

        Raises:
            ImplementationNotFoundError: If nothing is registered under that name
        """
        factory = self._factories.get(name)
        if factory is None:
            raise ImplementationNotFoundError(name=name, source="implementation")
        return factory

    def unregister(self, name: str) -> bool:
        if name in self._factories:
            del self._factories[name]
            return True
        return False

    def list_implementations(self) -> list[str]:
        return sorted(self._factories)

    def __len__(self) -> int:
        return len(self._factories)

    def __iter__(self) -> Iterator[str]:
        return iter(self.list_implementations())

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    def __repr__(self) -> str:
        names = ", ".join(self.list_implementations())
        return f"<ImplementationRegistry: [{names}]>"


def create_default_registry() -> ImplementationRegistry:
    registry = ImplementationRegistry()
    registry.register(POLICY_IMPLEMENTATION, PolicyAccessControl)
    return registry


# Registry used by SystemAccessControl unless overridden
default_registry = create_default_registry()
