"""Tests for the implementation registry."""

import pytest

from sqlwarden.access.plugin import PolicyAccessControl
from sqlwarden.boundary.registry import (
    POLICY_IMPLEMENTATION,
    ImplementationRegistry,
    create_default_registry,
    default_registry,
)
from sqlwarden.errors import ImplementationNotFoundError


class TestImplementationRegistry:
    """Tests for ImplementationRegistry."""

    def test_register_and_get(self) -> None:
        registry = ImplementationRegistry()
        factory = lambda config_map: object()  # noqa: E731
        registry.register("custom", factory)

        assert registry.get("custom") is factory
        assert "custom" in registry
        assert len(registry) == 1
        assert registry.list_implementations() == ["custom"]

    def test_unknown_name(self) -> None:
        registry = ImplementationRegistry()
        with pytest.raises(ImplementationNotFoundError) as exc_info:
            registry.get("ldap")
        assert exc_info.value.name == "ldap"

    def test_rejects_empty_name(self) -> None:
        with pytest.raises(ValueError, match="non-empty name"):
            ImplementationRegistry().register("", lambda config_map: None)

    def test_rejects_non_callable(self) -> None:
        with pytest.raises(ValueError, match="not callable"):
            ImplementationRegistry().register("x", "not a factory")  # type: ignore[arg-type]

    def test_replace_and_unregister(self) -> None:
        registry = ImplementationRegistry()
        registry.register("x", lambda config_map: 1)
        registry.register("x", lambda config_map: 2)
        assert registry.get("x")({}) == 2
        assert registry.unregister("x")
        assert not registry.unregister("x")

    def test_default_registry_has_policy(self) -> None:
        assert default_registry.get(POLICY_IMPLEMENTATION) is PolicyAccessControl
        assert create_default_registry().list_implementations() == ["policy"]
