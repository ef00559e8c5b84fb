"""Tests for AccessRequest construction and group resolution."""

from unittest.mock import MagicMock, patch

from sqlwarden.access.requests import RequestFactory
from sqlwarden.identity import GroupResolver, UnixGroupResolver
from sqlwarden.schema import AccessType, Identity, Resource

CATALOG = Resource(values={"catalog": "hive"})


class StaticGroups(GroupResolver):
    def __init__(self, groups: set[str]) -> None:
        self.groups = frozenset(groups)
        self.calls: list[str] = []

    def groups_for(self, user: str) -> frozenset[str]:
        self.calls.append(user)
        return self.groups


class TestRequestFactory:
    """Tests for RequestFactory."""

    def test_uses_supplied_groups(self) -> None:
        factory = RequestFactory("presto", "presto")
        identity = Identity(user="alice", groups=frozenset({"analysts"}))

        request = factory.create(identity, CATALOG, AccessType.USE)

        assert request.user == "alice"
        assert request.user_groups == frozenset({"analysts"})
        assert request.access_type == AccessType.USE
        assert request.service_type == "presto"
        assert request.app_id == "presto"

    def test_group_lookup_overrides_supplied_groups(self) -> None:
        resolver = StaticGroups({"hr"})
        factory = RequestFactory("presto", "presto", group_resolver=resolver)
        identity = Identity(user="alice", groups=frozenset({"analysts"}))

        request = factory.create(identity, CATALOG, AccessType.USE)

        assert request.user_groups == frozenset({"hr"})
        assert resolver.calls == ["alice"]

    def test_fresh_request_each_time(self) -> None:
        factory = RequestFactory("presto", "presto")
        identity = Identity(user="alice")
        first = factory.create(identity, CATALOG, AccessType.USE)
        second = factory.create(identity, CATALOG, AccessType.USE)
        assert first is not second
        assert second.access_time >= first.access_time


class TestUnixGroupResolver:
    """Tests for UnixGroupResolver."""

    def test_unknown_user(self) -> None:
        with patch("sqlwarden.identity.pwd.getpwnam", side_effect=KeyError("nobody")):
            assert UnixGroupResolver().groups_for("nobody") == frozenset()

    def test_resolves_group_names(self) -> None:
        entry = MagicMock(pw_gid=100)

        def getgrgid(gid: int) -> MagicMock:
            if gid == 999:
                raise KeyError(gid)
            return MagicMock(gr_name={100: "users", 200: "analysts"}[gid])

        with (
            patch("sqlwarden.identity.pwd.getpwnam", return_value=entry),
            patch("sqlwarden.identity.os.getgrouplist", return_value=[100, 200, 999]) as grouplist,
            patch("sqlwarden.identity.grp.getgrgid", side_effect=getgrgid),
        ):
            groups = UnixGroupResolver().groups_for("alice")

        grouplist.assert_called_once_with("alice", 100)
        assert groups == frozenset({"users", "analysts", "999"})
