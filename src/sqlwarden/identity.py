"""
Group resolution for requesting users.

By default the groups the engine supplies with the identity are trusted.
When alternate group resolution is configured, groups are looked up from
an identity service instead and the supplied groups are ignored.
"""

import grp
import logging
import os
import pwd
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class GroupResolver(ABC):
    """Looks up the groups of a user by name."""

    @abstractmethod
    def groups_for(self, user: str) -> frozenset[str]:
        """Return the user's groups, or an empty set if the user is unknown."""
        ...


class UnixGroupResolver(GroupResolver):
    """Resolve groups from the local account database (passwd/group)."""

    def groups_for(self, user: str) -> frozenset[str]:
        try:
            entry = pwd.getpwnam(user)
        except KeyError:
            logger.debug("No local account for %s, no groups resolved", user)
            return frozenset()

        names = set()
        for gid in os.getgrouplist(user, entry.pw_gid):
            try:
                names.add(grp.getgrgid(gid).gr_name)
            except KeyError:
                names.add(str(gid))
        return frozenset(names)
