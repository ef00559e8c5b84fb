"""
AccessRequest construction.

Every check builds a fresh AccessRequest stamped with the requesting
user, the user's groups, the current time and the service the plugin
registered as. Requests are never cached or reused.
"""

from sqlwarden.identity import GroupResolver
from sqlwarden.schema import AccessRequest, AccessType, Identity, Resource


class RequestFactory:
    """
    Builds AccessRequests for one registered service.

    Attributes:
        service_type: Evaluator service type
        app_id: Evaluator application id
        group_resolver: When set, groups come from this resolver and the
            groups supplied with the identity are ignored
    """

    def __init__(
        self,
        service_type: str,
        app_id: str,
        group_resolver: GroupResolver | None = None,
    ) -> None:
        self.service_type = service_type
        self.app_id = app_id
        self.group_resolver = group_resolver

    def groups_for(self, identity: Identity) -> frozenset[str]:
        if self.group_resolver is not None:
            return self.group_resolver.groups_for(identity.user)
        return identity.groups

    def create(
        self,
        identity: Identity,
        resource: Resource,
        access_type: AccessType,
    ) -> AccessRequest:
        """
        Build the request for one resource and action.

        Args:
            identity: The requesting user
            resource: What is being accessed
            access_type: The action being checked

        Returns:
            A new AccessRequest with access_time set to now
        """
        return AccessRequest(
            resource=resource,
            access_type=access_type,
            user=identity.user,
            user_groups=self.groups_for(identity),
            service_type=self.service_type,
            app_id=self.app_id,
        )
