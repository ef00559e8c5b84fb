"""
Access control implementation for sqlwarden.

Components:
    - AccessMediator: One access check per controllable engine operation
    - MaskingEngine: Row filter and column mask synthesis
    - RequestFactory: Builds AccessRequests for the registered service
    - PolicyAccessControl: Wires the above to a policy evaluator at startup
"""

from sqlwarden.access.masking import MaskingEngine, synthesize_mask
from sqlwarden.access.mediator import AccessMediator
from sqlwarden.access.plugin import PolicyAccessControl, kerberos_login
from sqlwarden.access.requests import RequestFactory

__all__ = [
    "AccessMediator",
    "MaskingEngine",
    "PolicyAccessControl",
    "RequestFactory",
    "kerberos_login",
    "synthesize_mask",
]
