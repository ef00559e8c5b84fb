"""
The policy-backed access control implementation.

PolicyAccessControl is what the boundary constructs once at startup from
the flattened configuration map. Construction:
    1. Load the site configuration resource
    2. Log in from the keytab when keytab and principal are both configured
    3. Create the policy evaluator and initialize it for the service
    4. Wire the AccessMediator and MaskingEngine to the evaluator

Every step that fails aborts construction.
"""

import logging
import subprocess

from sqlwarden.access.masking import MaskingEngine
from sqlwarden.access.mediator import AccessMediator
from sqlwarden.access.requests import RequestFactory
from sqlwarden.core.config import (
    CONFIG_KEYTAB,
    CONFIG_PRINCIPAL,
    CONFIG_SITE_CONFIG,
    CONFIG_USE_GROUP_LOOKUP,
    load_site_config,
    parse_flag,
)
from sqlwarden.errors import KerberosLoginError
from sqlwarden.evaluator.base import PolicyEvaluator
from sqlwarden.evaluator.http import HttpPolicyEvaluator
from sqlwarden.identity import GroupResolver, UnixGroupResolver

logger = logging.getLogger(__name__)

KINIT_TIMEOUT_SECONDS = 30


def kerberos_login(principal: str, keytab: str) -> None:
    """
    Obtain a Kerberos ticket for the principal from a keytab.

    Runs `kinit -k -t <keytab> <principal>` without a shell.

    Raises:
        KerberosLoginError: If kinit is missing, times out or fails
    """
    cmd = ["kinit", "-k", "-t", keytab, principal]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            timeout=KINIT_TIMEOUT_SECONDS,
            shell=False,
        )
    except FileNotFoundError as e:
        raise KerberosLoginError(
            principal=principal,
            keytab=keytab,
            underlying_error="kinit not found",
        ) from e
    except subprocess.TimeoutExpired as e:
        raise KerberosLoginError(
            principal=principal,
            keytab=keytab,
            underlying_error=f"kinit timed out after {KINIT_TIMEOUT_SECONDS}s",
        ) from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise KerberosLoginError(
            principal=principal,
            keytab=keytab,
            underlying_error=stderr or f"kinit exited with {result.returncode}",
        )

    logger.info("Kerberos login succeeded for %s", principal)


class PolicyAccessControl:
    """
    Access control backed by an external policy evaluator.

    Attributes:
        site_config: The loaded site configuration
        evaluator: The policy decision point
        mediator: Access checks for every controllable operation
        masking: Row filters and column masks
    """

    def __init__(
        self,
        config_map: dict[str, str],
        evaluator: PolicyEvaluator | None = None,
        group_resolver: GroupResolver | None = None,
    ) -> None:
        """
        Build the implementation from the flattened configuration map.

        Args:
            config_map: Flattened plugin configuration
            evaluator: Evaluator to use instead of the site-configured HTTP one
            group_resolver: Resolver to use when group lookup is enabled
        """
        self.site_config = load_site_config(config_map.get(CONFIG_SITE_CONFIG))

        keytab = config_map.get(CONFIG_KEYTAB)
        principal = config_map.get(CONFIG_PRINCIPAL)
        if keytab and principal:
            kerberos_login(principal, keytab)

        resolver = None
        if parse_flag(config_map.get(CONFIG_USE_GROUP_LOOKUP)):
            resolver = group_resolver or UnixGroupResolver()

        self.evaluator = evaluator or HttpPolicyEvaluator(self.site_config)
        try:
            self.evaluator.init(self.site_config.service_type, self.site_config.app_id)
        except Exception:
            self.evaluator.close()
            raise

        requests = RequestFactory(
            self.site_config.service_type,
            self.site_config.app_id,
            group_resolver=resolver,
        )
        self.mediator = AccessMediator(self.evaluator, requests)
        self.masking = MaskingEngine(self.evaluator, requests)

        logger.info(
            "Policy access control ready (evaluator=%s, group_lookup=%s)",
            self.evaluator.get_name(),
            resolver is not None,
        )

    def close(self) -> None:
        self.evaluator.close()
