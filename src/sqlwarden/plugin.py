"""
Process-wide plugin state.

The engine loads the plugin once per process. initialize() builds the single
SystemAccessControl; every engine thread then reads it with
get_access_control(). shutdown() closes it and clears the slot.
"""

import logging
import threading

from sqlwarden.boundary.access_control import SystemAccessControl
from sqlwarden.boundary.registry import ImplementationRegistry
from sqlwarden.core.config import AccessControlConfig
from sqlwarden.errors import ConfigurationError

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_access_control: SystemAccessControl | None = None


def initialize(
    config: AccessControlConfig | None = None,
    registry: ImplementationRegistry | None = None,
) -> SystemAccessControl:
    """
    Create the process-wide access control.

    Raises:
        ConfigurationError: If already initialized
        PluginInitError: If the implementation cannot be built
    """
    global _access_control

    with _lock:
        if _access_control is not None:
            raise ConfigurationError(
                message="Access control is already initialized",
                source="initialize",
                suggestion="Call shutdown() before initializing again",
            )
        _access_control = SystemAccessControl(config, registry)
        logger.info("Access control initialized (%s)", _access_control.config.implementation)
        return _access_control


def get_access_control() -> SystemAccessControl:
    """
    Return the process-wide access control.

    Raises:
        ConfigurationError: If initialize() has not been called
    """
    access_control = _access_control
    if access_control is None:
        raise ConfigurationError(
            message="Access control is not initialized",
            source="get_access_control",
            suggestion="Call initialize() at plugin load",
        )
    return access_control


def shutdown() -> None:
    """Close the access control, if any, and clear it."""
    global _access_control

    with _lock:
        access_control = _access_control
        _access_control = None
    if access_control is not None:
        access_control.close()
        logger.info("Access control shut down")
