"""
Configuration for sqlwarden.

Two layers:
- AccessControlConfig: what the engine hands the plugin (environment
  variables prefixed SQLWARDEN_, or a YAML file). Flattened once into the
  string map the implementation is constructed with.
- SiteConfig: the external site configuration resource the implementation
  loads to reach its policy evaluator.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlwarden.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Keys of the flattened configuration map
CONFIG_KEYTAB = "sqlwarden.keytab"
CONFIG_PRINCIPAL = "sqlwarden.principal"
CONFIG_USE_GROUP_LOOKUP = "sqlwarden.use_group_lookup"
CONFIG_SITE_CONFIG = "sqlwarden.site_config"

DEFAULT_SITE_CONFIG = "sqlwarden-site.yaml"
DEFAULT_IMPLEMENTATION = "policy"
DEFAULT_SERVICE_TYPE = "presto"
DEFAULT_APP_ID = "presto"


def parse_flag(value: str | None) -> bool:
    """Map-style boolean: only a case-insensitive "true" is true."""
    return value is not None and value.strip().lower() == "true"


class AccessControlConfig(BaseSettings):
    """
    Plugin configuration supplied by the engine.

    Attributes:
        keytab: Keytab path for the Kerberos login
        principal: Kerberos principal
        use_group_lookup: Resolve user groups through the group lookup
            service instead of trusting the groups supplied by the engine
        site_config: Path of the external site configuration resource
        implementation: Registered name of the access control implementation
        log_level: Log level for sqlwarden loggers
    """

    keytab: str | None = Field(default=None, description="Keytab path")
    principal: str | None = Field(default=None, description="Kerberos principal")
    use_group_lookup: bool = Field(
        default=False,
        description="Resolve groups through the group lookup service",
    )
    site_config: str | None = Field(
        default=None,
        description="External site configuration resource path",
    )
    implementation: str = Field(
        default=DEFAULT_IMPLEMENTATION,
        description="Registered access control implementation",
    )
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SQLWARDEN_",
        extra="ignore",
    )

    def to_config_map(self) -> dict[str, str]:
        """
        Flatten into the map the implementation is constructed with.

        Keytab and principal are only passed when both are set.
        """
        config_map: dict[str, str] = {}
        if self.keytab is not None and self.principal is not None:
            config_map[CONFIG_KEYTAB] = self.keytab
            config_map[CONFIG_PRINCIPAL] = self.principal

        config_map[CONFIG_USE_GROUP_LOOKUP] = str(self.use_group_lookup).lower()

        if self.site_config is not None:
            config_map[CONFIG_SITE_CONFIG] = self.site_config

        return config_map


def load_access_control_config(path: Path | str) -> AccessControlConfig:
    """
    Load plugin configuration from a YAML file.

    Values in the file take precedence over SQLWARDEN_ environment variables.

    Raises:
        ConfigurationError: If the file is missing, not YAML, or invalid
    """
    path = Path(path)
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            message=f"Cannot read access control config {path}: {e}",
            source=str(path),
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            message=f"Access control config {path} must be a mapping",
            source=str(path),
        )

    try:
        return AccessControlConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(
            message=f"Invalid access control config {path}: {e}",
            source=str(path),
        ) from e


# =============================================================================
# Site Configuration
# =============================================================================


class SiteConfig(BaseModel):
    """
    Settings the implementation needs to reach its policy evaluator.

    Attributes:
        evaluator_url: Base URL of the policy decision service
        timeout_seconds: Per-request timeout of the evaluator client
        service_type: Service type the plugin registers as
        app_id: Application id the plugin registers as
        headers: Extra headers sent with every evaluator request
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    evaluator_url: str = Field(
        default="http://localhost:6080",
        description="Base URL of the policy decision service",
    )
    timeout_seconds: float = Field(
        default=10.0,
        description="Evaluator request timeout in seconds",
        gt=0,
    )
    service_type: str = DEFAULT_SERVICE_TYPE
    app_id: str = DEFAULT_APP_ID
    headers: dict[str, str] = Field(default_factory=dict)


def resolve_site_config_path(resource: str | None) -> Path | None:
    """
    Find the site configuration file.

    An explicit resource that does not exist is reported and ignored.
    Without one, the default file in the working directory is used if present.
    """
    if resource is not None:
        path = Path(resource)
        if not path.is_file():
            logger.warning("Site config %s not found", resource)
            return None
        return path

    path = Path(DEFAULT_SITE_CONFIG)
    logger.debug("Trying to load site config from %s (may not exist)", path.resolve())
    return path if path.is_file() else None


def load_site_config(resource: str | None = None) -> SiteConfig:
    """
    Load the site configuration, falling back to defaults.

    Raises:
        ConfigurationError: If the file exists but is not valid
    """
    path = resolve_site_config_path(resource)
    if path is None:
        return SiteConfig()

    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
        return SiteConfig.model_validate(data)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        raise ConfigurationError(
            message=f"Invalid site config {path}: {e}",
            source=str(path),
        ) from e
