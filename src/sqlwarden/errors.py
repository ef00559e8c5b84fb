"""
Exception hierarchy for sqlwarden.

All sqlwarden exceptions inherit from SqlWardenError, allowing callers to
catch all sqlwarden-specific exceptions with a single except clause.

Exception Categories:
    - AccessDeniedError: An engine operation was denied (the only error the
      engine ever sees from an entry point)
    - ConfigurationError: Invalid or missing plugin configuration
    - EvaluatorError: The policy evaluator could not answer

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context for debugging
    - Internal errors never reach the engine: the boundary turns them into
      AccessDeniedError for the operation being checked
"""

from dataclasses import dataclass, field
from typing import Any

from sqlwarden.schema import Denial, DeniedOperation


# =============================================================================
# Error Codes
# =============================================================================

# Access errors: 1xxx
ERROR_ACCESS_DENIED = 1001

# Configuration errors: 2xxx
ERROR_CONFIG_INVALID = 2001
ERROR_IMPLEMENTATION_NOT_FOUND = 2002
ERROR_PLUGIN_INIT_FAILED = 2003
ERROR_KERBEROS_LOGIN_FAILED = 2004

# Evaluator errors: 3xxx
ERROR_EVALUATOR_CONNECTION = 3001
ERROR_EVALUATOR_RESPONSE = 3002
ERROR_EVALUATOR_INIT_FAILED = 3003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class SqlWardenError(Exception):
    """
    Base exception for all sqlwarden errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Access Errors
# =============================================================================


@dataclass
class AccessDeniedError(SqlWardenError):
    """
    Raised when an engine operation is denied.

    The denial names the operation family and the display names of its
    target, and formats the operation-specific message, e.g.
    "Access Denied: Cannot drop table orders".

    Attributes:
        denial: The typed denial reason
    """

    denial: Denial | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.denial is None:
            self.denial = Denial(operation=DeniedOperation.EXECUTE_QUERY)
        if not self.message:
            self.message = f"Access Denied: {self.denial.message}"
        if self.code == 0:
            self.code = ERROR_ACCESS_DENIED
        self.context.update({
            "operation": self.denial.operation.value,
            "targets": list(self.denial.targets),
        })

    @classmethod
    def for_operation(cls, operation: DeniedOperation, *targets: Any) -> "AccessDeniedError":
        """Build the denial for an operation and its display names."""
        return cls(
            denial=Denial(operation=operation, targets=tuple(str(t) for t in targets))
        )

    @property
    def operation(self) -> DeniedOperation:
        if self.denial is None:
            return DeniedOperation.EXECUTE_QUERY
        return self.denial.operation

    @property
    def targets(self) -> tuple[str, ...]:
        if self.denial is None:
            return ()
        return self.denial.targets


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigurationError(SqlWardenError):
    """
    Raised when plugin configuration is invalid.

    Attributes:
        source: Where the configuration came from (file path or map key)
    """

    source: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration: {self.source}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context["source"] = self.source


@dataclass
class ImplementationNotFoundError(ConfigurationError):
    """Raised when no access control implementation is registered under a name."""

    name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Access control implementation not found: {self.name}"
        if self.code == 0:
            self.code = ERROR_IMPLEMENTATION_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check the implementation name or register the implementation"
        super().__post_init__()
        self.context["name"] = self.name


@dataclass
class PluginInitError(ConfigurationError):
    """Raised when the access control plugin cannot start."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Access control plugin failed to start: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_PLUGIN_INIT_FAILED
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class KerberosLoginError(ConfigurationError):
    """Raised when the keytab login fails."""

    principal: str = ""
    keytab: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Kerberos login failed for {self.principal}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_KERBEROS_LOGIN_FAILED
        if not self.suggestion:
            self.suggestion = "Check the keytab path and principal"
        super().__post_init__()
        self.context.update({
            "principal": self.principal,
            "keytab": self.keytab,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Evaluator Errors
# =============================================================================


@dataclass
class EvaluatorError(SqlWardenError):
    """
    Base class for policy evaluator errors.

    Attributes:
        endpoint: The evaluator endpoint involved (if any)
    """

    endpoint: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["endpoint"] = self.endpoint


@dataclass
class EvaluatorConnectionError(EvaluatorError):
    """Raised when the evaluator cannot be reached."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot reach policy evaluator at {self.endpoint}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_EVALUATOR_CONNECTION
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class EvaluatorResponseError(EvaluatorError):
    """Raised when the evaluator answers with something unusable."""

    status_code: int | None = None
    body: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid policy evaluator response from {self.endpoint}"
        if self.code == 0:
            self.code = ERROR_EVALUATOR_RESPONSE
        super().__post_init__()
        self.context.update({
            "status_code": self.status_code,
            "body": self.body,
        })


@dataclass
class EvaluatorInitError(EvaluatorError):
    """Raised when the evaluator cannot be initialized for the service."""

    service_type: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Policy evaluator init failed for service {self.service_type}: "
                f"{self.underlying_error}"
            )
        if self.code == 0:
            self.code = ERROR_EVALUATOR_INIT_FAILED
        super().__post_init__()
        self.context.update({
            "service_type": self.service_type,
            "underlying_error": self.underlying_error,
        })
