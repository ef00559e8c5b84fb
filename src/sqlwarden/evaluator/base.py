"""
Base class for policy evaluators.

The evaluator is the external decision point: it stores and matches
policies. sqlwarden only shapes AccessRequests for it and interprets its
answers.

Design Principles:
    - One evaluator instance per plugin, created at startup, shared by all calls
    - Implementations must be safe to call from many threads at once
    - Failures are raised as EvaluatorError; the boundary turns them into denials
"""

from abc import ABC, abstractmethod
from typing import Any

from sqlwarden.schema import AccessRequest, FilterDescriptor, MaskDescriptor


class PolicyEvaluator(ABC):
    """
    Abstract base class for policy decision points.

    Implementations:
        - HttpPolicyEvaluator: Remote decision service over HTTP

    Example Implementation:
        class AllowAll(PolicyEvaluator):
            def init(self, service_type, app_id):
                pass

            def is_allowed(self, request):
                return True

            def evaluate_row_filter_policies(self, request):
                return None

            def evaluate_data_mask_policies(self, request):
                return None
    """

    @abstractmethod
    def init(self, service_type: str, app_id: str) -> None:
        """
        Register with the decision point and load policies for the service.

        Raises:
            EvaluatorInitError: If the service cannot be initialized
        """
        ...

    @abstractmethod
    def is_allowed(self, request: AccessRequest) -> bool:
        """Return the allow/deny verdict for a single request."""
        ...

    @abstractmethod
    def evaluate_row_filter_policies(self, request: AccessRequest) -> FilterDescriptor | None:
        """Return the row filter for a table-scope request, or None."""
        ...

    @abstractmethod
    def evaluate_data_mask_policies(self, request: AccessRequest) -> MaskDescriptor | None:
        """Return the column mask for a column-scope request, or None."""
        ...

    def close(self) -> None:
        """Release resources held by the evaluator."""
        return None

    def get_name(self) -> str:
        """Return the evaluator's name for logging."""
        return self.__class__.__name__

    def get_config(self) -> dict[str, Any]:
        """Return evaluator configuration for debugging."""
        return {}
